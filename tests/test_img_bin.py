import pytest

import img_bin
from img_bin import ExitCode


def test_main_binarizes_to_output(tmp_path, write_bmp, sample_pixels, capsys):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    out = tmp_path / "bw.bmp"

    assert img_bin.main([str(src), "100", "--output", str(out)]) == ExitCode.OK

    raw = src.read_bytes()
    written = out.read_bytes()
    assert written[:54] == raw[:54]
    assert written[54:] == bytes([0] * 3 + [255] * 3 + [0] * 3 + [255] * 3)

    stdout = capsys.readouterr().out.splitlines()
    assert stdout[0] == f"Opening {src}..."
    assert "Performing image binarization (threshold=100)..." in stdout
    assert stdout[-1] == "Done."


def test_main_defaults_output_name(tmp_path, write_bmp, sample_pixels, monkeypatch):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    monkeypatch.chdir(tmp_path)
    assert img_bin.main([str(src), "0"]) == ExitCode.OK
    assert (tmp_path / img_bin.DEFAULT_OUTPUT).read_bytes()[54:] == b"\xff" * 12


def test_main_info_flag_prints_header(tmp_path, write_bmp, sample_pixels, capsys):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    img_bin.main([str(src), "10", "-o", str(tmp_path / "o.bmp"), "--info"])
    assert "File info:" in capsys.readouterr().out


@pytest.mark.parametrize(
    "threshold, code",
    [
        ("abc", ExitCode.THRESHOLD_NOT_A_NUMBER),
        ("-5", ExitCode.THRESHOLD_NOT_A_NUMBER),
        ("12.5", ExitCode.THRESHOLD_NOT_A_NUMBER),
        ("256", ExitCode.THRESHOLD_OUT_OF_RANGE),
    ],
)
def test_main_rejects_bad_threshold(write_bmp, sample_pixels, threshold, code):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    with pytest.raises(SystemExit) as excinfo:
        img_bin.main([str(src), threshold])
    assert excinfo.value.code == code


def test_main_wrong_argument_count():
    with pytest.raises(SystemExit) as excinfo:
        img_bin.main(["only-one.bmp"])
    assert excinfo.value.code == ExitCode.USAGE


def test_main_missing_source(tmp_path, capsys):
    code = img_bin.main([str(tmp_path / "missing.bmp"), "10", "-o", str(tmp_path / "o.bmp")])
    assert code == ExitCode.OPEN_FAILED
    assert "missing.bmp" in capsys.readouterr().err


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"magic": b"BZ"}, ExitCode.VERIFY_FAILED),
        ({"bit_count": 8}, ExitCode.VERIFY_FAILED),
        ({"truncate_pixels": 5}, ExitCode.LOAD_FAILED),
    ],
)
def test_main_bad_source_writes_nothing(tmp_path, write_bmp, sample_pixels, kwargs, code):
    src = write_bmp("in.bmp", sample_pixels, 2, 2, **kwargs)
    out = tmp_path / "o.bmp"
    assert img_bin.main([str(src), "10", "-o", str(out)]) == code
    assert not out.exists()


def test_main_unwritable_output(tmp_path, write_bmp, sample_pixels):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    out = tmp_path / "no-such-dir" / "o.bmp"
    assert img_bin.main([str(src), "10", "-o", str(out)]) == ExitCode.WRITE_FAILED


def test_main_empty_threshold_reads_as_zero(tmp_path, write_bmp, sample_pixels):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    out = tmp_path / "o.bmp"
    assert img_bin.main([str(src), "", "-o", str(out)]) == ExitCode.OK
    assert out.read_bytes()[54:] == b"\xff" * 12


def test_main_output_over_input_keeps_a_valid_image(write_bmp, sample_pixels):
    src = write_bmp("in.bmp", sample_pixels, 2, 2)
    raw = src.read_bytes()
    assert img_bin.main([str(src), "100", "-o", str(src)]) == ExitCode.OK

    written = src.read_bytes()
    assert len(written) == len(raw)
    assert written[:54] == raw[:54]
    assert written[54:] == bytes([0] * 3 + [255] * 3 + [0] * 3 + [255] * 3)
