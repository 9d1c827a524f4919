from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import pytest
from PIL import Image

RGB = Tuple[int, int, int]


def build_bmp(
    pixels: Sequence[RGB],
    width: int,
    height: int,
    *,
    magic: bytes = b"BM",
    bit_count: int = 24,
    planes: int = 1,
    compression: int = 0,
    info_size: int = 40,
    gap: bytes = b"",
    truncate_pixels: int = 0,
) -> bytes:
    """Pack a BMP byte for byte; ``pixels`` are in file order, given as (r, g, b)."""
    body = b"".join(bytes((b, g, r)) for r, g, b in pixels)
    if truncate_pixels:
        body = body[:-truncate_pixels]
    data_offset = 14 + info_size + len(gap)
    info = struct.pack(
        "<IiiHHIIiiII",
        info_size,
        width,
        height,
        planes,
        bit_count,
        compression,
        len(body),
        2835,
        2835,
        0,
        0,
    )
    info += b"\x00" * (info_size - len(info))
    file_size = data_offset + len(body)
    header = magic + struct.pack("<IHHI", file_size, 0, 0, data_offset)
    return header + info + gap + body


@pytest.fixture
def bmp_bytes() -> Callable[..., bytes]:
    return build_bmp


@pytest.fixture
def write_bmp(tmp_path: Path) -> Callable[..., Path]:
    def _write(name: str = "in.bmp", *args, **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_bmp(*args, **kwargs))
        return path

    return _write


@pytest.fixture
def sample_pixels() -> List[RGB]:
    return [(10, 10, 10), (200, 200, 200), (50, 50, 50), (250, 250, 250)]


@pytest.fixture
def pillow_bmp(tmp_path: Path) -> Path:
    """A 4x3 RGB image saved by Pillow; 12 byte rows need no padding."""
    img = Image.new("RGB", (4, 3))
    for y in range(3):
        for x in range(4):
            img.putpixel((x, y), (x * 60, y * 100, 255 - x * 40))
    path = tmp_path / "pillow.bmp"
    img.save(path, "BMP")
    return path
