"""Read and write uncompressed 24-bit BMP images.

The module covers the small subset of the BMP container the binarizer needs:

* The 14 byte file header ("BM", file size, pixel data offset)
* The 40 byte Windows BITMAPINFOHEADER
* Bottom-up, uncompressed, 24 bits per pixel rows without padding

Decoding works on any binary stream so the functions can be exercised
against in-memory buffers. :class:`BmpFile` binds an opened file to the
decoded state and is what the command-line tool uses.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

log = logging.getLogger(__name__)

BMP_HEADER_SIZE = 14
BMP_MAGIC_ID = 0x4D42  # "BM" read as a little-endian u16
BITMAPINFOHEADER_SIZE = 40
MAX_INFO_HEADER_SIZE = 100000
BYTES_PER_PIXEL = 3

# File header offsets
HEADER_MAGIC_ID_OFF = 0
HEADER_FILE_SIZE_OFF = 2
HEADER_RESERVED_OFF = 6
HEADER_DATA_OFFSET_OFF = 10

# Info header offsets, relative to the start of the info header
INFO_SIZE_OFF = 0
INFO_WIDTH_OFF = 4
INFO_HEIGHT_OFF = 8
INFO_PLANES_OFF = 12
INFO_BIT_COUNT_OFF = 14
INFO_COMPRESSION_OFF = 16
INFO_IMAGE_SIZE_OFF = 20
INFO_XRES_OFF = 24
INFO_YRES_OFF = 28
INFO_COLORS_USED_OFF = 32
INFO_IMPORTANT_COLORS_OFF = 36


class BmpError(Exception):
    """Base class for everything the codec raises."""


class OpenError(BmpError):
    def __init__(self, path: os.PathLike[str] | str, reason: str = ""):
        self.path = os.fspath(path)
        message = f"Couldn't open the \"{self.path}\" file"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class BmpFormatError(BmpError):
    """The source bytes do not form a BMP this codec can decode."""


class ShortReadError(BmpFormatError):
    def __init__(self, stage: str, expected: int, actual: int, index: int | None = None):
        self.stage = stage
        self.expected = expected
        self.actual = actual
        self.index = index
        where = f"{stage} (pixel #{index})" if index is not None else stage
        super().__init__(f"Couldn't read the {where}: expected {expected} bytes, got {actual}")


class InvalidMagicError(BmpFormatError):
    def __init__(self, magic: int):
        self.magic = magic
        super().__init__(f"File is not a BMP (magic id 0x{magic:04X}, expected 0x{BMP_MAGIC_ID:04X})")


class InvalidInfoHeaderError(BmpFormatError):
    def __init__(self, info_size: int):
        self.info_size = info_size
        super().__init__(
            f"Invalid info header size {info_size}; "
            f"expected between {BITMAPINFOHEADER_SIZE} and {MAX_INFO_HEADER_SIZE} bytes"
        )


class UnsupportedFormatError(BmpFormatError):
    def __init__(self, bit_count: int, planes: int, compression: int):
        self.bit_count = bit_count
        self.planes = planes
        self.compression = compression
        super().__init__(
            "This kind of BMP file is not supported "
            f"(bits per pixel={bit_count}, planes={planes}, compression={compression}); "
            "only uncompressed single-plane 24-bit images are"
        )


class BmpWriteError(BmpError):
    """Writing the output image failed part way."""


class ShortWriteError(BmpWriteError):
    def __init__(self, index: int, written: int):
        self.index = index
        self.written = written
        super().__init__(
            f"Couldn't write pixel #{index}: {written} of {BYTES_PER_PIXEL} bytes accepted"
        )


class CopyMismatchError(BmpWriteError):
    def __init__(self, requested: int, read: int, written: int | None = None):
        self.requested = requested
        self.read = read
        self.written = written
        detail = f"requested {requested}, read {read}"
        if written is not None:
            detail += f", written {written}"
        super().__init__(f"Couldn't copy the header of the BMP ({detail})")


@dataclass(frozen=True)
class BmpHeader:
    magic_id: int
    file_size: int
    reserved: int
    data_offset: int


@dataclass(frozen=True)
class BmpInfoHeader:
    info_size: int
    width: int
    height: int
    planes: int
    bit_count: int
    compression: int
    image_size: int
    x_resolution: int
    y_resolution: int
    colors_used: int
    important_colors: int

    @property
    def pixel_count(self) -> int:
        """Number of pixels stored; zero when either dimension is not positive."""
        if self.width <= 0 or self.height <= 0:
            return 0
        return self.width * self.height


@dataclass
class Pixel:
    """One pixel, red/green/blue in memory (blue/green/red on disk)."""

    __slots__ = ("red", "green", "blue")

    red: int
    green: int
    blue: int

    @classmethod
    def from_bgr(cls, raw: bytes) -> "Pixel":
        blue, green, red = raw
        return cls(red, green, blue)

    def to_bgr(self) -> bytes:
        return bytes((self.blue, self.green, self.red))

    def as_tuple(self) -> Tuple[int, int, int]:
        return self.red, self.green, self.blue


@dataclass
class DecodedImage:
    """Dimensions plus the pixel list in on-disk row order (no vertical flip)."""

    width: int
    height: int
    pixels: List[Pixel]


def _read_int(buf: bytes, offset: int, size: int = 4, signed: bool = False) -> int:
    if offset < 0 or offset + size > len(buf):
        raise BmpFormatError(
            f"Field at offset {offset} ({size} bytes) is outside a {len(buf)} byte buffer"
        )
    return int.from_bytes(buf[offset:offset + size], "little", signed=signed)


def _read_exact(stream: BinaryIO, size: int, stage: str, index: int | None = None) -> bytes:
    data = stream.read(size)
    if len(data) < size:
        raise ShortReadError(stage, size, len(data), index)
    return data


def open_bmp(path: os.PathLike[str] | str) -> "BmpFile":
    """Open ``path`` for binary reading and return an undecoded handle."""
    try:
        stream = open(path, "rb")
    except OSError as exc:
        raise OpenError(path, exc.strerror or str(exc)) from exc
    return BmpFile(stream=stream, filename=os.fspath(path))


def decode_header(stream: BinaryIO) -> BmpHeader:
    """Decode the 14 byte file header at the current position."""
    buf = _read_exact(stream, BMP_HEADER_SIZE, "header")
    header = BmpHeader(
        magic_id=_read_int(buf, HEADER_MAGIC_ID_OFF, 2),
        file_size=_read_int(buf, HEADER_FILE_SIZE_OFF),
        reserved=_read_int(buf, HEADER_RESERVED_OFF),
        data_offset=_read_int(buf, HEADER_DATA_OFFSET_OFF),
    )
    if header.magic_id != BMP_MAGIC_ID:
        raise InvalidMagicError(header.magic_id)
    log.debug("header: %s", header)
    return header


def decode_info_header(stream: BinaryIO) -> BmpInfoHeader:
    """Decode the info header that starts at the current position.

    The declared size is looked ahead first, then the whole info header
    (size field included) is read in one bounded read so the fixed offsets
    line up with the BITMAPINFOHEADER layout. Anything past the first 40
    bytes is read and ignored. The stream is left at the end of the info
    header, which is not necessarily the pixel data offset.
    """
    start = stream.tell()
    info_size = _read_int(_read_exact(stream, 4, "info header size"), 0)
    if info_size < BITMAPINFOHEADER_SIZE or info_size > MAX_INFO_HEADER_SIZE:
        raise InvalidInfoHeaderError(info_size)

    stream.seek(start)
    buf = _read_exact(stream, info_size, "info header")

    info = BmpInfoHeader(
        info_size=_read_int(buf, INFO_SIZE_OFF),
        width=_read_int(buf, INFO_WIDTH_OFF, signed=True),
        height=_read_int(buf, INFO_HEIGHT_OFF, signed=True),
        planes=_read_int(buf, INFO_PLANES_OFF, 2),
        bit_count=_read_int(buf, INFO_BIT_COUNT_OFF, 2),
        compression=_read_int(buf, INFO_COMPRESSION_OFF),
        image_size=_read_int(buf, INFO_IMAGE_SIZE_OFF),
        x_resolution=_read_int(buf, INFO_XRES_OFF),
        y_resolution=_read_int(buf, INFO_YRES_OFF),
        colors_used=_read_int(buf, INFO_COLORS_USED_OFF),
        important_colors=_read_int(buf, INFO_IMPORTANT_COLORS_OFF),
    )
    log.debug("info header: %s", info)
    return info


def validate_format(info: BmpInfoHeader) -> bool:
    return info.bit_count == 24 and info.planes == 1 and info.compression == 0


def check_format(info: BmpInfoHeader) -> None:
    """Raise :class:`UnsupportedFormatError` unless ``validate_format`` passes."""
    if not validate_format(info):
        raise UnsupportedFormatError(info.bit_count, info.planes, info.compression)


def load_pixels(stream: BinaryIO, header: BmpHeader, info: BmpInfoHeader) -> List[Pixel]:
    """Read ``width * height`` pixels starting at ``header.data_offset``.

    Rows are assumed to carry no padding. A short read on any pixel aborts
    the whole load.
    """
    count = info.pixel_count
    stream.seek(header.data_offset)
    log.debug("loading %d pixels from offset %d", count, header.data_offset)

    pixels: List[Pixel] = []
    for index in range(count):
        raw = _read_exact(stream, BYTES_PER_PIXEL, "pixel data", index)
        pixels.append(Pixel.from_bgr(raw))
    return pixels


def _read_head(stream: BinaryIO, header: BmpHeader) -> bytes:
    requested = header.data_offset
    stream.seek(0)
    head = stream.read(requested)
    if len(head) != requested:
        raise CopyMismatchError(requested, len(head))
    return head


def _write_body(head: bytes, pixels: List[Pixel], out: BinaryIO) -> bool:
    written = out.write(head)
    if written != len(head):
        raise CopyMismatchError(len(head), len(head), written or 0)
    log.debug("copied %d header bytes", written)

    for index, pixel in enumerate(pixels):
        written = out.write(pixel.to_bgr())
        if written != BYTES_PER_PIXEL:
            raise ShortWriteError(index, written or 0)
    return True


def write_image_to(stream: BinaryIO, header: BmpHeader, pixels: List[Pixel], out: BinaryIO) -> bool:
    """Copy the source's leading ``data_offset`` bytes to ``out``, then the pixels."""
    return _write_body(_read_head(stream, header), pixels, out)


def write_image(
    stream: BinaryIO,
    header: BmpHeader,
    pixels: List[Pixel],
    output_path: os.PathLike[str] | str,
) -> bool:
    """Write ``pixels`` to ``output_path`` behind a verbatim copy of the source header.

    No header field is recomputed; pixels are replaced one for one so the
    payload size never changes. The source header is read before the
    destination is opened, so ``output_path`` may name the source file. A
    destination left incomplete by a write error is removed.
    """
    head = _read_head(stream, header)
    try:
        out = open(output_path, "wb")
    except OSError as exc:
        raise OpenError(output_path, exc.strerror or str(exc)) from exc
    try:
        with out:
            return _write_body(head, pixels, out)
    except BmpWriteError:
        os.remove(output_path)
        raise


def describe_info(handle: "BmpFile") -> str:
    """Human readable dump of the decoded header fields."""
    if handle.header is None or handle.info is None:
        raise BmpError("BMP headers have not been decoded yet")
    header, info = handle.header, handle.info
    rows = [
        ("Name", handle.filename),
        ("File size", f"{header.file_size} bytes"),
        ("Res", f"{info.width} x {info.height}"),
        ("Color planes", info.planes),
        ("Bits per pixel", info.bit_count),
        ("Compression", info.compression),
        ("Img size", f"{info.image_size} bytes"),
        ("Num of colors", info.colors_used),
        ("Num of important colors", info.important_colors),
    ]
    lines = ["File info:"]
    lines.extend(f"\t{label + ':':<26}{value}" for label, value in rows)
    return "\n".join(lines)


def release(handle: "BmpFile") -> None:
    """Drop the handle's pixel list. The source stream stays open."""
    handle.pixels = None


@dataclass
class BmpFile:
    """An opened BMP source plus whatever has been decoded from it so far.

    Use as a context manager to release the pixels and close the source on
    every exit path.
    """

    stream: BinaryIO
    filename: str
    header: Optional[BmpHeader] = None
    info: Optional[BmpInfoHeader] = None
    pixels: Optional[List[Pixel]] = None

    def verify(self) -> BmpInfoHeader:
        self.stream.seek(0)
        self.header = decode_header(self.stream)
        self.info = decode_info_header(self.stream)
        if log.isEnabledFor(logging.DEBUG):
            log.debug("%s", describe_info(self))
        check_format(self.info)
        return self.info

    def load(self) -> DecodedImage:
        if self.header is None or self.info is None:
            raise BmpError("verify() must succeed before load()")
        self.pixels = load_pixels(self.stream, self.header, self.info)
        return DecodedImage(self.info.width, self.info.height, self.pixels)

    def write(self, output_path: os.PathLike[str] | str) -> bool:
        if self.header is None or self.pixels is None:
            raise BmpError("load() must succeed before write()")
        return write_image(self.stream, self.header, self.pixels, output_path)

    def release(self) -> None:
        release(self)

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "BmpFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
        self.close()
