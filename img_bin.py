#!/usr/bin/env python3
"""Binarize a 24-bit BMP image against a luminance threshold.

Examples:
    python img_bin.py photo.bmp 128
    python img_bin.py photo.bmp 100 --output bw.bmp --info
    python img_bin.py photo.bmp 100 --verbose
"""
from __future__ import annotations

import argparse
import logging
import sys
from enum import IntEnum
from typing import NoReturn

import bmp_codec
import bw_convert

DEFAULT_OUTPUT = "out.bmp"
MAX_THRESHOLD = 255


class ExitCode(IntEnum):
    OK = 0
    USAGE = 1
    THRESHOLD_NOT_A_NUMBER = 2
    THRESHOLD_OUT_OF_RANGE = 3
    OPEN_FAILED = 4
    VERIFY_FAILED = 5
    LOAD_FAILED = 6
    WRITE_FAILED = 7


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(ExitCode.USAGE, f"{self.prog}: error: {message}\n")


def is_number(value: str) -> bool:
    """True when ``value`` is made only of ASCII digits."""
    return all("0" <= ch <= "9" for ch in value)


def parse_threshold(value: str) -> int:
    """Return the threshold or exit with the matching status."""
    if not is_number(value):
        _fail(f"Threshold must be an int in range <0,{MAX_THRESHOLD}>, got {value!r}",
              ExitCode.THRESHOLD_NOT_A_NUMBER)
    threshold = int(value or "0")
    if threshold > MAX_THRESHOLD:
        _fail(f"Threshold must be an int in range <0,{MAX_THRESHOLD}>, got {threshold}",
              ExitCode.THRESHOLD_OUT_OF_RANGE)
    return threshold


def _fail(message: str, code: ExitCode) -> NoReturn:
    print(message, file=sys.stderr)
    sys.exit(code)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(description="Convert a 24-bit BMP image to black-and-white")
    parser.add_argument("input", help="Path to the source BMP file")
    parser.add_argument("threshold", help="Binarization threshold, an integer in 0-255")
    parser.add_argument(
        "-o",
        "--output",
        default=DEFAULT_OUTPUT,
        help=f"Destination path for the binarized BMP (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument("--info", action="store_true", help="Print the decoded BMP header fields")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def run(input_path: str, threshold: int, output_path: str, show_info: bool = False) -> ExitCode:
    """Run the open/verify/load/binarize/save pipeline and return the exit status."""
    print(f"Opening {input_path}...")
    try:
        handle = bmp_codec.open_bmp(input_path)
    except bmp_codec.OpenError as exc:
        print(exc, file=sys.stderr)
        return ExitCode.OPEN_FAILED

    with handle:
        print("Verifying the file...")
        try:
            handle.verify()
        except bmp_codec.BmpFormatError as exc:
            print(exc, file=sys.stderr)
            return ExitCode.VERIFY_FAILED
        if show_info:
            print(bmp_codec.describe_info(handle))

        print("Loading image...")
        try:
            image = handle.load()
        except bmp_codec.BmpFormatError as exc:
            print(exc, file=sys.stderr)
            return ExitCode.LOAD_FAILED

        print(f"Performing image binarization (threshold={threshold})...")
        bw_convert.binarize(image.pixels, threshold)

        print("Saving BMP file...")
        try:
            handle.write(output_path)
        except (bmp_codec.OpenError, bmp_codec.BmpWriteError) as exc:
            print(exc, file=sys.stderr)
            return ExitCode.WRITE_FAILED

        black = bw_convert.count_black(image.pixels)
        print(f"Saved {image.width}x{image.height} image ({black} black pixels) -> {output_path}")

    print("Done.")
    return ExitCode.OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    threshold = parse_threshold(args.threshold)
    return int(run(args.input, threshold, args.output, show_info=args.info))


if __name__ == "__main__":
    sys.exit(main())
