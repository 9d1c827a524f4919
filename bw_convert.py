"""Convert decoded BMP pixels to black-and-white.

Each pixel is reduced to its perceptual luminance (the Matlab / GIMP
weighting) and then replaced by pure black or pure white depending on a
0-255 threshold.
"""
from __future__ import annotations

from typing import Iterable, List

from bmp_codec import Pixel

R_WEIGHT = 0.2989
G_WEIGHT = 0.5870
B_WEIGHT = 0.1140

BLACK = 0
WHITE = 255


def luminance(pixel: Pixel) -> int:
    """Return ``0.2989*R + 0.5870*G + 0.1140*B`` truncated to an integer."""
    grey = R_WEIGHT * pixel.red + G_WEIGHT * pixel.green + B_WEIGHT * pixel.blue
    return int(grey)


def binarize(pixels: List[Pixel], threshold: int) -> None:
    """Set every pixel to black or white in place.

    Pixels whose luminance is strictly below ``threshold`` become black; the
    rest, including those exactly at the threshold, become white. The range
    of ``threshold`` is the caller's concern.
    """
    for pixel in pixels:
        value = BLACK if luminance(pixel) < threshold else WHITE
        pixel.red = pixel.green = pixel.blue = value


def count_black(pixels: Iterable[Pixel]) -> int:
    return sum(1 for p in pixels if p.red == BLACK and p.green == BLACK and p.blue == BLACK)
