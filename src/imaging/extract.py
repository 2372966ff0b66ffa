"""
Region extraction: copy a rectangle of an image into its own buffer.
"""

from __future__ import annotations

import numpy as np

from errors import InvalidInputError
from models.detection import Rectangle
from models.image import ImageBuffer


def extract(image: ImageBuffer, rect: Rectangle) -> ImageBuffer:
    """
    Return a pixel-exact, independently owned copy of rect.

    The result never aliases the source storage, so later writes to either
    buffer are invisible to the other. Channels and bit depth are preserved.

    Raises:
        InvalidInputError: If rect is empty or not fully inside image.
    """
    if rect.width <= 0 or rect.height <= 0:
        raise InvalidInputError(f"Cannot extract empty region {rect.as_tuple()}")
    if not rect.fits_within(image.width, image.height):
        raise InvalidInputError(
            f"Region {rect.as_tuple()} is outside image bounds {image.width}x{image.height}"
        )

    crop = np.array(image.pixels[rect.y:rect.bottom, rect.x:rect.right], copy=True, order="C")
    return ImageBuffer(crop)
