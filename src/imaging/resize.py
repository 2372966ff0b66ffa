"""
Fixed-size resampling of image buffers.
"""

from __future__ import annotations

import cv2

from errors import InvalidInputError
from models.image import ImageBuffer


def resize(image: ImageBuffer, target_width: int, target_height: int) -> ImageBuffer:
    """
    Stretch image to exactly target_width x target_height.

    Uses bilinear interpolation. Aspect ratio is not preserved. The output
    is a new owning buffer with the source's channel count and bit depth,
    and identical inputs always give identical pixels.

    Raises:
        InvalidInputError: If either target dimension is not positive.
    """
    if target_width <= 0 or target_height <= 0:
        raise InvalidInputError(
            f"Target size must be positive, got {target_width}x{target_height}"
        )

    resized = cv2.resize(
        image.pixels,
        (int(target_width), int(target_height)),
        interpolation=cv2.INTER_LINEAR,
    )
    return ImageBuffer(resized)
