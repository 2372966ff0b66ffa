"""
Conversion between encoded image containers (PNG, JPEG, ...) and ImageBuffer.
"""

from __future__ import annotations

import cv2
import numpy as np

from errors import DecodeError, InvalidInputError
from models.image import ImageBuffer


def decode_image(data: bytes) -> ImageBuffer:
    """
    Decode container bytes into an ImageBuffer.

    Grayscale containers decode to one channel, everything else to BGR.
    16-bit PNGs keep their depth.

    Raises:
        DecodeError: If the bytes are empty or not a decodable image.
    """
    if not data:
        raise DecodeError("Cannot decode empty image payload")

    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        pixels = cv2.imdecode(buf, cv2.IMREAD_ANYCOLOR | cv2.IMREAD_ANYDEPTH)
    except cv2.error as e:
        raise DecodeError(f"Failed to decode image payload: {e}") from e

    if pixels is None:
        raise DecodeError(f"Payload of {len(data)} bytes is not a decodable image")

    try:
        return ImageBuffer(pixels)
    except InvalidInputError as e:
        raise DecodeError(f"Decoded image has unsupported layout: {e}") from e


def encode_image(image: ImageBuffer, ext: str = ".png") -> bytes:
    """
    Encode an ImageBuffer into container bytes.

    Raises:
        InvalidInputError: If OpenCV cannot encode the buffer in this format.
    """
    ok, buf = cv2.imencode(ext, image.pixels)
    if not ok:
        raise InvalidInputError(f"Failed to encode {image!r} as {ext}")
    return buf.tobytes()
