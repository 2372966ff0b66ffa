"""
ImageBuffer model for in-memory pixel data.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from errors import InvalidInputError
from models.detection import Rectangle

_BIT_DEPTHS = {
    np.dtype(np.uint8): 8,
    np.dtype(np.uint16): 16,
}


class ImageBuffer:
    """
    A width x height pixel buffer with 1 (grayscale) or 3 (BGR) channels.

    The pixel store is a numpy array of shape (height, width) for single
    channel images and (height, width, 3) for colour images, with dtype
    uint8 or uint16. A buffer is either *owning* (exclusive storage) or a
    *view* onto a parent buffer, as produced by roi().

    Example:
        image = ImageBuffer.from_numpy(frame)
        face = image.roi(Rectangle(10, 10, 64, 64)).copy()
    """

    __slots__ = ("_pixels", "_is_view")

    def __init__(self, pixels: np.ndarray, is_view: bool = False):
        if not isinstance(pixels, np.ndarray):
            raise InvalidInputError(f"Pixel store must be a numpy array, got {type(pixels).__name__}")

        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0]

        if pixels.ndim == 2:
            pass
        elif pixels.ndim == 3 and pixels.shape[2] == 3:
            pass
        else:
            raise InvalidInputError(
                f"Unsupported pixel shape {pixels.shape}; expected (h, w) or (h, w, 3)"
            )

        if pixels.dtype not in _BIT_DEPTHS:
            raise InvalidInputError(f"Unsupported pixel dtype {pixels.dtype}; expected uint8 or uint16")

        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise InvalidInputError(f"Image dimensions must be positive, got {pixels.shape[1]}x{pixels.shape[0]}")

        self._pixels = pixels
        self._is_view = is_view

    @classmethod
    def from_numpy(cls, array: np.ndarray) -> "ImageBuffer":
        """Wrap a numpy array without copying; the buffer shares memory with array."""
        return cls(array)

    @classmethod
    def blank(cls, width: int, height: int, channels: int = 1, value: int = 0) -> "ImageBuffer":
        """Create a uniform 8-bit buffer."""
        shape = (height, width) if channels == 1 else (height, width, channels)
        return cls(np.full(shape, value, dtype=np.uint8))

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self._pixels.ndim == 2 else int(self._pixels.shape[2])

    @property
    def bit_depth(self) -> int:
        return _BIT_DEPTHS[self._pixels.dtype]

    @property
    def dtype(self) -> np.dtype:
        return self._pixels.dtype

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def is_view(self) -> bool:
        """Whether this buffer shares storage with a parent buffer."""
        return self._is_view

    def shares_memory_with(self, other: "ImageBuffer") -> bool:
        return bool(np.shares_memory(self._pixels, other._pixels))

    def roi(self, rect: Rectangle) -> "ImageBuffer":
        """
        Return a view restricted to rect.

        The view aliases this buffer's storage; writes through either are
        visible in both. Use copy() or imaging.extract for an owning crop.

        Raises:
            InvalidInputError: If rect is empty or not fully inside the image.
        """
        if rect.width <= 0 or rect.height <= 0:
            raise InvalidInputError(f"Region {rect.as_tuple()} is empty")
        if not rect.fits_within(self.width, self.height):
            raise InvalidInputError(
                f"Region {rect.as_tuple()} is outside image bounds {self.width}x{self.height}"
            )
        view = self._pixels[rect.y:rect.bottom, rect.x:rect.right]
        return ImageBuffer(view, is_view=True)

    def copy(self) -> "ImageBuffer":
        """Return an owning, contiguous copy."""
        return ImageBuffer(np.ascontiguousarray(self._pixels).copy())

    def to_gray(self) -> "ImageBuffer":
        """Return a single channel owning buffer (BGR converted with OpenCV)."""
        if self.channels == 1:
            return self.copy()
        return ImageBuffer(cv2.cvtColor(self._pixels, cv2.COLOR_BGR2GRAY))

    def __repr__(self) -> str:
        kind = "view" if self._is_view else "owning"
        return (
            f"ImageBuffer({self.width}x{self.height}, channels={self.channels}, "
            f"depth={self.bit_depth}, {kind})"
        )
