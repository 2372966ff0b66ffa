"""
Detection models for face detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple, Union, overload

from errors import InvalidInputError


@dataclass(frozen=True)
class Rectangle:
    """
    An axis-aligned rectangle in integer pixel coordinates.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Width in pixels.
        height: Height in pixels.
    """
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0 or self.width < 0 or self.height < 0:
            raise InvalidInputError(f"Rectangle values must be non-negative, got {self.as_tuple()}")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def fits_within(self, width: int, height: int) -> bool:
        """True if the rectangle lies fully inside a width x height image."""
        return self.right <= width and self.bottom <= height

    @classmethod
    def from_tuple(cls, t: Sequence[int]) -> "Rectangle":
        """Create from (x, y, width, height)."""
        return cls(x=int(t[0]), y=int(t[1]), width=int(t[2]), height=int(t[3]))

    @classmethod
    def clipped(cls, x: int, y: int, width: int, height: int, max_w: int, max_h: int) -> "Rectangle":
        """
        Create a rectangle clipped to a max_w x max_h image.

        The result may be empty (zero width or height) when the input lies
        entirely outside the image.
        """
        x1 = min(max(x, 0), max_w)
        y1 = min(max(y, 0), max_h)
        x2 = min(max(x + width, 0), max_w)
        y2 = min(max(y + height, 0), max_h)
        return cls(x=x1, y=y1, width=max(x2 - x1, 0), height=max(y2 - y1, 0))


@dataclass(frozen=True)
class DetectionResult:
    """
    Ordered rectangles emitted by a detector.

    Order is the detector's emission order, never re-sorted.

    Attributes:
        rectangles: Detected rectangles in input-image coordinates.
        raw_candidates: Number of window hits before neighbor clustering.
    """
    rectangles: Tuple[Rectangle, ...] = ()
    raw_candidates: int = 0

    def __iter__(self) -> Iterator[Rectangle]:
        return iter(self.rectangles)

    def __len__(self) -> int:
        return len(self.rectangles)

    @overload
    def __getitem__(self, idx: int) -> Rectangle: ...

    @overload
    def __getitem__(self, idx: slice) -> Tuple[Rectangle, ...]: ...

    def __getitem__(self, idx: Union[int, slice]):
        return self.rectangles[idx]

    def __bool__(self) -> bool:
        return bool(self.rectangles)
