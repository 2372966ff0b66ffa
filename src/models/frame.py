"""
FrameData model for captured video frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from models.image import ImageBuffer


@dataclass
class FrameData:
    """
    A captured frame and its capture metadata.

    Attributes:
        image: The captured pixels (BGR or grayscale).
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier for the camera/video source.
    """
    image: ImageBuffer
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        return cls(
            image=ImageBuffer.from_numpy(frame),
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return self.image.size
