"""
FrameSource interface for pluggable video/image sources.

This defines the contract that all frame sources must implement so the
capture stage can work with any input:
- USB/CSI cameras
- Video files
- Test doubles producing synthetic frames
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional

from errors import CaptureError
from models.frame import FrameData
from models.image import ImageBuffer


@dataclass
class ObservationConfig:
    """
    Base configuration for frame sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "cam-01").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
        capture_timeout_s: Upper bound capture() waits for a frame.
        poll_interval_s: Pause between read attempts inside capture().
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    capture_timeout_s: float = 5.0
    poll_interval_s: float = 0.05
    metadata: Dict[str, Any] = field(default_factory=dict)


class FrameSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call capture() (or read()) repeatedly to get frames
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            image = source.capture()
    """

    def __init__(self, config: ObservationConfig, clock: Optional[Callable[[], float]] = None):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._clock = clock or time.monotonic

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Current frame index (number of frames read since open)."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the frame source.

        Raises:
            InitializationError: If the device cannot be opened.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Read the next frame without waiting.

        Returns:
            FrameData, or None if no frame is available right now.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release resources held by the source. Safe to call multiple times.
        """
        pass

    def capture(self, timeout: Optional[float] = None) -> ImageBuffer:
        """
        Acquire the next frame, waiting at most timeout seconds.

        Args:
            timeout: Seconds to wait; defaults to config.capture_timeout_s.

        Raises:
            CaptureError: If the source is closed or no frame arrives in time.
        """
        if not self._is_open:
            raise CaptureError(f"Source {self.source_id} is not open")

        limit = self._config.capture_timeout_s if timeout is None else timeout
        deadline = self._clock() + limit
        while True:
            frame_data = self.read()
            if frame_data is not None:
                return frame_data.image
            if self._clock() >= deadline:
                raise CaptureError(
                    f"No frame from source {self.source_id} within {limit:.2f}s"
                )
            time.sleep(self._config.poll_interval_s)

    def __enter__(self) -> "FrameSource":
        """Context manager entry - opens the source."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes the source."""
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        """
        Iterate over frames until the source is exhausted.

        The source must be open before iterating.
        """
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
