"""
OpenCV-based frame source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- Video files (device_id as file path)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

import cv2
import numpy as np

from errors import InitializationError
from models.config import CaptureConfig
from models.frame import FrameData
from .base import FrameSource, ObservationConfig


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based frame sources.

    Attributes:
        device_id: Camera index (int) or video file path (str).
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Maximum attempts to open the device.
        max_read_failures: Consecutive failed reads before reinitializing.
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally.
        flip_vertical: Flip frame vertically.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    max_retries: int = 3
    max_read_failures: int = 3
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_capture_config(cls, capture: CaptureConfig, source_id: str = "camera") -> "OpenCVSourceConfig":
        """Adapter: Create OpenCVSourceConfig from the typed capture config."""
        resolution = tuple(capture.resolution) if capture.resolution else None
        return cls(
            source_id=source_id,
            resolution=resolution,
            device_id=capture.device_id,
            max_retries=capture.max_retries,
            capture_timeout_s=capture.capture_timeout_s,
        )


class OpenCVSource(FrameSource):
    """
    OpenCV-based frame source for cameras and video files.

    Wraps cv2.VideoCapture to provide frames as FrameData objects and
    reinitializes camera devices after repeated read failures.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            image = source.capture(timeout=2.0)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        """Check if this is a video file."""
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        """Open the video source."""
        if self._is_open:
            return

        self._initialize(retry_count=0)
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={self.device_id}, resolution={self._opencv_config.resolution}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize or reinitialize the capture device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying initialization (attempt {retry_count + 1}/"
                f"{self._opencv_config.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        self._cap = cv2.VideoCapture(self.device_id)

        if not self._cap.isOpened():
            if retry_count < self._opencv_config.max_retries - 1:
                logging.warning(f"Failed to open device {self.device_id}, retrying...")
                return self._initialize(retry_count + 1)
            self._cap.release()
            self._cap = None
            raise InitializationError(
                f"Failed to open device {self.device_id} after "
                f"{self._opencv_config.max_retries} attempts"
            )

        # Set properties for USB cameras (not files)
        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                self._cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

            actual_w = self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_h = self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            logging.info(f"Camera actual settings - Resolution: ({actual_w}x{actual_h})")

        self._consecutive_failures = 0

    def read(self) -> Optional[FrameData]:
        """Read the next frame from the source."""
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()

        if not ret or frame is None:
            self._consecutive_failures += 1

            # For files, end of video is expected
            if self.is_file:
                logging.info("End of video file reached")
                return None

            if self._consecutive_failures >= self._opencv_config.max_read_failures:
                logging.warning(
                    f"Failed to read frame (failures: {self._consecutive_failures}), reinitializing..."
                )
                try:
                    self._initialize()
                except InitializationError as e:
                    logging.error(f"Reinitialization failed: {e}")
            return None

        self._consecutive_failures = 0
        frame = self._apply_transforms(frame)
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip)."""
        cfg = self._opencv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal or cfg.flip_vertical:
            if cfg.flip_horizontal and cfg.flip_vertical:
                flip_code = -1
            elif cfg.flip_horizontal:
                flip_code = 1
            else:
                flip_code = 0
            frame = cv2.flip(frame, flip_code)

        return frame

    def close(self) -> None:
        """Close the video source and release resources."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")
