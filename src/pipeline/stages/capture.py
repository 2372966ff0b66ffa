"""
Capture stage: periodic frame capture from a FrameSource.

Each trigger captures one frame and yields a single success item with the
frame encoded as PNG. run() repeats this at the configured interval using
a cancellable wait, so stop() takes effect immediately instead of after a
sleep.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from errors import CaptureError
from imaging.codec import encode_image
from imaging.persist import IntermediateWriter
from models.config import CaptureConfig
from observation.base import FrameSource
from .base import REL_SUCCESS, ItemSink, RoutedItem


@dataclass
class CaptureStats:
    """Runtime statistics for the capture loop."""
    frame_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    start_time: float = field(default_factory=time.time)


class CaptureStage:
    """
    Captures frames from a source and routes them to success.

    Example:
        stage = CaptureStage(source, CaptureConfig(frame_interval_ms=500))
        with source:
            stage.run(detection_sink, max_frames=100)
    """

    def __init__(
        self,
        source: FrameSource,
        config: Optional[CaptureConfig] = None,
        writer: Optional[IntermediateWriter] = None,
        max_consecutive_failures: int = 10,
    ):
        self.source = source
        self.config = config or CaptureConfig()
        self._writer = writer
        self.max_consecutive_failures = max_consecutive_failures
        self.stats = CaptureStats()
        self._stop_event = threading.Event()

    @property
    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    def on_trigger(self) -> RoutedItem:
        """
        Capture one frame.

        Raises:
            CaptureError: If no frame arrives within the capture timeout.
        """
        image = self.source.capture(timeout=self.config.capture_timeout_s)
        payload = encode_image(image, ".png")

        if self._writer is not None and self.config.persist_intermediates:
            self._writer.write(image, "captured")

        self.stats.frame_count += 1
        return RoutedItem(
            REL_SUCCESS,
            payload,
            {
                "frame.index": self.source.frame_index,
                "frame.source": self.source.source_id,
                "frame.size": image.size,
            },
        )

    def run(self, sink: ItemSink, max_frames: Optional[int] = None) -> None:
        """
        Capture frames until stopped, max_frames is reached or too many
        consecutive captures fail.

        The source must already be open. Exceptions raised by sink propagate.
        """
        self._stop_event.clear()
        self.stats = CaptureStats()
        interval = self.config.frame_interval_s
        logging.info(
            f"Capture started: source={self.source.source_id}, interval={interval:.3f}s"
        )

        while not self._stop_event.is_set():
            try:
                item = self.on_trigger()
            except CaptureError as e:
                self.stats.failure_count += 1
                self.stats.consecutive_failures += 1
                if self.stats.consecutive_failures >= self.max_consecutive_failures:
                    logging.error(
                        f"Too many consecutive capture failures ({self.stats.consecutive_failures}), stopping"
                    )
                    break
                logging.warning(
                    f"Capture failed ({self.stats.consecutive_failures}/"
                    f"{self.max_consecutive_failures}): {e}"
                )
            else:
                self.stats.consecutive_failures = 0
                sink(item)
                if max_frames is not None and self.stats.frame_count >= max_frames:
                    break

            if self._stop_event.wait(interval):
                break

        logging.info(
            f"Capture stopped: frames={self.stats.frame_count}, failures={self.stats.failure_count}"
        )

    def stop(self) -> None:
        """Cancel the pending wait and end run() after the current frame."""
        self._stop_event.set()
