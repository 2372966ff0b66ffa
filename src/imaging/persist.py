"""
Diagnostic persistence of intermediate images.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable, Optional

from models.image import ImageBuffer
from .codec import encode_image


class IntermediateWriter:
    """
    Writes intermediate images as <millis>-<seq>-<label>.png into a directory.

    seq is a per-writer counter that keeps names unique within one millisecond.

    Used by the host stages when persist_intermediates is enabled; the core
    pipeline never writes to disk.
    """

    def __init__(self, output_dir: str, clock: Optional[Callable[[], float]] = None):
        self.output_dir = output_dir
        self._clock = clock or time.time
        self._seq = 0

    def write(self, image: ImageBuffer, label: str) -> str:
        """Encode image as PNG and write it. Returns the file path."""
        if not os.path.exists(self.output_dir):
            os.makedirs(self.output_dir, exist_ok=True)

        millis = int(self._clock() * 1000)
        self._seq += 1
        path = os.path.join(self.output_dir, f"{millis}-{self._seq:04d}-{label}.png")
        with open(path, "wb") as f:
            f.write(encode_image(image, ".png"))

        logging.debug(f"Wrote intermediate image: {path}")
        return path
