"""
Observation layer for pluggable frame sources.

This layer abstracts the source of frames (camera, video file) from the
capture stage. Each source implements the FrameSource interface and
returns FrameData objects; capture() adds a bounded wait on top.
"""

from .base import FrameSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "FrameSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
]
