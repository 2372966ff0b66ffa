"""
Host stages for the face capture pipeline.

Each stage adapts the core to the routing contract of the hosting engine:
- capture: periodic frame capture, one success item per trigger
- detect: face detection, one success item per face or failure
"""

from .base import REL_FAILURE, REL_SUCCESS, RoutedItem
from .capture import CaptureStage, CaptureStats
from .detect import FaceDetectionStage, DetectionStageStats

__all__ = [
    "REL_FAILURE",
    "REL_SUCCESS",
    "RoutedItem",
    "CaptureStage",
    "CaptureStats",
    "FaceDetectionStage",
    "DetectionStageStats",
]
