"""
Pipeline module for the face capture system.

The pipeline orchestrates the processing flow:
- Frame capture from frame sources (CaptureStage)
- Face detection, extraction and normalization (FacePipeline)
- Routing of results to success/failure (FaceDetectionStage)
"""

from .engine import FacePipeline
from .stages import (
    REL_FAILURE,
    REL_SUCCESS,
    CaptureStage,
    FaceDetectionStage,
    RoutedItem,
)

__all__ = [
    "FacePipeline",
    "REL_FAILURE",
    "REL_SUCCESS",
    "CaptureStage",
    "FaceDetectionStage",
    "RoutedItem",
]
