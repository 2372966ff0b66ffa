"""
Typed models for the face capture pipeline.
"""

from .detection import Rectangle, DetectionResult
from .image import ImageBuffer
from .frame import FrameData
from .config import AppConfig, CaptureConfig, PipelineConfig

__all__ = [
    # Image
    "ImageBuffer",
    "FrameData",
    # Detection
    "Rectangle",
    "DetectionResult",
    # Config
    "AppConfig",
    "CaptureConfig",
    "PipelineConfig",
]
