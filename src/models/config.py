"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from errors import InvalidInputError

DEFAULT_MODEL = "haarcascade_frontalface_default.xml"


@dataclass(frozen=True)
class PipelineConfig:
    """
    Per-invocation settings for face detection and normalization.

    Attributes:
        output_width: Width of every normalized face image.
        output_height: Height of every normalized face image.
        scale_factor: Step between successive detection window scales (> 1.0).
        min_neighbors: Raw candidates a cluster needs to be reported.
        persist_intermediates: Write received images, crops and faces to disk.
        edge_pruning: Skip windows with too few Canny edges.
        min_size: Smallest detection window (width, height), or None.
        max_size: Largest detection window (width, height), or None.
    """
    output_width: int = 92
    output_height: int = 112
    scale_factor: float = 1.5
    min_neighbors: int = 3
    persist_intermediates: bool = True
    edge_pruning: bool = False
    min_size: Optional[Tuple[int, int]] = None
    max_size: Optional[Tuple[int, int]] = None

    def validate(self) -> "PipelineConfig":
        if self.output_width <= 0 or self.output_height <= 0:
            raise InvalidInputError(
                f"Output size must be positive, got {self.output_width}x{self.output_height}"
            )
        if self.scale_factor <= 1.0:
            raise InvalidInputError(f"scale_factor must be > 1.0, got {self.scale_factor}")
        if self.min_neighbors < 0:
            raise InvalidInputError(f"min_neighbors must be >= 0, got {self.min_neighbors}")
        for name, size in (("min_size", self.min_size), ("max_size", self.max_size)):
            if size is not None and (len(size) != 2 or min(size) <= 0):
                raise InvalidInputError(f"{name} must be a positive (width, height), got {size}")
        return self

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        """Adapter: Create from config dictionary."""
        min_size = d.get("min_size")
        max_size = d.get("max_size")
        return cls(
            output_width=d.get("output_width", 92),
            output_height=d.get("output_height", 112),
            scale_factor=float(d.get("scale_factor", 1.5)),
            min_neighbors=d.get("min_neighbors", 3),
            persist_intermediates=d.get("persist_intermediates", True),
            edge_pruning=d.get("edge_pruning", False),
            min_size=tuple(min_size) if min_size is not None else None,
            max_size=tuple(max_size) if max_size is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "output_width": self.output_width,
            "output_height": self.output_height,
            "scale_factor": self.scale_factor,
            "min_neighbors": self.min_neighbors,
            "persist_intermediates": self.persist_intermediates,
            "edge_pruning": self.edge_pruning,
        }
        if self.min_size is not None:
            d["min_size"] = list(self.min_size)
        if self.max_size is not None:
            d["max_size"] = list(self.max_size)
        return d


@dataclass(frozen=True)
class CaptureConfig:
    """Capture stage configuration."""
    device_id: Union[int, str] = 0
    frame_interval_ms: int = 1000
    resolution: Optional[List[int]] = None
    capture_timeout_s: float = 5.0
    max_retries: int = 3
    persist_intermediates: bool = True

    @property
    def frame_interval_s(self) -> float:
        return self.frame_interval_ms / 1000.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureConfig":
        return cls(
            device_id=d.get("device_id", 0),
            frame_interval_ms=d.get("frame_interval_ms", 1000),
            resolution=d.get("resolution"),
            capture_timeout_s=float(d.get("capture_timeout_s", 5.0)),
            max_retries=d.get("max_retries", 3),
            persist_intermediates=d.get("persist_intermediates", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "device_id": self.device_id,
            "frame_interval_ms": self.frame_interval_ms,
            "capture_timeout_s": self.capture_timeout_s,
            "max_retries": self.max_retries,
            "persist_intermediates": self.persist_intermediates,
        }
        if self.resolution is not None:
            d["resolution"] = self.resolution
        return d


@dataclass
class AppConfig:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model_path: str = DEFAULT_MODEL
    output_dir: str = "output/faces"
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    log_path: str = "logs/face_pipeline.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Adapter: Create AppConfig from raw dictionary (e.g., from load_config)."""
        return cls(
            model_path=d.get("model_path", DEFAULT_MODEL),
            output_dir=d.get("output_dir", "output/faces"),
            pipeline=PipelineConfig.from_dict(d.get("pipeline", {}) or {}),
            capture=CaptureConfig.from_dict(d.get("capture", {}) or {}),
            log_path=d.get("log_path", "logs/face_pipeline.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "model_path": self.model_path,
            "output_dir": self.output_dir,
            "pipeline": self.pipeline.to_dict(),
            "capture": self.capture.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
