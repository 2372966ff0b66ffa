"""
Pytest configuration and shared fixtures.

The synthetic cascade used throughout the suite fires on a bright square
sitting in the middle quarter of an otherwise dark window. With the default
scale factor of 1.5 only the 3.375x pyramid level (81px windows) matches a
40px square, so a square at (70, 80) yields one face near (50, 60, 80, 80).
"""

import os
import sys
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from detection.cascade import (  # noqa: E402
    CascadeStage,
    ClassifierModel,
    HaarFeature,
    TreeNode,
    WeakClassifier,
)
from models.frame import FrameData  # noqa: E402
from models.image import ImageBuffer  # noqa: E402
from observation.base import FrameSource, ObservationConfig  # noqa: E402

FRAME_WIDTH = 320
FRAME_HEIGHT = 240

# Bright center against the whole window.
CENTER_FEATURE = HaarFeature(rects=((0, 0, 24, 24, -1.0), (6, 6, 12, 12, 4.0)))
# Bright center against the inner 18x18 band.
BAND_FEATURE = HaarFeature(rects=((3, 3, 18, 18, -1.0), (6, 6, 12, 12, 2.25)))

CENTER_THRESHOLD = 1.4
BAND_THRESHOLD = 0.3

CASCADE_XML = """<?xml version="1.0"?>
<opencv_storage>
<cascade type_id="opencv-cascade-classifier">
  <stageType>BOOST</stageType>
  <featureType>HAAR</featureType>
  <height>24</height>
  <width>24</width>
  <stageParams>
    <maxWeakCount>1</maxWeakCount></stageParams>
  <featureParams>
    <maxCatCount>0</maxCatCount></featureParams>
  <stageNum>2</stageNum>
  <stages>
    <_>
      <maxWeakCount>1</maxWeakCount>
      <stageThreshold>0.</stageThreshold>
      <weakClassifiers>
        <_>
          <internalNodes>
            0 -1 0 1.4</internalNodes>
          <leafValues>
            -1. 1.</leafValues></_></weakClassifiers></_>
    <_>
      <maxWeakCount>1</maxWeakCount>
      <stageThreshold>0.</stageThreshold>
      <weakClassifiers>
        <_>
          <internalNodes>
            0 -1 1 0.3</internalNodes>
          <leafValues>
            -1. 1.</leafValues></_></weakClassifiers></_></stages>
  <features>
    <_>
      <rects>
        <_>
          0 0 24 24 -1.</_>
        <_>
          6 6 12 12 4.</_></rects></_>
    <_>
      <rects>
        <_>
          3 3 18 18 -1.</_>
        <_>
          6 6 12 12 2.25</_></rects></_></features></cascade>
</opencv_storage>
"""


def _stump(feature: int, threshold: float) -> WeakClassifier:
    return WeakClassifier(
        nodes=(TreeNode(left=0, right=-1, feature=feature, threshold=threshold),),
        leaves=(-1.0, 1.0),
    )


def overlap(a, b):
    """Intersection over union of two Rectangles."""
    w = min(a.right, b.right) - max(a.x, b.x)
    h = min(a.bottom, b.bottom) - max(a.y, b.y)
    inter = w * h if w > 0 and h > 0 else 0
    union = a.area + b.area - inter
    return inter / union if union else 0.0


def square_image(origins, width=FRAME_WIDTH, height=FRAME_HEIGHT, size=40):
    """Dark frame with a bright size x size square at each (x, y) origin."""
    pixels = np.zeros((height, width), dtype=np.uint8)
    for x, y in origins:
        pixels[y:y + size, x:x + size] = 255
    return ImageBuffer(pixels)


@pytest.fixture
def face_model():
    """Two-stage stump cascade with a 24x24 window."""
    return ClassifierModel.from_parts(
        window_size=(24, 24),
        features=[CENTER_FEATURE, BAND_FEATURE],
        stages=[
            CascadeStage(threshold=0.0, classifiers=(_stump(0, CENTER_THRESHOLD),)),
            CascadeStage(threshold=0.0, classifiers=(_stump(1, BAND_THRESHOLD),)),
        ],
        name="synthetic",
    )


@pytest.fixture
def tree_model():
    """Same decision as face_model, expressed as one depth-two tree."""
    return ClassifierModel.from_parts(
        window_size=(24, 24),
        features=[CENTER_FEATURE, BAND_FEATURE],
        stages=[
            CascadeStage(
                threshold=0.0,
                classifiers=(
                    WeakClassifier(
                        nodes=(
                            TreeNode(left=0, right=1, feature=0, threshold=CENTER_THRESHOLD),
                            TreeNode(left=-1, right=-2, feature=1, threshold=BAND_THRESHOLD),
                        ),
                        leaves=(-1.0, -1.0, 1.0),
                    ),
                ),
            ),
        ],
        name="synthetic-tree",
    )


@pytest.fixture
def cascade_file(tmp_path):
    """face_model serialized in the OpenCV cascade XML format."""
    path = tmp_path / "synthetic_cascade.xml"
    path.write_text(CASCADE_XML)
    return path


@pytest.fixture
def face_image():
    """320x240 frame with one face-like square; expected face near (50, 60, 80, 80)."""
    return square_image([(70, 80)])


@pytest.fixture
def two_face_image():
    """320x240 frame with two face-like squares side by side."""
    return square_image([(70, 80), (210, 80)])


@pytest.fixture
def blank_image():
    """Uniform 320x240 frame with nothing to detect."""
    return ImageBuffer.blank(FRAME_WIDTH, FRAME_HEIGHT, value=90)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model_path: "haarcascade_frontalface_default.xml"
output_dir: "output/faces"

pipeline:
  output_width: 92
  output_height: 112
  scale_factor: 1.5
  min_neighbors: 3
  persist_intermediates: true
  edge_pruning: true
  min_size: null
  max_size: null

capture:
  device_id: 0
  frame_interval_ms: 1000
  capture_timeout_s: 5.0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model_path": "haarcascade_frontalface_default.xml",
        "output_dir": "output/faces",
        "pipeline": {
            "output_width": 92,
            "output_height": 112,
            "scale_factor": 1.5,
            "min_neighbors": 3,
            "persist_intermediates": True,
        },
        "capture": {
            "device_id": 0,
            "frame_interval_ms": 1000,
            "resolution": [640, 480],
            "capture_timeout_s": 5.0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


class MockSource(FrameSource):
    """In-memory frame source replaying a fixed list of frames."""

    def __init__(self, config: ObservationConfig, frames: list = None, clock=None):
        super().__init__(config, clock=clock)
        self._frames = frames or []
        self._pos = 0
        self.read_calls = 0

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self):
        self.read_calls += 1
        if not self._is_open or self._pos >= len(self._frames):
            return None

        frame = self._frames[self._pos]
        self._pos += 1
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False


@pytest.fixture
def frames():
    """Five 320x240 frames, each with a face-like square."""
    return [square_image([(70, 80)]).pixels.copy() for _ in range(5)]


@pytest.fixture
def mock_source(frames):
    return MockSource(ObservationConfig(source_id="mock-cam", poll_interval_s=0.001), frames)
