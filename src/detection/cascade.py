"""
Haar cascade classifier model.

A ClassifierModel is an immutable, pre-trained cascade: a detection window
size, a table of Haar-like features and a sequence of boosted stages. It is
loaded once at startup (see load_cascade) and shared read-only by every
detection call.

Supported file format is OpenCV's "opencv-cascade-classifier" document
(read through cv2.FileStorage) with featureType HAAR, which covers the
cascades bundled with opencv-python (e.g. haarcascade_frontalface_default.xml).
Scanning is done by DetectionEngine rather than cv2.CascadeClassifier so
that neighbor grouping keeps clusters of at least min_neighbors members.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import cv2
import numpy as np

from errors import InitializationError

MAX_FEATURE_RECTS = 3

FeatureRect = Tuple[int, int, int, int, float]


@dataclass(frozen=True)
class HaarFeature:
    """
    A Haar-like feature: up to three weighted rectangles in window coordinates.

    Each rect is (x, y, width, height, weight). The feature value is the
    weighted sum of pixel sums under each rect.
    """
    rects: Tuple[FeatureRect, ...]


@dataclass(frozen=True)
class TreeNode:
    """
    Internal node of a weak classifier tree.

    Values < threshold go left, others right. A child index > 0 is another
    node; a child index <= 0 is leaf number -index.
    """
    left: int
    right: int
    feature: int
    threshold: float


@dataclass(frozen=True)
class WeakClassifier:
    nodes: Tuple[TreeNode, ...]
    leaves: Tuple[float, ...]

    @property
    def is_stump(self) -> bool:
        return len(self.nodes) == 1


@dataclass(frozen=True)
class CascadeStage:
    """A boosted stage: a window passes if the sum of leaf values >= threshold."""
    threshold: float
    classifiers: Tuple[WeakClassifier, ...]


@dataclass(frozen=True, eq=False)
class ClassifierModel:
    """
    Immutable Haar cascade.

    Attributes:
        window_size: Base detection window as (width, height).
        features: Feature table referenced by tree nodes.
        stages: Stages in evaluation order.
        name: Resource name the model was loaded from.
        rect_table: (F, 3, 4) int array of feature rects, read-only.
        weight_table: (F, 3) float array of rect weights, read-only.
    """
    window_size: Tuple[int, int]
    features: Tuple[HaarFeature, ...]
    stages: Tuple[CascadeStage, ...]
    name: str = "cascade"
    rect_table: np.ndarray = field(init=False, repr=False)
    weight_table: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        _validate_structure(self.window_size, self.features, self.stages)
        rects, weights = _compile_features(self.features)
        object.__setattr__(self, "rect_table", rects)
        object.__setattr__(self, "weight_table", weights)

    @classmethod
    def from_parts(
        cls,
        window_size: Sequence[int],
        features: Iterable[HaarFeature],
        stages: Iterable[CascadeStage],
        name: str = "cascade",
    ) -> "ClassifierModel":
        """Build a model from in-memory parts (lists are frozen into tuples)."""
        return cls(
            window_size=(int(window_size[0]), int(window_size[1])),
            features=tuple(features),
            stages=tuple(stages),
            name=name,
        )

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def weak_count(self) -> int:
        return sum(len(s.classifiers) for s in self.stages)


def _validate_structure(
    window_size: Tuple[int, int],
    features: Tuple[HaarFeature, ...],
    stages: Tuple[CascadeStage, ...],
) -> None:
    win_w, win_h = window_size
    if win_w <= 2 or win_h <= 2:
        raise InitializationError(f"Cascade window must be larger than 2x2, got {win_w}x{win_h}")
    if not stages:
        raise InitializationError("Cascade has no stages")

    for fi, feature in enumerate(features):
        if not 1 <= len(feature.rects) <= MAX_FEATURE_RECTS:
            raise InitializationError(f"Feature {fi} has {len(feature.rects)} rects")
        for x, y, w, h, _ in feature.rects:
            if x < 0 or y < 0 or w <= 0 or h <= 0 or x + w > win_w or y + h > win_h:
                raise InitializationError(
                    f"Feature {fi} rect {(x, y, w, h)} is outside the {win_w}x{win_h} window"
                )

    for si, stage in enumerate(stages):
        if not stage.classifiers:
            raise InitializationError(f"Stage {si} has no weak classifiers")
        for wc in stage.classifiers:
            if not wc.nodes:
                raise InitializationError(f"Stage {si} has a weak classifier with no nodes")
            for node in wc.nodes:
                if not 0 <= node.feature < len(features):
                    raise InitializationError(f"Stage {si} references unknown feature {node.feature}")
                for child in (node.left, node.right):
                    if child > 0 and child >= len(wc.nodes):
                        raise InitializationError(f"Stage {si} references unknown node {child}")
                    if child <= 0 and -child >= len(wc.leaves):
                        raise InitializationError(f"Stage {si} references unknown leaf {-child}")


def _compile_features(features: Tuple[HaarFeature, ...]) -> Tuple[np.ndarray, np.ndarray]:
    rects = np.zeros((len(features), MAX_FEATURE_RECTS, 4), dtype=np.intp)
    weights = np.zeros((len(features), MAX_FEATURE_RECTS), dtype=np.float64)
    for fi, feature in enumerate(features):
        for ri, (x, y, w, h, weight) in enumerate(feature.rects):
            rects[fi, ri] = (x, y, w, h)
            weights[fi, ri] = weight
    rects.flags.writeable = False
    weights.flags.writeable = False
    return rects, weights


def resolve_model_path(name: str) -> str:
    """
    Resolve a model resource name to a file path.

    Existing paths are returned as-is; bare names are looked up in the
    cascade directory bundled with opencv-python.

    Raises:
        InitializationError: If the resource cannot be found.
    """
    if os.path.isfile(name):
        return name

    data_dir = getattr(getattr(cv2, "data", None), "haarcascades", None)
    if data_dir:
        candidate = os.path.join(data_dir, os.path.basename(name))
        if os.path.isfile(candidate):
            return candidate

    raise InitializationError(f"Classifier model not found: {name}")


def load_cascade(name: str) -> ClassifierModel:
    """
    Load a Haar cascade from a path or bundled resource name.

    Raises:
        InitializationError: If the model is missing, unparsable or unsupported.
    """
    path = resolve_model_path(name)
    try:
        fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    except cv2.error as e:
        raise InitializationError(f"Failed to parse classifier model {path}: {e}") from e

    try:
        if not fs.isOpened():
            raise InitializationError(f"Failed to open classifier model {path}")
        model = parse_cascade(fs, name=os.path.basename(path))
    finally:
        fs.release()

    logging.info(
        f"Classifier model loaded: {model.name}, window={model.window_size}, "
        f"stages={model.stage_count}, weak_classifiers={model.weak_count}, "
        f"features={len(model.features)}"
    )
    return model


def parse_cascade(fs: cv2.FileStorage, name: str = "cascade") -> ClassifierModel:
    """Build a ClassifierModel from an opened cascade FileStorage."""
    node = _find_cascade_node(fs)

    feature_type = node.getNode("featureType")
    feature_type = feature_type.string().upper() if feature_type.isString() else "HAAR"
    if feature_type != "HAAR":
        raise InitializationError(f"Unsupported cascade feature type: {feature_type}")

    window = (int(_number(node, "width")), int(_number(node, "height")))
    stages = [_parse_stage(s) for s in _items(node, "stages")]
    features = [_parse_feature(f) for f in _items(node, "features")]

    stage_num = node.getNode("stageNum")
    if not stage_num.empty() and int(stage_num.real()) != len(stages):
        raise InitializationError(
            f"Cascade {name} declares {int(stage_num.real())} stages but contains {len(stages)}"
        )

    return ClassifierModel.from_parts(window, features, stages, name=name)


def _find_cascade_node(fs: cv2.FileStorage) -> cv2.FileNode:
    node = fs.getNode("cascade")
    if node.isMap():
        return node

    top = fs.getFirstTopLevelNode()
    if top.isMap() and not top.getNode("size").empty():
        raise InitializationError(
            "Legacy opencv-haar-classifier format is not supported; "
            "convert it with opencv_traincascade or use a current cascade file"
        )
    raise InitializationError("No cascade definition found in model file")


def _number(node: cv2.FileNode, key: str) -> float:
    child = node.getNode(key)
    if not (child.isInt() or child.isReal()):
        raise InitializationError(f"Cascade is missing numeric <{key}>")
    return child.real()


def _numbers(node: cv2.FileNode) -> List[float]:
    if node.isSeq():
        return [node.at(i).real() for i in range(node.size())]
    if node.isInt() or node.isReal():
        return [node.real()]
    return []


def _items(node: cv2.FileNode, key: str) -> List[cv2.FileNode]:
    child = node.getNode(key)
    if not child.isSeq():
        raise InitializationError(f"Cascade is missing <{key}>")
    return [child.at(i) for i in range(child.size())]


def _parse_stage(node: cv2.FileNode) -> CascadeStage:
    classifiers = []
    for wc in _items(node, "weakClassifiers"):
        raw = _numbers(wc.getNode("internalNodes"))
        if not raw or len(raw) % 4 != 0:
            raise InitializationError(f"Malformed internalNodes ({len(raw)} values)")
        nodes = tuple(
            TreeNode(
                left=int(raw[i]),
                right=int(raw[i + 1]),
                feature=int(raw[i + 2]),
                threshold=raw[i + 3],
            )
            for i in range(0, len(raw), 4)
        )
        leaves = tuple(_numbers(wc.getNode("leafValues")))
        classifiers.append(WeakClassifier(nodes=nodes, leaves=leaves))

    return CascadeStage(threshold=_number(node, "stageThreshold"), classifiers=tuple(classifiers))


def _parse_feature(node: cv2.FileNode) -> HaarFeature:
    tilted = node.getNode("tilted")
    if (tilted.isInt() or tilted.isReal()) and int(tilted.real()):
        raise InitializationError("Tilted Haar features are not supported")

    rects = []
    for r in _items(node, "rects"):
        values = _numbers(r)
        if len(values) != 5:
            raise InitializationError(f"Malformed feature rect: {values}")
        x, y, w, h, weight = values
        rects.append((int(x), int(y), int(w), int(h), weight))
    return HaarFeature(rects=tuple(rects))
