"""
Face detection with Haar cascade classifiers.

The model is loaded once (load_cascade) and handed to a DetectionEngine,
which runs the multi-scale cascade and neighbor clustering.
"""

from .cascade import (
    CascadeStage,
    ClassifierModel,
    HaarFeature,
    TreeNode,
    WeakClassifier,
    load_cascade,
    resolve_model_path,
)
from .engine import DetectionEngine, detect
from .grouping import group_rectangles

__all__ = [
    "CascadeStage",
    "ClassifierModel",
    "HaarFeature",
    "TreeNode",
    "WeakClassifier",
    "load_cascade",
    "resolve_model_path",
    "DetectionEngine",
    "detect",
    "group_rectangles",
]
