"""
Cascade detection engine.

Runs a Haar cascade over an image with a multi-scale sliding window and
returns neighbor-clustered rectangles in input-image coordinates.

Per scale the image is shrunk (rather than the features grown), integral
images are built, and all window positions are evaluated together with
numpy. Stages short-circuit: windows rejected by a stage are removed from
the candidate set and never reach later stages.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Tuple

import cv2
import numpy as np

from errors import InvalidInputError
from models.detection import DetectionResult, Rectangle
from models.image import ImageBuffer
from .cascade import ClassifierModel, WeakClassifier
from .grouping import GROUP_EPS, group_rectangles

# Windows with fewer edge pixels than this fraction of their area are
# skipped when edge pruning is enabled.
EDGE_MIN_DENSITY = 0.01


class _ScaleScan:
    """Integral images of one pyramid level. Lives for a single detect() call."""

    def __init__(self, scaled: np.ndarray, edge_pruning: bool):
        self.height, self.width = scaled.shape[:2]
        self.sum, self.sqsum = cv2.integral2(scaled, sdepth=cv2.CV_64F, sqdepth=cv2.CV_64F)
        self.edges: Optional[np.ndarray] = None
        if edge_pruning:
            edge_map = (cv2.Canny(scaled, 0, 50) > 0).astype(np.uint8)
            self.edges = cv2.integral(edge_map, sdepth=cv2.CV_64F)

    @staticmethod
    def rect_sums(table: np.ndarray, xs: np.ndarray, ys: np.ndarray, rx: int, ry: int, rw: int, rh: int) -> np.ndarray:
        x0 = xs + rx
        y0 = ys + ry
        x1 = x0 + rw
        y1 = y0 + rh
        return table[y1, x1] - table[y0, x1] - table[y1, x0] + table[y0, x0]


class DetectionEngine:
    """
    Detects objects with an immutable ClassifierModel.

    The engine holds no mutable state between calls; one engine may be
    shared by concurrent callers as long as each passes its own image.

    Example:
        model = load_cascade("haarcascade_frontalface_default.xml")
        engine = DetectionEngine(model)
        result = engine.detect(image, scale_factor=1.5, min_neighbors=3)
    """

    def __init__(self, model: ClassifierModel, edge_pruning: bool = False):
        self._model = model
        self._edge_pruning = edge_pruning

    @property
    def model(self) -> ClassifierModel:
        return self._model

    @property
    def edge_pruning(self) -> bool:
        return self._edge_pruning

    def detect(
        self,
        image: ImageBuffer,
        scale_factor: float = 1.5,
        min_neighbors: int = 3,
        min_size: Optional[Tuple[int, int]] = None,
        max_size: Optional[Tuple[int, int]] = None,
        edge_pruning: Optional[bool] = None,
    ) -> DetectionResult:
        """
        Run the cascade over image.

        Args:
            image: 8-bit grayscale or BGR image.
            scale_factor: Multiplicative step between window scales (> 1.0).
            min_neighbors: Raw hits a cluster needs to be reported (>= 0).
            min_size: Optional smallest window (width, height) in input pixels.
            max_size: Optional largest window (width, height) in input pixels.
            edge_pruning: Skip low-edge-density windows; None uses the engine default.

        Returns:
            DetectionResult in emission order, clipped to the image.

        Raises:
            InvalidInputError: On unsupported image format or parameters.
        """
        if image.bit_depth != 8:
            raise InvalidInputError(f"Detection requires an 8-bit image, got {image.bit_depth}-bit")
        if image.channels not in (1, 3):
            raise InvalidInputError(f"Detection requires 1 or 3 channels, got {image.channels}")
        if scale_factor <= 1.0:
            raise InvalidInputError(f"scale_factor must be > 1.0, got {scale_factor}")
        if min_neighbors < 0:
            raise InvalidInputError(f"min_neighbors must be >= 0, got {min_neighbors}")

        if edge_pruning is None:
            edge_pruning = self._edge_pruning
        gray = image.to_gray().pixels
        img_h, img_w = gray.shape

        candidates: List[Rectangle] = []
        for factor, scaled in self._pyramid(gray, scale_factor, min_size, max_size):
            win_w = int(round(self._model.window_size[0] * factor))
            win_h = int(round(self._model.window_size[1] * factor))
            step = 2 if factor <= 2.0 else 1
            xs, ys = self._scan_scale(scaled, step, edge_pruning)
            for x, y in zip(xs.tolist(), ys.tolist()):
                rect = Rectangle.clipped(
                    int(round(x * factor)), int(round(y * factor)), win_w, win_h, img_w, img_h
                )
                if rect.area > 0:
                    candidates.append(rect)

        grouped = group_rectangles(candidates, min_neighbors, GROUP_EPS)
        rectangles = []
        for r in grouped:
            rect = Rectangle.clipped(r.x, r.y, r.width, r.height, img_w, img_h)
            if rect.area > 0:
                rectangles.append(rect)

        logging.debug(
            f"Detection on {img_w}x{img_h}: raw_candidates={len(candidates)}, "
            f"detections={len(rectangles)}"
        )
        return DetectionResult(rectangles=tuple(rectangles), raw_candidates=len(candidates))

    def _pyramid(
        self,
        gray: np.ndarray,
        scale_factor: float,
        min_size: Optional[Tuple[int, int]],
        max_size: Optional[Tuple[int, int]],
    ) -> Iterator[Tuple[float, np.ndarray]]:
        """Yield (factor, scaled image) for every usable scale, smallest window first."""
        img_h, img_w = gray.shape
        win_w, win_h = self._model.window_size
        max_w, max_h = max_size if max_size else (img_w, img_h)

        factor = 1.0
        while True:
            window_w = int(round(win_w * factor))
            window_h = int(round(win_h * factor))
            if window_w > max_w or window_h > max_h:
                break

            scaled_w = int(round(img_w / factor))
            scaled_h = int(round(img_h / factor))
            if scaled_w < win_w or scaled_h < win_h:
                break

            if min_size is None or (window_w >= min_size[0] and window_h >= min_size[1]):
                if factor == 1.0:
                    yield factor, gray
                else:
                    yield factor, cv2.resize(gray, (scaled_w, scaled_h), interpolation=cv2.INTER_LINEAR)

            factor *= scale_factor

    def _scan_scale(self, scaled: np.ndarray, step: int, edge_pruning: bool) -> Tuple[np.ndarray, np.ndarray]:
        """Return (xs, ys) of window positions at this scale that pass every stage."""
        win_w, win_h = self._model.window_size
        scan = _ScaleScan(scaled, edge_pruning)

        grid_x, grid_y = np.meshgrid(
            np.arange(0, scan.width - win_w + 1, step, dtype=np.intp),
            np.arange(0, scan.height - win_h + 1, step, dtype=np.intp),
        )
        xs = grid_x.ravel()
        ys = grid_y.ravel()

        if scan.edges is not None and len(xs):
            edge_count = scan.rect_sums(scan.edges, xs, ys, 1, 1, win_w - 2, win_h - 2)
            keep = edge_count >= EDGE_MIN_DENSITY * (win_w - 2) * (win_h - 2)
            xs, ys = xs[keep], ys[keep]

        if not len(xs):
            return xs, ys

        inv_norm = self._inverse_norm(scan, xs, ys)

        for stage in self._model.stages:
            score = np.zeros(len(xs), dtype=np.float64)
            for wc in stage.classifiers:
                score += self._weak_scores(wc, scan, xs, ys, inv_norm)
            passed = score >= stage.threshold
            xs, ys, inv_norm = xs[passed], ys[passed], inv_norm[passed]
            if not len(xs):
                break

        return xs, ys

    def _inverse_norm(self, scan: _ScaleScan, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Per-window 1/stddev factor over the window inset by one pixel."""
        win_w, win_h = self._model.window_size
        area = (win_w - 2) * (win_h - 2)
        s = scan.rect_sums(scan.sum, xs, ys, 1, 1, win_w - 2, win_h - 2)
        sq = scan.rect_sums(scan.sqsum, xs, ys, 1, 1, win_w - 2, win_h - 2)
        nf = area * sq - s * s
        nf = np.where(nf > 0, np.sqrt(np.maximum(nf, 0.0)), 1.0)
        return 1.0 / nf

    def _feature_values(self, feature: int, scan: _ScaleScan, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        rects = self._model.rect_table[feature]
        weights = self._model.weight_table[feature]
        value = np.zeros(len(xs), dtype=np.float64)
        for (rx, ry, rw, rh), weight in zip(rects, weights):
            if weight == 0.0:
                continue
            value += weight * scan.rect_sums(scan.sum, xs, ys, rx, ry, rw, rh)
        return value

    def _weak_scores(
        self,
        wc: WeakClassifier,
        scan: _ScaleScan,
        xs: np.ndarray,
        ys: np.ndarray,
        inv_norm: np.ndarray,
    ) -> np.ndarray:
        leaves = np.asarray(wc.leaves, dtype=np.float64)

        if wc.is_stump:
            node = wc.nodes[0]
            value = self._feature_values(node.feature, scan, xs, ys) * inv_norm
            return np.where(value < node.threshold, leaves[-node.left], leaves[-node.right])

        node_idx = np.zeros(len(xs), dtype=np.intp)
        pending = np.ones(len(xs), dtype=bool)
        while pending.any():
            current = node_idx.copy()
            for k in np.unique(current[pending]):
                sel = np.flatnonzero(pending & (current == k))
                node = wc.nodes[k]
                value = self._feature_values(node.feature, scan, xs[sel], ys[sel]) * inv_norm[sel]
                node_idx[sel] = np.where(value < node.threshold, node.left, node.right)
            pending = node_idx > 0
        return leaves[-node_idx]


def detect(
    image: ImageBuffer,
    model: ClassifierModel,
    scale_factor: float = 1.5,
    min_neighbors: int = 3,
) -> DetectionResult:
    """Functional form of DetectionEngine(model).detect(...)."""
    return DetectionEngine(model).detect(image, scale_factor=scale_factor, min_neighbors=min_neighbors)
