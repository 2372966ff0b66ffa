"""
Tests for the cascade detection engine.
"""

import numpy as np
import pytest

from detection.cascade import load_cascade
from detection.engine import DetectionEngine, detect
from errors import InvalidInputError
from models.detection import Rectangle
from models.image import ImageBuffer

from conftest import overlap, square_image

EXPECTED_FACE = Rectangle(50, 60, 80, 80)


class TestDetect:
    def test_single_face(self, face_model, face_image):
        result = DetectionEngine(face_model).detect(face_image, scale_factor=1.5, min_neighbors=3)

        assert len(result) == 1
        assert overlap(result[0], EXPECTED_FACE) > 0.6
        assert result.raw_candidates >= 3

    def test_blank_image(self, face_model, blank_image):
        result = DetectionEngine(face_model).detect(blank_image)

        assert len(result) == 0
        assert result.raw_candidates == 0

    def test_two_faces_in_emission_order(self, face_model, two_face_image):
        result = DetectionEngine(face_model).detect(two_face_image)

        assert len(result) == 2
        assert overlap(result[0], EXPECTED_FACE) > 0.6
        assert overlap(result[1], Rectangle(190, 60, 80, 80)) > 0.6

    def test_rectangles_within_bounds(self, face_model):
        # Squares hugging the borders push windows against the image edge
        image = square_image([(0, 0), (280, 200)])
        result = DetectionEngine(face_model).detect(image, min_neighbors=0)

        for rect in result:
            assert rect.width > 0 and rect.height > 0
            assert rect.fits_within(image.width, image.height)

    def test_image_smaller_than_window(self, face_model):
        image = ImageBuffer(np.full((20, 20), 255, dtype=np.uint8))
        result = DetectionEngine(face_model).detect(image)
        assert len(result) == 0

    def test_min_neighbors_zero_returns_raw_candidates(self, face_model, face_image):
        result = DetectionEngine(face_model).detect(face_image, min_neighbors=0)

        assert len(result) == result.raw_candidates
        assert len(result) >= 3
        for rect in result:
            assert overlap(rect, EXPECTED_FACE) > 0.5

    def test_high_min_neighbors_rejects_everything(self, face_model, face_image):
        result = DetectionEngine(face_model).detect(face_image, min_neighbors=1000)
        assert len(result) == 0
        assert result.raw_candidates > 0

    def test_color_input_matches_gray(self, face_model, face_image):
        bgr = ImageBuffer(np.dstack([face_image.pixels] * 3))
        engine = DetectionEngine(face_model)

        assert list(engine.detect(bgr)) == list(engine.detect(face_image))

    def test_deterministic(self, face_model, two_face_image):
        engine = DetectionEngine(face_model)
        first = engine.detect(two_face_image)
        second = engine.detect(two_face_image)

        assert first == second

    def test_input_not_modified(self, face_model, face_image):
        before = face_image.pixels.copy()
        DetectionEngine(face_model).detect(face_image)
        assert np.array_equal(face_image.pixels, before)

    def test_tree_classifier_matches_stumps(self, face_model, tree_model, two_face_image):
        stumps = DetectionEngine(face_model).detect(two_face_image, min_neighbors=0)
        tree = DetectionEngine(tree_model).detect(two_face_image, min_neighbors=0)

        assert list(tree) == list(stumps)

    def test_loaded_model_matches_in_memory(self, face_model, cascade_file, face_image):
        loaded = load_cascade(str(cascade_file))
        assert detect(face_image, loaded) == detect(face_image, face_model)

    def test_edge_pruning_keeps_faces(self, face_model, face_image, blank_image):
        engine = DetectionEngine(face_model, edge_pruning=True)

        assert len(engine.detect(face_image)) == 1
        assert len(engine.detect(blank_image)) == 0

    def test_edge_pruning_per_call_override(self, face_model, face_image):
        engine = DetectionEngine(face_model)
        assert engine.edge_pruning is False
        assert len(engine.detect(face_image, edge_pruning=True)) == 1
        assert len(engine.detect(ImageBuffer.blank(320, 240, value=90), edge_pruning=True)) == 0
        assert len(DetectionEngine(face_model, edge_pruning=True).detect(face_image, edge_pruning=False)) == 1

    def test_min_size_excludes_small_windows(self, face_model, face_image):
        engine = DetectionEngine(face_model)
        assert len(engine.detect(face_image, min_size=(100, 100))) == 0
        assert len(engine.detect(face_image, min_size=(60, 60))) == 1

    def test_max_size_excludes_large_windows(self, face_model, face_image):
        engine = DetectionEngine(face_model)
        assert len(engine.detect(face_image, max_size=(60, 60))) == 0
        assert len(engine.detect(face_image, max_size=(100, 100))) == 1


class TestDetectValidation:
    def test_rejects_16bit(self, face_model):
        image = ImageBuffer(np.zeros((100, 100), dtype=np.uint16))
        with pytest.raises(InvalidInputError):
            DetectionEngine(face_model).detect(image)

    @pytest.mark.parametrize("scale_factor", [1.0, 0.5, -2.0])
    def test_rejects_scale_factor(self, face_model, face_image, scale_factor):
        with pytest.raises(InvalidInputError):
            DetectionEngine(face_model).detect(face_image, scale_factor=scale_factor)

    def test_rejects_negative_min_neighbors(self, face_model, face_image):
        with pytest.raises(InvalidInputError):
            DetectionEngine(face_model).detect(face_image, min_neighbors=-1)
