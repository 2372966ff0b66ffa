"""
Tests for the detect -> extract -> resize face pipeline.
"""

import numpy as np
import pytest

from detection.engine import DetectionEngine
from errors import InvalidInputError
from imaging.extract import extract
from imaging.resize import resize
from models.config import PipelineConfig
from models.image import ImageBuffer
from pipeline.engine import FacePipeline


@pytest.fixture
def pipeline(face_model):
    return FacePipeline(DetectionEngine(face_model))


class TestFacePipeline:
    def test_single_face_normalized(self, pipeline, face_image):
        faces = pipeline.process(face_image, PipelineConfig())

        assert len(faces) == 1
        assert faces[0].size == (92, 112)
        assert faces[0].channels == 1
        assert faces[0].bit_depth == 8

    def test_no_faces(self, pipeline, blank_image):
        assert pipeline.process(blank_image) == []

    def test_faces_in_detection_order(self, pipeline, face_model, two_face_image):
        pairs = pipeline.detect_and_normalize(two_face_image)
        detected = list(DetectionEngine(face_model).detect(two_face_image))

        assert [rect for rect, _ in pairs] == detected
        for rect, face in pairs:
            expected = resize(extract(two_face_image, rect), 92, 112)
            assert np.array_equal(face.pixels, expected.pixels)

    def test_custom_output_size(self, pipeline, two_face_image):
        faces = pipeline.process(two_face_image, PipelineConfig(output_width=64, output_height=48))

        assert len(faces) == 2
        assert all(face.size == (64, 48) for face in faces)

    def test_color_faces_keep_channels(self, pipeline, face_image):
        bgr = ImageBuffer(np.dstack([face_image.pixels] * 3))
        faces = pipeline.process(bgr)

        assert len(faces) == 1
        assert faces[0].channels == 3

    def test_faces_are_independent_of_input(self, pipeline, face_image):
        faces = pipeline.process(face_image)
        face_image.pixels[:] = 0

        assert faces[0].pixels.max() == 255

    def test_default_config_used(self, face_model, face_image):
        pipeline = FacePipeline(DetectionEngine(face_model), PipelineConfig(min_neighbors=1000))

        assert pipeline.process(face_image) == []
        assert len(pipeline.process(face_image, PipelineConfig())) == 1

    def test_window_bounds_forwarded(self, pipeline, face_image):
        assert pipeline.process(face_image, PipelineConfig(min_size=(100, 100))) == []
        assert pipeline.process(face_image, PipelineConfig(max_size=(60, 60))) == []
        assert len(pipeline.process(face_image, PipelineConfig(min_size=(60, 60), max_size=(100, 100)))) == 1

    def test_edge_pruning_forwarded(self, pipeline, face_image, monkeypatch):
        calls = []
        original = pipeline.engine.detect

        def recording_detect(image, **kwargs):
            calls.append(kwargs)
            return original(image, **kwargs)

        monkeypatch.setattr(pipeline.engine, "detect", recording_detect)

        faces = pipeline.process(face_image, PipelineConfig(edge_pruning=True, min_size=(40, 40)))

        assert len(faces) == 1
        assert calls[0]["edge_pruning"] is True
        assert calls[0]["min_size"] == (40, 40)
        assert calls[0]["max_size"] is None

    def test_deterministic(self, pipeline, two_face_image):
        first = pipeline.process(two_face_image)
        second = pipeline.process(two_face_image)

        assert len(first) == len(second)
        for a, b in zip(first, second):
            assert np.array_equal(a.pixels, b.pixels)

    @pytest.mark.parametrize("config", [
        PipelineConfig(output_width=0),
        PipelineConfig(scale_factor=1.0),
        PipelineConfig(min_neighbors=-2),
    ])
    def test_invalid_config(self, pipeline, face_image, config):
        with pytest.raises(InvalidInputError):
            pipeline.process(face_image, config)

    def test_invalid_default_config(self, face_model):
        with pytest.raises(InvalidInputError):
            FacePipeline(DetectionEngine(face_model), PipelineConfig(scale_factor=0.9))
