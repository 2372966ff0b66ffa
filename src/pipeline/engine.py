"""
Face pipeline: detection -> region extraction -> resize.

The pipeline is a pure, single-pass function of its inputs. It does no
I/O and keeps no state between calls; routing and persistence belong to
the host stages in pipeline.stages.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from detection.engine import DetectionEngine
from imaging.extract import extract
from imaging.resize import resize
from models.config import PipelineConfig
from models.detection import Rectangle
from models.image import ImageBuffer


class FacePipeline:
    """
    Turns one image into zero or more normalized face images.

    Example:
        pipeline = FacePipeline(DetectionEngine(model))
        faces = pipeline.process(image, PipelineConfig())
        if not faces:
            route_to_failure(image)
    """

    def __init__(self, engine: DetectionEngine, default_config: Optional[PipelineConfig] = None):
        self._engine = engine
        self._default_config = (default_config or PipelineConfig()).validate()

    @property
    def engine(self) -> DetectionEngine:
        return self._engine

    @property
    def default_config(self) -> PipelineConfig:
        return self._default_config

    def detect_and_normalize(
        self,
        image: ImageBuffer,
        config: Optional[PipelineConfig] = None,
    ) -> List[Tuple[Rectangle, ImageBuffer]]:
        """
        Detect faces and return (rectangle, normalized face) pairs in detection order.

        Raises:
            InvalidInputError: On an invalid config or unsupported image.
        """
        cfg = (config or self._default_config).validate()

        result = self._engine.detect(
            image,
            scale_factor=cfg.scale_factor,
            min_neighbors=cfg.min_neighbors,
            min_size=cfg.min_size,
            max_size=cfg.max_size,
            edge_pruning=cfg.edge_pruning,
        )

        faces: List[Tuple[Rectangle, ImageBuffer]] = []
        for rect in result:
            crop = extract(image, rect)
            faces.append((rect, resize(crop, cfg.output_width, cfg.output_height)))

        logging.debug(
            f"Pipeline processed {image.width}x{image.height} image: "
            f"faces={len(faces)}, raw_candidates={result.raw_candidates}"
        )
        return faces

    def process(self, image: ImageBuffer, config: Optional[PipelineConfig] = None) -> List[ImageBuffer]:
        """
        Detect, extract and resize every face in image.

        Returns:
            Normalized faces of exactly (output_width, output_height), in
            detection order. Empty when nothing is detected.
        """
        return [face for _, face in self.detect_and_normalize(image, config)]
