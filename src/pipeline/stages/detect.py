"""
Face detection stage.

Host-side wrapper around FacePipeline: decodes the incoming payload,
runs the pipeline and routes one success item per face, or the original
payload to failure when no face is found or the image cannot be scanned
(for example a 16-bit PNG).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import InvalidInputError
from imaging.codec import decode_image, encode_image
from imaging.extract import extract
from imaging.persist import IntermediateWriter
from models.config import PipelineConfig
from pipeline.engine import FacePipeline
from .base import REL_FAILURE, REL_SUCCESS, RoutedItem


@dataclass
class DetectionStageStats:
    """Runtime statistics for the detection stage."""
    items_in: int = 0
    faces_out: int = 0
    failures_out: int = 0
    by_relationship: Dict[str, int] = field(default_factory=dict)


class FaceDetectionStage:
    """
    Routes encoded frames through the face pipeline.

    Example:
        stage = FaceDetectionStage(pipeline, PipelineConfig(), writer)
        for item in stage.on_trigger(png_bytes):
            forward(item)
    """

    def __init__(
        self,
        pipeline: FacePipeline,
        config: Optional[PipelineConfig] = None,
        writer: Optional[IntermediateWriter] = None,
        output_ext: str = ".png",
    ):
        self._pipeline = pipeline
        self.config = (config or pipeline.default_config).validate()
        self._writer = writer
        self._output_ext = output_ext
        self.stats = DetectionStageStats()

    def on_trigger(self, payload: bytes, attributes: Optional[Dict[str, Any]] = None) -> List[RoutedItem]:
        """
        Process one incoming item.

        Raises:
            DecodeError: If payload is not a decodable image.
        """
        attributes = dict(attributes or {})
        self.stats.items_in += 1

        image = decode_image(payload)
        persist = self._writer is not None and self.config.persist_intermediates
        if persist:
            self._writer.write(image, "received")

        try:
            faces = self._pipeline.detect_and_normalize(image, self.config)
        except InvalidInputError as e:
            logging.warning(
                f"Cannot run detection on {image.width}x{image.height} image: {e}, routing to {REL_FAILURE}"
            )
            return [self._route(RoutedItem(REL_FAILURE, payload, attributes))]

        if not faces:
            logging.info(
                f"No faces detected in {image.width}x{image.height} image, routing to {REL_FAILURE}"
            )
            return [self._route(RoutedItem(REL_FAILURE, payload, attributes))]

        out: List[RoutedItem] = []
        for index, (rect, face) in enumerate(faces):
            if persist:
                self._writer.write(extract(image, rect), "crop")
                self._writer.write(face, "face")
            item_attrs = dict(attributes)
            item_attrs.update({
                "face.index": index,
                "face.count": len(faces),
                "face.rect": rect.as_tuple(),
            })
            out.append(self._route(RoutedItem(REL_SUCCESS, encode_image(face, self._output_ext), item_attrs)))

        logging.info(f"Detected {len(faces)} face(s), routing to {REL_SUCCESS}")
        return out

    def _route(self, item: RoutedItem) -> RoutedItem:
        if item.is_success:
            self.stats.faces_out += 1
        else:
            self.stats.failures_out += 1
        self.stats.by_relationship[item.relationship] = (
            self.stats.by_relationship.get(item.relationship, 0) + 1
        )
        return item
