from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from detection.cascade import ClassifierModel, load_cascade
from detection.engine import DetectionEngine
from imaging.persist import IntermediateWriter
from models.config import AppConfig
from pipeline.engine import FacePipeline
from pipeline.stages.detect import FaceDetectionStage


@dataclass
class RuntimeContext:
    """Holds the process-wide model and service references; avoids global singletons."""

    config: AppConfig
    model: ClassifierModel
    pipeline: FacePipeline
    detection_stage: FaceDetectionStage
    writer: Optional[IntermediateWriter] = None


def build_runtime(config: AppConfig, model: Optional[ClassifierModel] = None) -> RuntimeContext:
    """
    Load the classifier model once and wire the detection services.

    Raises:
        InitializationError: If the model cannot be loaded.
        InvalidInputError: If the pipeline config is out of range.
    """
    if model is None:
        model = load_cascade(config.model_path)

    writer = IntermediateWriter(config.output_dir) if config.pipeline.persist_intermediates else None
    pipeline = FacePipeline(DetectionEngine(model, edge_pruning=config.pipeline.edge_pruning), config.pipeline)
    stage = FaceDetectionStage(pipeline, config.pipeline, writer)

    logging.info(
        f"Runtime ready: model={model.name}, output={config.pipeline.output_width}x"
        f"{config.pipeline.output_height}, scale_factor={config.pipeline.scale_factor}, "
        f"min_neighbors={config.pipeline.min_neighbors}, edge_pruning={config.pipeline.edge_pruning}"
    )
    return RuntimeContext(
        config=config,
        model=model,
        pipeline=pipeline,
        detection_stage=stage,
        writer=writer,
    )
