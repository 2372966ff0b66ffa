"""
Face capture pipeline: command-line entry point.

Detects faces in image files, or captures frames from a camera and routes
each through face detection. Normalized faces are written as PNG files.

Usage:
    python src/main.py --config config/config.yaml detect photo.png
    python src/main.py --config config/config.yaml capture --max-frames 50

Arguments:
    --config: Path to configuration file
    detect: Detect faces in one or more image files
    capture: Capture frames from the configured camera and detect faces
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import yaml

from errors import DecodeError, InitializationError, InvalidInputError
from imaging.persist import IntermediateWriter
from models.config import AppConfig
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from ops.logging import setup_logging
from pipeline.stages.base import RoutedItem
from pipeline.stages.capture import CaptureStage
from runtime.context import RuntimeContext, build_runtime

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['model_path', 'output_dir', 'pipeline', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    if not isinstance(config['model_path'], str) or not config['model_path']:
        return False, "model_path must be a non-empty string"
    if not isinstance(config['output_dir'], str) or not config['output_dir']:
        return False, "output_dir must be a non-empty string"

    # Validate pipeline settings
    pipeline = config.get('pipeline') or {}
    if not isinstance(pipeline, dict):
        return False, "pipeline must be a mapping"
    for key in ('output_width', 'output_height'):
        if key in pipeline and (not _is_int(pipeline[key]) or pipeline[key] <= 0):
            return False, f"pipeline.{key} must be a positive integer"
    if 'scale_factor' in pipeline:
        sf = pipeline['scale_factor']
        if not isinstance(sf, (int, float)) or isinstance(sf, bool) or sf <= 1.0:
            return False, "pipeline.scale_factor must be a number greater than 1.0"
    if 'min_neighbors' in pipeline:
        mn = pipeline['min_neighbors']
        if not _is_int(mn) or mn < 0:
            return False, "pipeline.min_neighbors must be a non-negative integer"
    if 'persist_intermediates' in pipeline and not isinstance(pipeline['persist_intermediates'], bool):
        return False, "pipeline.persist_intermediates must be true or false"
    if 'edge_pruning' in pipeline and not isinstance(pipeline['edge_pruning'], bool):
        return False, "pipeline.edge_pruning must be true or false"
    for key in ('min_size', 'max_size'):
        size = pipeline.get(key)
        if size is None:
            continue
        if not isinstance(size, list) or len(size) != 2:
            return False, f"pipeline.{key} must be a list of [width, height]"
        if not all(_is_int(x) and x > 0 for x in size):
            return False, f"pipeline.{key} values must be positive integers"

    # Optional capture settings
    capture = config.get('capture', {}) or {}
    if capture:
        if 'device_id' in capture:
            device_id = capture['device_id']
            if not isinstance(device_id, (int, str)) or isinstance(device_id, bool):
                return False, "capture.device_id must be an integer (index) or string (file path)"
            if _is_int(device_id) and device_id < 0:
                return False, "capture.device_id integer must be non-negative"
        if 'frame_interval_ms' in capture:
            fi = capture['frame_interval_ms']
            if not _is_int(fi) or fi < 0:
                return False, "capture.frame_interval_ms must be a non-negative integer"
        if 'capture_timeout_s' in capture:
            ct = capture['capture_timeout_s']
            if not isinstance(ct, (int, float)) or isinstance(ct, bool) or ct <= 0:
                return False, "capture.capture_timeout_s must be a positive number"
        if capture.get('resolution') is not None:
            res = capture['resolution']
            if not isinstance(res, list) or len(res) != 2:
                return False, "capture.resolution must be a list of [width, height]"
            if not all(_is_int(x) and x > 0 for x in res):
                return False, "capture.resolution values must be positive integers"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def write_faces(items: List[RoutedItem], output_dir: str, stem: str) -> List[str]:
    """Write success items as <stem>-face-<n>.png. Returns written paths."""
    if not os.path.exists(output_dir):
        os.makedirs(output_dir, exist_ok=True)

    paths = []
    for item in items:
        if not item.is_success:
            continue
        path = os.path.join(output_dir, f"{stem}-face-{item.attributes['face.index']}.png")
        with open(path, "wb") as f:
            f.write(item.payload)
        paths.append(path)
    return paths


def run_detect(ctx: RuntimeContext, image_paths: List[str]) -> int:
    """Detect faces in image files. Returns the number of faces written."""
    total = 0
    for image_path in image_paths:
        try:
            with open(image_path, "rb") as f:
                payload = f.read()
        except OSError as e:
            logging.error(f"Cannot read {image_path}: {e}")
            continue

        try:
            items = ctx.detection_stage.on_trigger(payload, {"filename": image_path})
        except (DecodeError, InvalidInputError) as e:
            logging.error(f"Skipping {image_path}: {e}")
            continue

        stem = os.path.splitext(os.path.basename(image_path))[0]
        written = write_faces(items, ctx.config.output_dir, stem)
        if written:
            logging.info(f"{image_path}: {len(written)} face(s) written to {ctx.config.output_dir}")
        else:
            logging.info(f"{image_path}: no faces detected")
        total += len(written)
    return total


def run_capture(ctx: RuntimeContext, max_frames: Optional[int] = None) -> int:
    """Capture frames and detect faces in each. Returns the number of faces written."""
    capture_cfg = ctx.config.capture
    source = OpenCVSource(OpenCVSourceConfig.from_capture_config(capture_cfg, source_id="main-camera"))
    writer = IntermediateWriter(ctx.config.output_dir) if capture_cfg.persist_intermediates else None
    stage = CaptureStage(source, capture_cfg, writer)
    faces_written = 0

    def handle_frame(item: RoutedItem) -> None:
        nonlocal faces_written
        items = ctx.detection_stage.on_trigger(item.payload, item.attributes)
        stem = f"frame{item.attributes.get('frame.index', 0):06d}"
        faces_written += len(write_faces(items, ctx.config.output_dir, stem))

    try:
        with source:
            stage.run(handle_frame, max_frames=max_frames)
    except KeyboardInterrupt:
        stage.stop()
        logging.info("Capture interrupted by user")
    return faces_written


def main(argv: Optional[List[str]] = None) -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description='Face capture and normalization pipeline')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    detect_parser = subparsers.add_parser('detect', help='Detect faces in image files')
    detect_parser.add_argument('images', nargs='+', help='Image files to process')

    capture_parser = subparsers.add_parser('capture', help='Capture frames and detect faces')
    capture_parser.add_argument('--max-frames', type=int, default=None,
                                help='Stop after this many captured frames')

    args = parser.parse_args(argv)

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    setup_logging(config['log_path'], config['log_level'])
    app_config = AppConfig.from_dict(config)

    try:
        ctx = build_runtime(app_config)
    except (InitializationError, InvalidInputError) as e:
        logging.error(f"Startup failed: {e}")
        return 1

    try:
        if args.command == 'detect':
            run_detect(ctx, args.images)
        else:
            run_capture(ctx, max_frames=args.max_frames)
    except InitializationError as e:
        logging.error(f"Startup failed: {e}")
        return 1

    logging.info("Face pipeline stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
