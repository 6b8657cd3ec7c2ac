"""Detect command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from detection import (
    DetectionConfig,
    build_pipeline,
    extract_detections,
    load_image,
    marker_center,
)
from logging_utils import add_logging_args
from pipeline import PipelineError

logger = logging.getLogger(__name__)


def add_detect_subparser(subparsers: argparse._SubParsersAction) -> None:
    detect_parser = subparsers.add_parser(
        "detect",
        help="Detect and recognize house numbers on a map image",
    )
    detect_parser.add_argument(
        "image",
        help="Path to the map image (PNG, JPEG, ...)",
    )
    detect_parser.add_argument(
        "--skip-ocr",
        action="store_true",
        help="Stop after white circle filtering and report circle count only",
    )
    detect_parser.add_argument(
        "--debug-out",
        metavar="DIR",
        help="Write intermediate images for every step to DIR (must be empty)",
    )
    detect_parser.add_argument(
        "--sequential",
        action="store_true",
        help="Use the sequential runner instead of the concurrent executor",
    )
    detect_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        metavar="N",
        help="Worker threads per step for the concurrent executor (default: 1)",
    )
    detect_parser.add_argument(
        "--json",
        action="store_true",
        help="Print detections as a JSON array on stdout",
    )
    add_logging_args(detect_parser, subcommand=True)
    detect_parser.set_defaults(_cmd=cmd_detect)


def cmd_detect(args: argparse.Namespace) -> int:
    if args.workers < 1:
        logger.error("--workers must be at least 1, got %d", args.workers)
        return 1

    detection_config = DetectionConfig(
        ocr_enabled=not args.skip_ocr,
        verbose=args.verbose > 0,
        debug_dir=args.debug_out,
    )

    try:
        image = load_image(args.image)
        logger.info("Loaded %s (%dx%d)", args.image, image.shape[1], image.shape[0])

        pipeline = build_pipeline(detection_config)
        if args.sequential:
            records = pipeline.run(image)
        else:
            records = pipeline.run_with_executor(image, workers_per_stage=args.workers)
    except (PipelineError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    if args.skip_ocr:
        if args.json:
            circles = [
                {"x": x, "y": y}
                for x, y in (marker_center(record) for record in records)
            ]
            json.dump(circles, sys.stdout, indent=2)
            sys.stdout.write("\n")
        else:
            logger.info("White circles found: %d", len(records))
        return 0

    detections = extract_detections(records)
    if args.json:
        json.dump([d.to_dict() for d in detections], sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0

    logger.info("%s", "=" * 50)
    logger.info("House numbers found: %d", len(detections))
    logger.info("%s", "=" * 50)
    for detection in detections:
        logger.info(
            "  %-8s at (%d, %d)  confidence %.2f",
            detection.text,
            detection.x,
            detection.y,
            detection.confidence,
        )
    if args.debug_out:
        logger.info("Debug images saved to %s", args.debug_out)
    return 0
