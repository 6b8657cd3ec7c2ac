"""
Main house number detection orchestration.

This module ties the detection steps together into a Pipeline, runs it on a
map scan and turns the surviving records into HouseNumberDetection results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

import numpy as np
from PIL import Image, UnidentifiedImageError

import config
from pipeline import ImageDecodeError, Pipeline, PipelineData
from preprocessing import to_uint8

from .ocr import create_easyocr_engine
from .steps import (
    GrayscaleStep,
    BlurStep,
    EdgeDetectionStep,
    ContourDetectionStep,
    CircleFilterStep,
    WhiteCircleFilterStep,
    BackgroundRemovalStep,
    UpscaleStep,
    SharpenStep,
    OcrStep,
)
from .types import Contour, HouseNumberDetection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionConfig:
    """Parameters for one detection run.

    Defaults come from config.py. Call validate() before building a pipeline;
    build_pipeline() does so itself.
    """

    blur_sigma: float = config.BLUR_SIGMA
    edge_low_threshold: float = config.EDGE_LOW_THRESHOLD
    edge_high_threshold: float = config.EDGE_HIGH_THRESHOLD
    contour_min_area: int = config.CONTOUR_MIN_AREA
    contour_padding: int = config.CONTOUR_PADDING
    contour_connectivity: int = config.CONTOUR_CONNECTIVITY
    min_circle_radius: float = config.MIN_CIRCLE_RADIUS
    max_circle_radius: float = config.MAX_CIRCLE_RADIUS
    circularity_threshold: float = config.CIRCULARITY_THRESHOLD
    min_aspect_ratio: float = config.MIN_CIRCLE_ASPECT_RATIO
    max_aspect_ratio: float = config.MAX_CIRCLE_ASPECT_RATIO
    brightness_threshold: float = config.WHITE_BRIGHTNESS_THRESHOLD
    ring_margin: float = config.RING_MARGIN
    dark_threshold: int = config.DARK_PIXEL_THRESHOLD
    content_border: int = config.CONTENT_BORDER
    upscale_size: int = config.UPSCALE_TARGET_SIZE
    sharpen_enabled: bool = config.SHARPEN_ENABLED
    sharpen_strength: float = config.SHARPEN_STRENGTH
    ocr_enabled: bool = True
    ocr_min_confidence: float = config.OCR_CONFIDENCE_THRESHOLD
    verbose: bool = False
    debug_dir: str | Path | None = None

    def validate(self) -> None:
        """Check that the parameters are consistent.

        Raises:
            ValueError: If any parameter is out of range.
        """
        if self.blur_sigma <= 0:
            raise ValueError(f"blur_sigma must be positive, got {self.blur_sigma}")
        if self.edge_low_threshold < 0 or self.edge_high_threshold < 0:
            raise ValueError("Edge thresholds must be non-negative")
        if self.edge_low_threshold > self.edge_high_threshold:
            raise ValueError(
                f"edge_low_threshold ({self.edge_low_threshold}) must not exceed "
                f"edge_high_threshold ({self.edge_high_threshold})"
            )
        if self.contour_min_area < 0:
            raise ValueError(f"contour_min_area must be non-negative, got {self.contour_min_area}")
        if self.contour_padding < 0:
            raise ValueError(f"contour_padding must be non-negative, got {self.contour_padding}")
        if self.contour_connectivity not in (4, 8):
            raise ValueError(
                f"contour_connectivity must be 4 or 8, got {self.contour_connectivity}"
            )
        if self.min_circle_radius < 0 or self.min_circle_radius > self.max_circle_radius:
            raise ValueError(
                f"Invalid circle radius range [{self.min_circle_radius}, {self.max_circle_radius}]"
            )
        if self.circularity_threshold <= 0:
            raise ValueError(
                f"circularity_threshold must be positive, got {self.circularity_threshold}"
            )
        if self.min_aspect_ratio <= 0 or self.min_aspect_ratio > self.max_aspect_ratio:
            raise ValueError(
                f"Invalid aspect ratio band [{self.min_aspect_ratio}, {self.max_aspect_ratio}]"
            )
        if not 0 <= self.brightness_threshold <= 255:
            raise ValueError(
                f"brightness_threshold must be in [0, 255], got {self.brightness_threshold}"
            )
        if not 0 <= self.dark_threshold <= 255:
            raise ValueError(f"dark_threshold must be in [0, 255], got {self.dark_threshold}")
        if self.ring_margin < 0 or self.content_border < 0:
            raise ValueError("ring_margin and content_border must be non-negative")
        if self.upscale_size <= 0:
            raise ValueError(f"upscale_size must be positive, got {self.upscale_size}")
        if not 0 <= self.ocr_min_confidence <= 1:
            raise ValueError(
                f"ocr_min_confidence must be in [0, 1], got {self.ocr_min_confidence}"
            )


def build_pipeline(
    detection_config: DetectionConfig | None = None,
    ocr_engine_factory: Callable[[], Any] | None = None,
) -> Pipeline:
    """Build the standard detection pipeline for a configuration.

    Args:
        detection_config: Parameters (defaults to DetectionConfig()).
        ocr_engine_factory: Builds the OCR engine on first use. Defaults to
                            EasyOCR when OCR is enabled.

    Raises:
        ValueError: If the configuration is invalid.
        DebugDirectoryError: If the debug directory is not empty.
    """
    cfg = detection_config or DetectionConfig()
    cfg.validate()

    pipeline = (
        Pipeline()
        .with_verbose(cfg.verbose)
        .add_step(GrayscaleStep())
        .add_step(BlurStep(sigma=cfg.blur_sigma))
        .add_step(EdgeDetectionStep(cfg.edge_low_threshold, cfg.edge_high_threshold))
        .add_step(
            ContourDetectionStep(
                min_area=cfg.contour_min_area,
                padding=cfg.contour_padding,
                connectivity=cfg.contour_connectivity,
            )
        )
        .add_step(
            CircleFilterStep(
                min_radius=cfg.min_circle_radius,
                max_radius=cfg.max_circle_radius,
                circularity_threshold=cfg.circularity_threshold,
                min_aspect_ratio=cfg.min_aspect_ratio,
                max_aspect_ratio=cfg.max_aspect_ratio,
            )
        )
        .add_step(WhiteCircleFilterStep(brightness_threshold=cfg.brightness_threshold))
    )

    if cfg.ocr_enabled:
        pipeline.add_step(
            BackgroundRemovalStep(
                padding=cfg.contour_padding,
                ring_margin=cfg.ring_margin,
                dark_threshold=cfg.dark_threshold,
                border=cfg.content_border,
            )
        )
        pipeline.add_step(UpscaleStep(target_size=cfg.upscale_size))
        if cfg.sharpen_enabled:
            pipeline.add_step(SharpenStep(strength=cfg.sharpen_strength))
        pipeline.add_step(OcrStep(min_confidence=cfg.ocr_min_confidence))
        pipeline.with_ocr_engine(ocr_engine_factory or create_easyocr_engine)

    if cfg.debug_dir is not None:
        pipeline.with_debug(cfg.debug_dir)

    return pipeline


def marker_center(record: PipelineData) -> tuple[int, int]:
    """Centre of a record's circle in original image coordinates.

    Uses the contour bounds when present. Padded crops clipped at the image
    edge are off-centre, so the region centre is only the fallback.
    """
    contour = Contour.from_record(record)
    if contour is not None:
        return contour.center
    return record.center


def extract_detections(records: Iterable[PipelineData]) -> list[HouseNumberDetection]:
    """Convert recognized records into detections.

    Records without OCR text are skipped. The position is marker_center().
    """
    detections = []
    for record in records:
        text = record.get_string("ocr_text")
        if not text:
            continue
        x, y = marker_center(record)
        confidence = record.get_number("ocr_confidence")
        detections.append(
            HouseNumberDetection(
                text=text,
                x=int(x),
                y=int(y),
                confidence=1.0 if confidence is None else confidence,
            )
        )
    return detections


def detect_house_numbers(
    image: np.ndarray,
    detection_config: DetectionConfig | None = None,
    ocr_engine_factory: Callable[[], Any] | None = None,
    use_executor: bool = True,
) -> list[HouseNumberDetection]:
    """Detect and recognize the house numbers on a map scan.

    Args:
        image: RGB (or grayscale) map image as numpy array.
        detection_config: Detection parameters.
        ocr_engine_factory: Overrides the default EasyOCR engine.
        use_executor: Run through the concurrent executor (default) or the
                      sequential runner. Both give the same detections.

    Returns:
        Detections ordered by lineage (executor) or by discovery (sequential).
    """
    pipeline = build_pipeline(detection_config, ocr_engine_factory)
    if use_executor:
        records = pipeline.run_with_executor(image)
    else:
        records = pipeline.run(image)

    detections = extract_detections(records)
    logger.debug("Detected %d house numbers", len(detections))
    return detections


def _decode_high_depth(img: Image.Image) -> np.ndarray:
    """Scale a 16-bit, 32-bit or float single-channel image down to 8-bit RGB."""
    values = np.array(img)
    # 16-bit PNGs often open as 32-bit "I" with values in the 16-bit range
    if values.dtype == np.int32 and values.size and values.min() >= 0 and values.max() <= 65535:
        values = values.astype(np.uint16)
    gray = to_uint8(values)
    return np.stack([gray, gray, gray], axis=-1)


def load_image(path: str | Path) -> np.ndarray:
    """Decode an image file into an 8-bit RGB numpy array.

    Images deeper than 8 bits per channel are rescaled to 0-255 rather
    than clipped.

    Raises:
        ImageDecodeError: If the file is missing or not a decodable image.
    """
    try:
        with Image.open(path) as img:
            if img.mode.startswith("I") or img.mode == "F":
                return _decode_high_depth(img)
            return np.array(img.convert("RGB"))
    except (OSError, UnidentifiedImageError) as e:
        raise ImageDecodeError(f"Could not decode image {path}: {e}") from e
