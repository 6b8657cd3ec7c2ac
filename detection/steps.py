"""
Pipeline steps for house number detection.

Each step is a frozen dataclass holding only its parameters, so one
instance can be shared by every worker thread of the executor.

Typical order:
    GrayscaleStep -> BlurStep -> EdgeDetectionStep -> ContourDetectionStep
    -> CircleFilterStep -> WhiteCircleFilterStep -> BackgroundRemovalStep
    -> UpscaleStep [-> SharpenStep] -> OcrStep
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

from tqdm import tqdm

from config import (
    BLUR_SIGMA,
    EDGE_LOW_THRESHOLD,
    EDGE_HIGH_THRESHOLD,
    CONTOUR_MIN_AREA,
    CONTOUR_PADDING,
    CONTOUR_CONNECTIVITY,
    MIN_CIRCLE_RADIUS,
    MAX_CIRCLE_RADIUS,
    CIRCULARITY_THRESHOLD,
    MIN_CIRCLE_ASPECT_RATIO,
    MAX_CIRCLE_ASPECT_RATIO,
    WHITE_BRIGHTNESS_THRESHOLD,
    RING_MARGIN,
    DARK_PIXEL_THRESHOLD,
    CONTENT_THRESHOLD,
    CONTENT_BORDER,
    UPSCALE_TARGET_SIZE,
    SHARPEN_STRENGTH,
    OCR_CONFIDENCE_THRESHOLD,
)
from pipeline import PipelineContext, PipelineData, PipelineStep, StageError
from preprocessing import to_grayscale, gaussian_blur, detect_edges, fit_to_square, sharpen

from .circles import average_brightness, passes_circle_criteria
from .contours import find_contours, padded_bbox
from .ocr import isolate_digits
from .types import Contour

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrayscaleStep(PipelineStep):
    """Convert each record's image to grayscale."""

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        return [record.with_image(to_grayscale(record.image)) for record in data]

    @property
    def name(self) -> str:
        return "Grayscale Conversion"


@dataclass(frozen=True)
class BlurStep(PipelineStep):
    """Gaussian blur to suppress scan noise before edge detection.

    Attributes:
        sigma: Standard deviation of the Gaussian kernel.
    """

    sigma: float = BLUR_SIGMA

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        return [record.with_image(gaussian_blur(record.image, self.sigma)) for record in data]

    @property
    def name(self) -> str:
        return "Gaussian Blur"


@dataclass(frozen=True)
class EdgeDetectionStep(PipelineStep):
    """Canny edge detection. Requires grayscale input."""

    low_threshold: float = EDGE_LOW_THRESHOLD
    high_threshold: float = EDGE_HIGH_THRESHOLD

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        return [
            record.with_image(
                detect_edges(record.image, self.low_threshold, self.high_threshold)
            )
            for record in data
        ]

    @property
    def name(self) -> str:
        return "Edge Detection"


@dataclass(frozen=True)
class ContourDetectionStep(PipelineStep):
    """Split an edge image into one record per connected edge component.

    Each output record carries a padded crop of the original image and the
    contour geometry as metadata.

    Attributes:
        min_area: Minimum edge pixel count per component.
        padding: Margin added around the component box before cropping.
        connectivity: Pixel connectivity, 4 or 8.
    """

    min_area: int = CONTOUR_MIN_AREA
    padding: int = CONTOUR_PADDING
    connectivity: int = CONTOUR_CONNECTIVITY

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        results = []
        for record in data:
            original = record.original
            img_height, img_width = original.shape[:2]
            offset_x = record.bbox.x if record.bbox is not None else 0
            offset_y = record.bbox.y if record.bbox is not None else 0

            contours = find_contours(
                record.image, min_area=self.min_area, connectivity=self.connectivity
            )
            for contour in contours:
                if offset_x or offset_y:
                    contour = replace(
                        contour,
                        min_x=contour.min_x + offset_x,
                        min_y=contour.min_y + offset_y,
                        max_x=contour.max_x + offset_x,
                        max_y=contour.max_y + offset_y,
                    )
                bbox = padded_bbox(contour, self.padding, img_width, img_height)
                region = PipelineData.from_region(bbox.crop(original), original, bbox)
                results.append(region.with_metadata_items(**contour.to_metadata()))

            logger.debug("Found %d contours", len(contours))
        return results

    @property
    def name(self) -> str:
        return "Contour Detection"


@dataclass(frozen=True)
class CircleFilterStep(PipelineStep):
    """Keep records whose contour is round and of plausible size.

    Records without contour geometry are rejected.
    """

    min_radius: float = MIN_CIRCLE_RADIUS
    max_radius: float = MAX_CIRCLE_RADIUS
    circularity_threshold: float = CIRCULARITY_THRESHOLD
    min_aspect_ratio: float = MIN_CIRCLE_ASPECT_RATIO
    max_aspect_ratio: float = MAX_CIRCLE_ASPECT_RATIO

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        results = []
        for record in data:
            circularity = record.get_number("circularity")
            radius = record.get_number("radius")
            aspect_ratio = record.get_number("aspect_ratio")
            if radius is None or aspect_ratio is None:
                continue

            passed = passes_circle_criteria(
                math.inf if circularity is None else circularity,
                radius,
                aspect_ratio,
                min_radius=self.min_radius,
                max_radius=self.max_radius,
                circularity_threshold=self.circularity_threshold,
                min_aspect_ratio=self.min_aspect_ratio,
                max_aspect_ratio=self.max_aspect_ratio,
            )
            if passed:
                results.append(record.with_metadata("is_circle", True))
        return results

    @property
    def name(self) -> str:
        return "Circle Filtering"


@dataclass(frozen=True)
class WhiteCircleFilterStep(PipelineStep):
    """Keep circles whose interior in the original image is bright.

    Raises:
        StageError: If a record carries no contour bounds.
    """

    brightness_threshold: float = WHITE_BRIGHTNESS_THRESHOLD

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        results = []
        for record in data:
            contour = Contour.from_record(record)
            if contour is None:
                raise StageError(self.name, "record has no contour metadata")

            brightness = average_brightness(contour, record.original)
            if brightness >= self.brightness_threshold:
                results.append(
                    record.with_metadata_items(is_white=True, brightness=float(brightness))
                )
        return results

    @property
    def name(self) -> str:
        return "White Circle Filtering"


@dataclass(frozen=True)
class BackgroundRemovalStep(PipelineStep):
    """Mask out the circle outline and background, keeping only the digits.

    The mask is centred on the record's contour when contour metadata is
    present, so crops clipped at the image edge are masked correctly.
    Records without it fall back to a circle centred in the crop.
    """

    padding: int = CONTOUR_PADDING
    ring_margin: float = RING_MARGIN
    dark_threshold: int = DARK_PIXEL_THRESHOLD
    content_threshold: int = CONTENT_THRESHOLD
    border: int = CONTENT_BORDER

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        results = []
        for record in data:
            center = radius = None
            contour = Contour.from_record(record)
            if contour is not None and record.bbox is not None:
                center = (
                    (contour.min_x + contour.max_x) / 2.0 - record.bbox.x,
                    (contour.min_y + contour.max_y) / 2.0 - record.bbox.y,
                )
                radius = contour.radius

            digits = isolate_digits(
                record.image,
                padding=self.padding,
                ring_margin=self.ring_margin,
                dark_threshold=self.dark_threshold,
                content_threshold=self.content_threshold,
                border=self.border,
                center=center,
                radius=radius,
            )
            results.append(record.with_image(digits))
        return results

    @property
    def name(self) -> str:
        return "Background Removal"


@dataclass(frozen=True)
class UpscaleStep(PipelineStep):
    """Scale each image onto a white square canvas of ``target_size`` pixels."""

    target_size: int = UPSCALE_TARGET_SIZE

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        return [record.with_image(fit_to_square(record.image, self.target_size)) for record in data]

    @property
    def name(self) -> str:
        return "Upscale"


@dataclass(frozen=True)
class SharpenStep(PipelineStep):
    strength: float = SHARPEN_STRENGTH

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        return [
            record.with_image(sharpen(to_grayscale(record.image), self.strength))
            for record in data
        ]

    @property
    def name(self) -> str:
        return "Sharpen"


@dataclass(frozen=True)
class OcrStep(PipelineStep):
    """Recognize the house number in each record.

    Uses the run's shared OCR engine, created on first use. Records with no
    recognized text, or with confidence below ``min_confidence``, are dropped.

    Attributes:
        min_confidence: Minimum recognition confidence to keep a record.
    """

    min_confidence: float = OCR_CONFIDENCE_THRESHOLD

    def process(self, data: list[PipelineData], context: PipelineContext) -> list[PipelineData]:
        if not data:
            return []

        engine = context.ocr_engine.get()
        results = []
        # The executor passes one record per call
        show_progress = context.verbose and len(data) > 1
        for record in tqdm(data, desc="OCR", unit="region", disable=not show_progress, leave=False):
            recognized = engine.recognize(record.image)
            if recognized is None:
                continue

            text, confidence = recognized
            cleaned = "".join(str(text).split())
            if not cleaned or confidence < self.min_confidence:
                logger.debug("Rejected OCR result %r (confidence %.2f)", cleaned, confidence)
                continue

            results.append(
                record.with_metadata_items(ocr_text=cleaned, ocr_confidence=float(confidence))
            )
        return results

    @property
    def name(self) -> str:
        return "OCR Recognition"
