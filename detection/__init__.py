"""
House number detection module.

This module finds hand-marked white circles on scanned maps and reads the
house number written inside them. The work is split into small pipeline
steps so every stage can be inspected on its own.

Key components:
- types: Core data structures (Contour, HouseNumberDetection)
- contours: Connected-component contour extraction and geometry
- circles: Circle and white-circle filtering
- ocr: OCR engine interface and digit isolation
- steps: PipelineStep implementations for each stage
- detector: Configuration, pipeline assembly and the main entry point

The main entry point is `detect_house_numbers()`, which returns a list of
`HouseNumberDetection` in original image coordinates.
"""

from .types import Contour, HouseNumberDetection
from .contours import find_contours, measure_component, padded_bbox
from .circles import (
    average_brightness,
    passes_circle_criteria,
)
from .ocr import EasyOcrEngine, OcrEngine, create_easyocr_engine, isolate_digits
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
from .detector import (
    DetectionConfig,
    build_pipeline,
    detect_house_numbers,
    extract_detections,
    load_image,
    marker_center,
)

__all__ = [
    "Contour",
    "HouseNumberDetection",
    "find_contours",
    "measure_component",
    "padded_bbox",
    "average_brightness",
    "passes_circle_criteria",
    "EasyOcrEngine",
    "OcrEngine",
    "create_easyocr_engine",
    "isolate_digits",
    "GrayscaleStep",
    "BlurStep",
    "EdgeDetectionStep",
    "ContourDetectionStep",
    "CircleFilterStep",
    "WhiteCircleFilterStep",
    "BackgroundRemovalStep",
    "UpscaleStep",
    "SharpenStep",
    "OcrStep",
    "DetectionConfig",
    "build_pipeline",
    "detect_house_numbers",
    "extract_detections",
    "load_image",
    "marker_center",
]
