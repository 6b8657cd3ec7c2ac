"""
OCR engine interface and digit isolation for circle regions.

The recognition engine is expensive to load, so the pipeline creates it
once per run through a factory (see Pipeline.with_ocr_engine) and shares
it between all workers. Tests substitute a lightweight engine with the
same ``recognize`` method.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import numpy as np

import config
from preprocessing import to_grayscale
from warnings_utils import suppress_ocr_runtime_warnings

if TYPE_CHECKING:
    import easyocr

logger = logging.getLogger(__name__)


class OcrEngine(Protocol):
    """Interface for text recognition engines."""

    def recognize(self, image: np.ndarray) -> tuple[str, float] | None:
        """Recognize the text in a prepared image.

        Returns:
            Tuple of (text, confidence in [0, 1]), or None if nothing was read.
        """


@dataclass
class EasyOcrEngine:
    """Recognition engine backed by an EasyOCR reader.

    The reader is not documented as thread safe, so calls are serialized
    with a lock owned by the engine.
    """

    reader: "easyocr.Reader"
    allowlist: str | None = config.OCR_ALLOWLIST
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def recognize(self, image: np.ndarray) -> tuple[str, float] | None:
        with self._lock:
            results = self.reader.readtext(image, allowlist=self.allowlist)

        if not results:
            return None

        # Read fragments left to right so "4" "2" becomes "42"
        fragments = sorted(results, key=lambda r: min(p[0] for p in r[0]))
        text = "".join("".join(str(r[1]).split()) for r in fragments)
        if not text:
            return None

        confidence = float(np.mean([float(r[2]) for r in fragments]))
        return text, min(1.0, max(0.0, confidence))


def create_easyocr_engine(
    languages: tuple[str, ...] = config.OCR_LANGUAGES,
    gpu: bool = config.OCR_GPU,
) -> EasyOcrEngine:
    """Load the EasyOCR models and wrap them in an engine.

    Used as the default OCR engine factory. Import and model loading are
    deferred to this call so pipelines without OCR never pay for them.
    """
    logger.info("Initializing EasyOCR...")
    suppress_ocr_runtime_warnings()
    import easyocr

    reader = easyocr.Reader(list(languages), gpu=gpu)
    logger.info("EasyOCR initialized")
    return EasyOcrEngine(reader=reader)


def isolate_digits(
    roi: np.ndarray,
    padding: int = config.CONTOUR_PADDING,
    ring_margin: float = config.RING_MARGIN,
    dark_threshold: int = config.DARK_PIXEL_THRESHOLD,
    content_threshold: int = config.CONTENT_THRESHOLD,
    border: int = config.CONTENT_BORDER,
    center: tuple[float, float] | None = None,
    radius: float | None = None,
) -> np.ndarray:
    """Strip the printed ring and background from a circle region.

    Pixels farther than ``radius - ring_margin`` from ``center``, or not
    darker than ``dark_threshold``, are painted white. The result is
    cropped to the remaining dark content plus a uniform ``border``.

    Without an explicit ``center`` and ``radius`` the circle is assumed
    centred in ``roi`` with ``padding`` pixels of margin on each side, which
    only holds when the crop was not clipped at the image edge.

    Args:
        roi: Circle region (grayscale or RGB).
        padding: Margin around the circle in ``roi``.
        ring_margin: Pixels shaved off the radius to exclude the outline.
        dark_threshold: Pixels at or above this value are background.
        content_threshold: Pixels below this value count as content.
        border: White border kept around the content.
        center: Circle centre (x, y) in ``roi`` pixel coordinates.
        radius: Circle radius in pixels.

    Returns:
        Grayscale uint8 image. If no content survives, the blank (all white)
        masked region is returned at its original size.
    """
    gray = to_grayscale(roi)
    height, width = gray.shape

    if center is None:
        center = (width / 2.0, height / 2.0)
    if radius is None:
        radius = min(width, height) / 2.0 - padding
    center_x, center_y = center
    inner_radius = radius - ring_margin

    ys, xs = np.mgrid[0:height, 0:width]
    distance = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    keep = (distance < inner_radius) & (gray < dark_threshold)

    processed = np.full_like(gray, 255)
    processed[keep] = gray[keep]

    content_ys, content_xs = np.nonzero(processed < content_threshold)
    if content_xs.size == 0:
        return processed

    crop_x = max(0, int(content_xs.min()) - border)
    crop_y = max(0, int(content_ys.min()) - border)
    crop_x2 = min(width, int(content_xs.max()) + 1 + border)
    crop_y2 = min(height, int(content_ys.max()) + 1 + border)
    return processed[crop_y:crop_y2, crop_x:crop_x2].copy()
