"""
Circle filtering for candidate house number markers.

House numbers are hand-marked as white circles with dark digits. This
module holds the shape and brightness checks used by the circle filter
steps.
"""

import numpy as np

from config import (
    MIN_CIRCLE_RADIUS,
    MAX_CIRCLE_RADIUS,
    CIRCULARITY_THRESHOLD,
    MIN_CIRCLE_ASPECT_RATIO,
    MAX_CIRCLE_ASPECT_RATIO,
)
from preprocessing import to_grayscale

from .types import Contour


def passes_circle_criteria(
    circularity: float,
    radius: float,
    aspect_ratio: float,
    min_radius: float = MIN_CIRCLE_RADIUS,
    max_radius: float = MAX_CIRCLE_RADIUS,
    circularity_threshold: float = CIRCULARITY_THRESHOLD,
    min_aspect_ratio: float = MIN_CIRCLE_ASPECT_RATIO,
    max_aspect_ratio: float = MAX_CIRCLE_ASPECT_RATIO,
) -> bool:
    """Check measured contour geometry against the circle bounds.

    ``circularity_threshold`` is a ceiling on the circularity score: lower
    scores are rounder, 1.0 is a perfect circle.
    """
    return (
        circularity <= circularity_threshold
        and min_radius <= radius <= max_radius
        and min_aspect_ratio <= aspect_ratio <= max_aspect_ratio
    )


def average_brightness(contour: Contour, image: np.ndarray) -> float:
    """Mean grayscale brightness of the image inside the contour's circle.

    Samples pixels of the contour bounding box whose distance to the box
    centre is at most the contour radius.

    Args:
        contour: Contour whose bounds are in ``image`` coordinates.
        image: Original image (grayscale or RGB, any bit depth).

    Returns:
        Mean brightness in [0, 255], or 0.0 if no pixel was sampled.
    """
    img_height, img_width = image.shape[:2]

    x1, y1 = max(0, contour.min_x), max(0, contour.min_y)
    x2, y2 = min(img_width - 1, contour.max_x), min(img_height - 1, contour.max_y)
    if x2 < x1 or y2 < y1:
        return 0.0

    center_x, center_y = contour.center
    ys, xs = np.mgrid[y1:y2 + 1, x1:x2 + 1]
    distance = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    inside = distance <= contour.radius

    region = to_grayscale(image[y1:y2 + 1, x1:x2 + 1])
    if not inside.any():
        return 0.0
    return float(region[inside].mean())

