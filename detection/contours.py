"""
Contour extraction from edge images.

Edge pixels are grouped into connected components. Each component that is
large enough becomes a Contour carrying the geometry needed by the circle
filter: bounding box, pixel count, outer perimeter and enclosed area.
"""

import cv2
import numpy as np

from config import CONTOUR_MIN_AREA, CONTOUR_CONNECTIVITY, CONTOUR_SMOOTHING_EPSILON

from pipeline import BoundingBox

from .types import Contour


def measure_component(mask: np.ndarray, epsilon: float | None = None) -> tuple[float, float]:
    """Measure the outer boundary of a single-component binary mask.

    The traced boundary is simplified with ``cv2.approxPolyDP`` first, so a
    digitized circle measures close to its true perimeter rather than the
    length of its pixel staircase.

    Args:
        mask: 2D array, non-zero on the component's pixels.
        epsilon: Maximum distance between the boundary and its polygon
            (defaults to CONTOUR_SMOOTHING_EPSILON).

    Returns:
        Tuple of (perimeter, enclosed_area). Both are 0.0 for an empty mask.
    """
    if epsilon is None:
        epsilon = CONTOUR_SMOOTHING_EPSILON

    # One pixel of background around the mask keeps boundary tracing clean
    padded = cv2.copyMakeBorder(
        (mask > 0).astype(np.uint8), 1, 1, 1, 1, cv2.BORDER_CONSTANT, value=0
    )
    boundaries, _ = cv2.findContours(padded, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    if not boundaries:
        return 0.0, 0.0

    outer = max(boundaries, key=len)
    if epsilon > 0:
        outer = cv2.approxPolyDP(outer, epsilon, True)
    perimeter = float(cv2.arcLength(outer, True))
    enclosed_area = float(cv2.contourArea(outer))
    return perimeter, enclosed_area


def find_contours(
    edges: np.ndarray,
    min_area: int | None = None,
    connectivity: int | None = None,
) -> list[Contour]:
    """Find connected groups of edge pixels.

    Args:
        edges: Binary edge image (non-zero = edge), e.g. Canny output.
        min_area: Minimum pixel count per component (defaults to CONTOUR_MIN_AREA).
        connectivity: 4 or 8 (defaults to CONTOUR_CONNECTIVITY).

    Returns:
        Contours in label order (raster scan order of their first pixel).

    Raises:
        ValueError: If the image is not 2D or connectivity is not 4 or 8.
    """
    if min_area is None:
        min_area = CONTOUR_MIN_AREA
    if connectivity is None:
        connectivity = CONTOUR_CONNECTIVITY

    if edges.ndim != 2:
        raise ValueError(f"Contour detection requires a 2D edge image, got shape {edges.shape}")
    if connectivity not in (4, 8):
        raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")

    binary = (edges > 0).astype(np.uint8)
    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
        binary, connectivity=connectivity
    )

    contours = []
    # Label 0 is the background
    for label in range(1, num_labels):
        x, y, w, h, count = (int(v) for v in stats[label])
        if count < min_area:
            continue

        mask = labels[y:y + h, x:x + w] == label
        perimeter, enclosed_area = measure_component(mask)

        contours.append(
            Contour(
                label=label,
                min_x=x,
                min_y=y,
                max_x=x + w - 1,
                max_y=y + h - 1,
                pixel_count=count,
                perimeter=perimeter,
                enclosed_area=enclosed_area,
            )
        )

    return contours


def padded_bbox(contour: Contour, padding: int, img_width: int, img_height: int) -> BoundingBox:
    """Bounding box of a contour grown by ``padding``, clipped to the image."""
    x1 = max(0, contour.min_x - padding)
    y1 = max(0, contour.min_y - padding)
    x2 = min(img_width - 1, contour.max_x + padding)
    y2 = min(img_height - 1, contour.max_y + padding)
    return BoundingBox(x=x1, y=y1, width=x2 - x1 + 1, height=y2 - y1 + 1)
