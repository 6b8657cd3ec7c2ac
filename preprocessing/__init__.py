"""
Image preprocessing functions for house number detection.

This module provides pure, deterministic functions for preparing images
for contour detection and OCR. All functions follow the pattern:
input -> output with no mutation of the original arrays.

The detection steps wrap these functions; they can also be used directly
for experimentation.
"""

from .normalization import (
    to_uint8,
    to_grayscale,
    gaussian_blur,
    detect_edges,
    fit_to_square,
    sharpen,
)

__all__ = [
    "to_uint8",
    "to_grayscale",
    "gaussian_blur",
    "detect_edges",
    "fit_to_square",
    "sharpen",
]
