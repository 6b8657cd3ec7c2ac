"""Warnings helpers to keep runtime output clean."""

from __future__ import annotations

import warnings


def suppress_ocr_runtime_warnings() -> None:
    """Suppress noisy warnings emitted while loading and running EasyOCR.

    Covers the torch pin_memory warning on MPS-backed systems and EasyOCR's
    CPU fallback notice.
    """
    warnings.filterwarnings(
        "ignore",
        message=r".*pin_memory.*MPS.*",
        category=UserWarning,
        module=r"torch\.utils\.data\.dataloader",
    )
    warnings.filterwarnings(
        "ignore",
        message=r".*defaulting to CPU.*",
        category=UserWarning,
    )
