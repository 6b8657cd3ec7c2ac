"""
Debug snapshot writer.

Persists the image of every record produced by every step so a run can be
inspected after the fact. Layout:

    <debug_dir>/00_input/01.png
    <debug_dir>/01_grayscale_conversion/01.png          (sequential runner)
    <debug_dir>/04_contour_detection/01-01-01-07.png    (lineage executor)

Lineage filenames extend their parent's filename by one segment, so
``01-01-01-07.png`` in step 4 descends from ``01-01-01.png`` in step 3.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

import cv2
import numpy as np

import config
from preprocessing import to_uint8

from .errors import DebugDirectoryError, DebugWriteError
from .types import PipelineData

if TYPE_CHECKING:
    from .executor import WorkItem

logger = logging.getLogger(__name__)

INPUT_DIR_NAME = "00_input"


def step_dir_name(index: int, step_name: str) -> str:
    """Directory name for a step's outputs, e.g. ``05_circle_filtering``."""
    slug = step_name.lower().replace(" ", "_")
    return f"{index:02d}_{slug}"


def flat_filename(position: int, extension: str = config.DEBUG_IMAGE_EXTENSION) -> str:
    """Filename for the 1-based ``position`` within a stage's output."""
    return f"{position:02d}.{extension}"


def lineage_filename(
    lineage: Iterable[int],
    extension: str = config.DEBUG_IMAGE_EXTENSION,
) -> str:
    """Filename encoding a lineage path, e.g. ``(1, 3, 2)`` -> ``01-03-02.png``.

    The empty path (the raw input) maps to ``01.png``.
    """
    ids = [f"{idx:02d}" for idx in lineage]
    if not ids:
        return flat_filename(1, extension)
    return f"{config.LINEAGE_SEPARATOR.join(ids)}.{extension}"


def prepare_debug_dir(path: str | Path) -> Path:
    """Validate and create the debug directory.

    The directory must either not exist (it is created) or be empty.
    Nothing is written or deleted when validation fails.

    Raises:
        DebugDirectoryError: If the path is a file or a non-empty directory.
    """
    path = Path(path)
    if path.exists():
        if not path.is_dir():
            raise DebugDirectoryError(f"Debug path is not a directory: {path}")
        if any(path.iterdir()):
            raise DebugDirectoryError(f"Debug directory is not empty: {path}")
    else:
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise DebugDirectoryError(f"Cannot create debug directory {path}: {e}") from e
    return path


def _save_image(img: np.ndarray, path: Path) -> None:
    """Save an RGB or grayscale image to disk.

    Raises:
        DebugWriteError: If the directory or file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DebugWriteError(f"Cannot create {path.parent}: {e}") from e

    # PNG holds 8 or 16 bits per channel
    if img.dtype not in (np.uint8, np.uint16):
        img = to_uint8(img)

    # Convert RGB to BGR for cv2 if color image
    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    elif img.ndim == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)

    try:
        ok = cv2.imwrite(str(path), img)
    except cv2.error as e:
        raise DebugWriteError(f"Failed to save debug image {path}: {e}") from e
    if not ok:
        raise DebugWriteError(f"Failed to save debug image {path}")


class DebugWriter:
    """Writes per-step snapshots below a validated debug directory.

    Safe to share between worker threads: every record maps to its own
    file and directory creation tolerates concurrent callers.
    """

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    @classmethod
    def create(cls, output_dir: str | Path) -> DebugWriter:
        """Validate ``output_dir`` (see prepare_debug_dir) and return a writer."""
        return cls(prepare_debug_dir(output_dir))

    def write_input(self, image: np.ndarray) -> Path:
        """Save the raw input as ``00_input/01.png``."""
        path = self.output_dir / INPUT_DIR_NAME / flat_filename(1)
        _save_image(image, path)
        logger.debug("Debug: saved %s/%s", INPUT_DIR_NAME, path.name)
        return path

    def write_stage(
        self,
        index: int,
        step_name: str,
        records: list[PipelineData],
    ) -> Path:
        """Save a whole stage output with flat 1-based numbering."""
        step_dir = self.output_dir / step_dir_name(index, step_name)
        try:
            step_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DebugWriteError(f"Cannot create {step_dir}: {e}") from e
        for position, record in enumerate(records, start=1):
            _save_image(record.image, step_dir / flat_filename(position))
        logger.debug("Debug: saved %d images to %s/", len(records), step_dir.name)
        return step_dir

    def write_item(self, index: int, step_name: str, item: WorkItem) -> Path:
        """Save one executor work item under its lineage filename."""
        dir_name = step_dir_name(index, step_name)
        path = self.output_dir / dir_name / lineage_filename(item.lineage)
        _save_image(item.data.image, path)
        logger.debug("Debug: saved %s/%s", dir_name, path.name)
        return path
