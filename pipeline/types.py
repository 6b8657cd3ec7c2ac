"""
Type definitions for the pipeline module.

This module defines the record that flows between pipeline steps and the
small value types it is built from.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Union

import numpy as np

# Tagged metadata values: lookups go through the typed accessors below
MetadataValue = Union[bool, float, str, int]

_METADATA_TYPES = (bool, float, str, int)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in original image coordinates.

    Attributes:
        x: Left edge in pixels.
        y: Top edge in pixels.
        width: Width in pixels (positive).
        height: Height in pixels (positive).
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0:
            raise ValueError(f"BoundingBox origin must be non-negative, got ({self.x}, {self.y})")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"BoundingBox size must be positive, got {self.width}x{self.height}"
            )

    @property
    def x2(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    @property
    def center(self) -> tuple[int, int]:
        return self.x + self.width // 2, self.y + self.height // 2

    def fits_within(self, width: int, height: int) -> bool:
        """Check that the box lies inside an image of the given size."""
        return self.x2 <= width and self.y2 <= height

    def contains(self, other: BoundingBox) -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.x2 <= self.x2
            and other.y2 <= self.y2
        )

    def crop(self, image: np.ndarray) -> np.ndarray:
        """Return an owned copy of this region of ``image``."""
        return image[self.y:self.y2, self.x:self.x2].copy()

    def to_xywh(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


def _check_metadata_value(key: str, value: MetadataValue) -> None:
    if not isinstance(key, str):
        raise TypeError(f"Metadata keys must be str, got {type(key).__name__}")
    if not isinstance(value, _METADATA_TYPES):
        raise TypeError(
            f"Metadata value for {key!r} must be bool, float, str or int, "
            f"got {type(value).__name__}"
        )


def _shared_original(image: np.ndarray) -> np.ndarray:
    original = image.copy()
    original.setflags(write=False)
    return original


@dataclass(frozen=True, eq=False)
class PipelineData:
    """A single image region flowing through the pipeline.

    Records are never mutated once created: every step builds new records
    with ``with_image`` / ``with_metadata``. All records derived from one
    run share the same read-only ``original`` array.

    Attributes:
        image: This record's own pixels (full frame or a cropped region,
               grayscale or RGB depending on the stage).
        original: Shared, read-only full resolution source image.
        bbox: Region of ``original`` this record represents (None = whole image).
        metadata: Derived properties keyed by name, in insertion order.
    """

    image: np.ndarray
    original: np.ndarray = field(repr=False)
    bbox: BoundingBox | None = None
    metadata: dict[str, MetadataValue] = field(default_factory=dict)

    @classmethod
    def from_image(cls, image: np.ndarray) -> PipelineData:
        """Create the root record for a full input image.

        The original is copied once here and frozen; nothing downstream
        copies or writes it again.
        """
        original = _shared_original(image)
        return cls(image=image.copy(), original=original)

    @classmethod
    def from_region(
        cls,
        image: np.ndarray,
        original: np.ndarray,
        bbox: BoundingBox,
    ) -> PipelineData:
        """Create a record for a sub-region of ``original``.

        Raises:
            ValueError: If ``bbox`` does not lie within ``original``.
        """
        height, width = original.shape[:2]
        if not bbox.fits_within(width, height):
            raise ValueError(
                f"Bounding box {bbox.to_xywh()} exceeds original image {width}x{height}"
            )
        return cls(image=image, original=original, bbox=bbox)

    def with_image(self, image: np.ndarray) -> PipelineData:
        """Return a copy of this record carrying a new image."""
        return replace(self, image=image, metadata=dict(self.metadata))

    def with_metadata(self, key: str, value: MetadataValue) -> PipelineData:
        """Return a copy of this record with one metadata entry set."""
        _check_metadata_value(key, value)
        metadata = dict(self.metadata)
        metadata[key] = value
        return replace(self, metadata=metadata)

    def with_metadata_items(self, **items: MetadataValue) -> PipelineData:
        """Return a copy of this record with several metadata entries set."""
        metadata = dict(self.metadata)
        for key, value in items.items():
            _check_metadata_value(key, value)
            metadata[key] = value
        return replace(self, metadata=metadata)

    def get_bool(self, key: str) -> bool | None:
        value = self.metadata.get(key)
        return value if isinstance(value, bool) else None

    def get_float(self, key: str) -> float | None:
        value = self.metadata.get(key)
        return value if isinstance(value, float) else None

    def get_int(self, key: str) -> int | None:
        value = self.metadata.get(key)
        if isinstance(value, bool):
            return None
        return value if isinstance(value, int) else None

    def get_string(self, key: str) -> str | None:
        value = self.metadata.get(key)
        return value if isinstance(value, str) else None

    def get_number(self, key: str) -> float | None:
        """Get an int or float entry as float."""
        value = self.metadata.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    @property
    def center(self) -> tuple[int, int]:
        """Centre of this record's region in original image coordinates."""
        if self.bbox is not None:
            return self.bbox.center
        height, width = self.original.shape[:2]
        return width // 2, height // 2
