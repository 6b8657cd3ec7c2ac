"""
Type definitions for the detection module.

This module defines the core data structures used by the detection steps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from pipeline import PipelineData


@dataclass(frozen=True)
class Contour:
    """A connected group of edge pixels.

    Coordinates are inclusive pixel bounds in the edge image (which has the
    same size as the original image).

    Attributes:
        label: Component label from connected-component labelling.
        min_x, min_y, max_x, max_y: Inclusive bounding box.
        pixel_count: Number of edge pixels in the component.
        perimeter: Arc length of the component's smoothed outer boundary.
        enclosed_area: Area enclosed by the smoothed outer boundary.
    """

    label: int
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    pixel_count: int
    perimeter: float = 0.0
    enclosed_area: float = 0.0

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def radius(self) -> float:
        """Radius approximated from the bounding box."""
        return (self.width + self.height) / 4.0

    @property
    def aspect_ratio(self) -> float:
        """Width / height of the bounding box."""
        return self.width / self.height

    @property
    def circularity(self) -> float:
        """perimeter^2 / (4 * pi * area); 1.0 for a perfect circle.

        Open or degenerate components enclose no area and score infinity,
        so they never pass a circularity ceiling.
        """
        if self.enclosed_area <= 0:
            return math.inf
        return (self.perimeter * self.perimeter) / (4.0 * math.pi * self.enclosed_area)

    @property
    def center(self) -> tuple[int, int]:
        return (self.min_x + self.max_x) // 2, (self.min_y + self.max_y) // 2

    def to_metadata(self) -> dict:
        """Metadata entries describing this contour on a pipeline record."""
        return {
            "contour_min_x": self.min_x,
            "contour_min_y": self.min_y,
            "contour_max_x": self.max_x,
            "contour_max_y": self.max_y,
            "pixel_count": self.pixel_count,
            "radius": float(self.radius),
            "circularity": float(self.circularity),
            "aspect_ratio": float(self.aspect_ratio),
        }

    @classmethod
    def from_record(cls, record: PipelineData) -> Contour | None:
        """Rebuild the contour bounds stored on a record by contour detection.

        Returns None if any of the bounds is missing.
        """
        keys = ("contour_min_x", "contour_min_y", "contour_max_x", "contour_max_y", "pixel_count")
        values = [record.get_int(key) for key in keys]
        if any(v is None for v in values):
            return None
        min_x, min_y, max_x, max_y, pixel_count = values
        return cls(
            label=0,
            min_x=min_x,
            min_y=min_y,
            max_x=max_x,
            max_y=max_y,
            pixel_count=pixel_count,
        )


@dataclass
class HouseNumberDetection:
    """A recognized house number on the map.

    Attributes:
        text: Recognized house number (e.g. "42", "12a").
        x: X coordinate of the circle centre in original image pixels.
        y: Y coordinate of the circle centre in original image pixels.
        confidence: Recognition confidence between 0 and 1.
                    Manually placed points use 1.0 by convention.
    """

    text: str
    x: int
    y: int
    confidence: float

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, d: dict) -> HouseNumberDetection:
        return cls(
            text=d["text"],
            x=int(d["x"]),
            y=int(d["y"]),
            confidence=float(d.get("confidence", 1.0)),
        )
