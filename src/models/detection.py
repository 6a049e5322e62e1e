"""
Detection models for object detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))

    def as_xywh(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x1, self.y1, self.width, self.height)

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)


@dataclass(frozen=True)
class Detection:
    """
    A single labelled object found in one frame.

    Attributes:
        label: Class name reported by the detector (e.g. "cat").
        score: Detection confidence (0-1).
        bbox: Bounding box in frame pixel coordinates.
    """
    label: str
    score: float
    bbox: BoundingBox

    def __post_init__(self):
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score must be within [0, 1], got {self.score}")

    @property
    def center(self) -> Tuple[float, float]:
        return self.bbox.center

    def is_visible(self, threshold: float) -> bool:
        """Whether this detection passes a confidence threshold."""
        return self.score >= threshold

    @classmethod
    def from_xywh(cls, label: str, score: float, x: float, y: float, w: float, h: float) -> "Detection":
        """Create Detection from an (x, y, width, height) box."""
        return cls(label=label, score=score, bbox=BoundingBox.from_xywh(x, y, w, h))

    @classmethod
    def from_xyxy(cls, label: str, score: float, x1: float, y1: float, x2: float, y2: float) -> "Detection":
        """Create Detection from x1, y1, x2, y2 coordinates."""
        return cls(label=label, score=score, bbox=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2))

    def to_dict(self) -> Dict[str, Any]:
        x, y, w, h = self.bbox.as_xywh()
        return {
            "label": self.label,
            "score": self.score,
            "bbox": [x, y, w, h],
        }


def filter_by_threshold(detections: Iterable[Detection], threshold: float) -> List[Detection]:
    """Return the detections whose score is at least `threshold`, in order."""
    return [d for d in detections if d.is_visible(threshold)]
