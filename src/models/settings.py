"""
User-adjustable viewer settings.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .config import FACINGS, Config


@dataclass(frozen=True)
class ViewerSettings:
    """
    Presentation parameters; the latest value wins.

    Attributes:
        confidence_threshold: Minimum score drawn in overlays and snapshots.
        show_boxes: Whether the live view and manual screenshots are annotated.
        facing: Which camera feeds the viewer ("front" or "back").
    """
    confidence_threshold: float = 0.5
    show_boxes: bool = True
    facing: str = "front"

    def __post_init__(self):
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be within [0, 1], got {self.confidence_threshold}"
            )
        if self.facing not in FACINGS:
            raise ValueError(f"facing must be one of {FACINGS}, got {self.facing!r}")

    @property
    def other_facing(self) -> str:
        return "back" if self.facing == "front" else "front"

    def updated(
        self,
        confidence_threshold: Optional[float] = None,
        show_boxes: Optional[bool] = None,
        facing: Optional[str] = None,
    ) -> "ViewerSettings":
        """Return a copy with the given fields replaced (None = keep)."""
        changes: Dict[str, Any] = {}
        if confidence_threshold is not None:
            changes["confidence_threshold"] = float(confidence_threshold)
        if show_boxes is not None:
            changes["show_boxes"] = bool(show_boxes)
        if facing is not None:
            changes["facing"] = facing
        return replace(self, **changes)

    @classmethod
    def from_config(cls, config: Config) -> "ViewerSettings":
        return cls(
            confidence_threshold=float(config.viewer.confidence_threshold),
            show_boxes=bool(config.viewer.show_boxes),
            facing=config.camera.facing,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence_threshold": self.confidence_threshold,
            "show_boxes": self.show_boxes,
            "facing": self.facing,
        }
