"""
History entry model: a recorded first sighting of an object class.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class HistoryEntry:
    """
    Immutable record of the first time a label was detected.

    Attributes:
        label: Object class name.
        score: Confidence of the detection that triggered the capture.
        timestamp: Unix timestamp of the capture.
        snapshot: JPEG bytes of the annotated frame.
    """
    label: str
    score: float
    timestamp: float
    snapshot: bytes = field(repr=False)

    @property
    def time_label(self) -> str:
        """Local wall-clock time of the capture (HH:MM:SS)."""
        return time.strftime("%H:%M:%S", time.localtime(self.timestamp))

    @property
    def score_percent(self) -> int:
        return round(self.score * 100)

    def to_dict(self) -> Dict[str, Any]:
        """Metadata only; snapshot bytes are exported separately."""
        return {
            "label": self.label,
            "score": self.score,
            "timestamp": self.timestamp,
            "time_label": self.time_label,
            "snapshot_bytes": len(self.snapshot),
        }
