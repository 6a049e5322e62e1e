"""
History stage: records the first sighting of each object class.

Each label is captured at most once per session, from the first result set
it appears in. Later sightings (higher score, other position) are ignored.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set, Tuple

from models.config import HistoryConfig
from models.detection import Detection
from models.frame import FrameData
from models.history import HistoryEntry
from runtime.errors import FrameNotReady, SnapshotUnavailable
from .annotate import SnapshotCompositor


@dataclass
class HistoryStats:
    captured: int = 0
    duplicates_ignored: int = 0
    below_threshold_ignored: int = 0
    snapshot_failures: int = 0


class HistoryStore:
    """
    Append-only, newest-first record of first sightings.

    Only the detection scheduler calls record(); readers get immutable
    snapshots through entries(). The lock makes the check-then-insert atomic
    even if record() is ever called from more than one thread.
    """

    def __init__(
        self,
        compositor: SnapshotCompositor,
        config: Optional[HistoryConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._compositor = compositor
        self.config = config or HistoryConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = []
        self._labels: Set[str] = set()
        self.stats = HistoryStats()

    def record(
        self,
        detections: Sequence[Detection],
        frame_data: Optional[FrameData],
        threshold: float,
    ) -> List[HistoryEntry]:
        """
        Capture every label in `detections` that has never been recorded.

        The snapshot is drawn from `frame_data`, the frame the detections were
        computed on, with detections filtered by `threshold`. If no snapshot
        can be produced nothing is inserted and the labels stay unclaimed.

        Returns the new entries, in insertion order.
        """
        with self._lock:
            candidates = self._new_sightings(detections, threshold)
            if not candidates:
                return []

            try:
                snapshot = self._compositor.compose(frame_data, detections, threshold, draw_boxes=True)
            except (FrameNotReady, SnapshotUnavailable) as e:
                self.stats.snapshot_failures += 1
                labels = ", ".join(d.label for d in candidates)
                logging.warning(f"Skipping history capture for [{labels}]: {e}")
                return []

            timestamp = self._clock()
            created: List[HistoryEntry] = []
            for det in candidates:
                entry = HistoryEntry(label=det.label, score=det.score, timestamp=timestamp, snapshot=snapshot)
                self._entries.insert(0, entry)
                self._labels.add(det.label)
                created.append(entry)
                self.stats.captured += 1
                logging.info(f"New object class captured: {det.label} ({det.score:.0%})")
            return created

    def _new_sightings(self, detections: Sequence[Detection], threshold: float) -> List[Detection]:
        policy = self.config.capture_policy
        seen: Set[str] = set()
        out: List[Detection] = []
        for det in detections:
            if det.label in self._labels or det.label in seen:
                self.stats.duplicates_ignored += 1
                continue
            if policy == "above_threshold" and not det.is_visible(threshold):
                self.stats.below_threshold_ignored += 1
                continue
            seen.add(det.label)
            out.append(det)
        return out

    def entries(self) -> Tuple[HistoryEntry, ...]:
        """All entries, newest first."""
        with self._lock:
            return tuple(self._entries)

    def get(self, index: int) -> HistoryEntry:
        """Entry by position (0 = newest). Raises IndexError when out of range."""
        with self._lock:
            if index < 0 or index >= len(self._entries):
                raise IndexError(f"History index out of range: {index}")
            return self._entries[index]

    def find(self, label: str) -> Optional[HistoryEntry]:
        with self._lock:
            for entry in self._entries:
                if entry.label == label:
                    return entry
        return None

    def labels(self) -> Set[str]:
        with self._lock:
            return set(self._labels)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
