"""
Pipeline stages for the object detector viewer.

Each stage handles a specific part of the processing pipeline:
- annotate: Bounding-box drawing and JPEG snapshots
- history: First-sighting capture per object class
"""

from .annotate import SnapshotCompositor
from .history import HistoryStore

__all__ = ["SnapshotCompositor", "HistoryStore"]
