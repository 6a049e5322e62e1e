"""
Pipeline module for the object detector viewer.

The pipeline drives the detection flow:
- Fixed-cadence frame submission to the detector (DetectionScheduler)
- First-sighting history capture (HistoryStore)
- Frame annotation and snapshot encoding (SnapshotCompositor)
"""

from .scheduler import DetectionScheduler, PredictionsPublished, SchedulerStats
from .stages.annotate import SnapshotCompositor
from .stages.history import HistoryStore

__all__ = [
    "DetectionScheduler",
    "PredictionsPublished",
    "SchedulerStats",
    "SnapshotCompositor",
    "HistoryStore",
]
