"""
Inference backend interface.

Backends return pixel-space detections in the original frame coordinate system.
A backend instance is not assumed to be safe for concurrent calls; the
scheduler guarantees at most one outstanding detect() per instance.
"""

from __future__ import annotations

from typing import List, Protocol

import numpy as np

from models.detection import Detection


class InferenceBackend(Protocol):
    def detect(self, frame: np.ndarray) -> List[Detection]:
        ...
