"""
FrameData model for captured camera frames.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FrameData:
    """
    A captured camera frame and its metadata.

    The scheduler hands the same FrameData to the detector, the history store
    and the live overlay, so the pixel buffer is treated as read-only;
    anything that draws on it works on a copy.

    Attributes:
        frame: Pixel data as a numpy array (BGR, HxWx3).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier of the camera the frame came from.
    """
    frame: np.ndarray = field(repr=False)
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: Optional[float] = None,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=time.time() if timestamp is None else timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def copy_pixels(self) -> np.ndarray:
        """Return a writable copy of the pixel buffer."""
        return self.frame.copy()
