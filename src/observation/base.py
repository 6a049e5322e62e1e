"""
ObservationSource interface for pluggable camera sources.

This defines the contract the detection loop relies on:
- open() before the first read
- read() returns the current frame, or None while no frame is ready
- close() releases the device
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from models.frame import FrameData
from runtime.errors import FrameNotReady


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "camera-front").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() repeatedly to get frames
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            for frame_data in source:
                process(frame_data)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Current frame index (number of frames read since open)."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the observation source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Read the current frame from the source.

        Returns:
            FrameData, or None if no frame is ready yet (cold start, device error).
        """

    @abstractmethod
    def close(self) -> None:
        """
        Close/release the observation source.

        Safe to call multiple times.
        """

    def get_frame(self) -> FrameData:
        """
        Read the current frame, raising instead of returning None.

        Raises:
            FrameNotReady: If the source is closed or has no frame yet.
        """
        if not self._is_open:
            raise FrameNotReady(f"Source {self.source_id} is not open")
        frame_data = self.read()
        if frame_data is None:
            raise FrameNotReady(f"Source {self.source_id} has no frame ready")
        return frame_data

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        """
        Iterate over frames until the source returns None.

        The source must be open before iterating.
        """
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
