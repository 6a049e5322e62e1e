"""
OpenCV-based observation source.

Supports:
- USB/built-in webcams (device_id as int, e.g., 0 for the front camera)
- Video files or stream URLs (device_id as str), handy for demos and tests
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

import cv2
import numpy as np

from models.config import CameraConfig
from models.frame import FrameData
from .base import ObservationSource, ObservationConfig


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int) or file path / URL (str).
        facing: Camera facing this source was opened for ("front" or "back").
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Maximum attempts for camera initialization.
        max_read_failures: Consecutive read failures before a reconnect is attempted.
        reconnect_interval_s: Minimum time between reconnect attempts while the camera is gone.
        warmup_s: Delay after opening a live camera before the first read.
        swap_rb: Swap R/B channels (fixes RGB vs BGR issues).
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally (mirror view for front cameras).
        flip_vertical: Flip frame vertically.
    """
    device_id: Union[int, str] = 0
    facing: str = "front"
    buffer_size: int = 1
    max_retries: int = 3
    max_read_failures: int = 3
    reconnect_interval_s: float = 2.0
    warmup_s: float = 0.5
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: CameraConfig, facing: Optional[str] = None) -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig for one camera facing.

        Args:
            camera_cfg: Typed camera configuration.
            facing: "front" or "back"; defaults to camera_cfg.facing.
        """
        facing = facing or camera_cfg.facing
        resolution = tuple(camera_cfg.resolution) if camera_cfg.resolution else None
        return cls(
            source_id=f"camera-{facing}",
            resolution=resolution,
            fps=camera_cfg.fps,
            device_id=camera_cfg.device_for(facing),
            facing=facing,
            swap_rb=camera_cfg.swap_rb,
            rotate=camera_cfg.rotate or 0,
            flip_horizontal=camera_cfg.flip_horizontal,
            flip_vertical=camera_cfg.flip_vertical,
        )


class OpenCVSource(ObservationSource):
    """
    OpenCV-based observation source for cameras and video files.

    Wraps cv2.VideoCapture to provide frames as FrameData objects and
    keeps reconnecting, throttled, after repeated read failures on live cameras.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0
        self._last_reconnect: Optional[float] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def facing(self) -> str:
        return self._opencv_config.facing

    @property
    def is_file(self) -> bool:
        """Check if this is a video file."""
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        """Open the capture device."""
        if self._is_open:
            return

        self._initialize(retry_count=0)
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={self.device_id}, resolution={self._opencv_config.resolution}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize the capture device, retrying with backoff (used by open())."""
        self._release_capture()

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying camera initialization (attempt {retry_count + 1}/"
                f"{self._opencv_config.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        cap = cv2.VideoCapture(self.device_id)

        if not cap.isOpened():
            cap.release()
            if retry_count < self._opencv_config.max_retries - 1:
                logging.warning(f"Failed to open device {self.device_id}, retrying...")
                return self._initialize(retry_count + 1)
            raise RuntimeError(
                f"Failed to open device {self.device_id} after "
                f"{self._opencv_config.max_retries} attempts"
            )

        self._configure_capture(cap)

        if not self.is_file and self._opencv_config.warmup_s > 0:
            time.sleep(self._opencv_config.warmup_s)

        self._cap = cap
        self._consecutive_failures = 0

    def _configure_capture(self, cap: cv2.VideoCapture) -> None:
        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

            actual_w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            logging.info(f"Camera actual resolution: {actual_w}x{actual_h}")

    def _release_capture(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def _reconnect(self) -> bool:
        """
        Make one attempt to reopen a lost camera.

        Attempts are throttled to one per `reconnect_interval_s` and do not
        sleep: read() runs on the detection loop thread.
        """
        now = time.monotonic()
        if self._last_reconnect is not None and now - self._last_reconnect < self._opencv_config.reconnect_interval_s:
            return False
        self._last_reconnect = now

        self._release_capture()
        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            logging.warning(f"Camera {self.device_id} still unavailable, will retry")
            return False

        self._configure_capture(cap)
        self._cap = cap
        self._consecutive_failures = 0
        logging.info(f"Camera {self.device_id} reconnected")
        return True

    def read(self) -> Optional[FrameData]:
        """Read the current frame; None while the camera has nothing to give."""
        if not self._is_open:
            return None
        if self._cap is None and not self._reconnect():
            return None

        ret, frame = self._cap.read()

        if not ret or frame is None:
            self._consecutive_failures += 1
            if self.is_file:
                logging.info("End of video file reached")
                return None

            if self._consecutive_failures >= self._opencv_config.max_read_failures:
                logging.warning(
                    f"Failed to read frame (failures: {self._consecutive_failures}), reconnecting..."
                )
                self._release_capture()
                self._reconnect()
            return None

        self._consecutive_failures = 0
        frame = self._apply_transforms(frame)
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip, swap_rb)."""
        cfg = self._opencv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal or cfg.flip_vertical:
            if cfg.flip_horizontal and cfg.flip_vertical:
                flip_code = -1
            elif cfg.flip_horizontal:
                flip_code = 1
            else:
                flip_code = 0
            frame = cv2.flip(frame, flip_code)

        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()

        return frame

    def close(self) -> None:
        """Close the capture device and release resources."""
        self._release_capture()
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")
