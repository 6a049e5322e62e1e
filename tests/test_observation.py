"""
Tests for observation layer.
"""

import time

import numpy as np
import pytest

from models.config import CameraConfig
from models.frame import FrameData
from observation import create_source_from_config
from observation.base import ObservationConfig, ObservationSource
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from runtime.errors import FrameNotReady


class MockSource(ObservationSource):
    """Mock observation source for testing."""

    def __init__(self, config: ObservationConfig, frames: list = None):
        super().__init__(config)
        self._frames = frames or []
        self._pos = 0

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> FrameData | None:
        if not self._is_open or self._pos >= len(self._frames):
            return None

        frame = self._frames[self._pos]
        self._pos += 1
        self._frame_index += 1

        return FrameData(
            frame=frame,
            width=frame.shape[1],
            height=frame.shape[0],
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False


class TestObservationConfig:
    def test_default_config(self):
        config = ObservationConfig()
        assert config.source_id == "default"
        assert config.resolution is None
        assert config.fps is None

    def test_custom_config(self):
        config = ObservationConfig(
            source_id="camera-back",
            resolution=(1920, 1080),
            fps=30,
            metadata={"room": "kitchen"},
        )
        assert config.source_id == "camera-back"
        assert config.resolution == (1920, 1080)
        assert config.metadata["room"] == "kitchen"


class TestOpenCVSourceConfig:
    def test_from_camera_config_default_facing(self):
        camera_cfg = CameraConfig(
            devices={"front": 0, "back": 2},
            resolution=[1280, 720],
            fps=30,
            swap_rb=True,
            rotate=90,
        )
        config = OpenCVSourceConfig.from_camera_config(camera_cfg)

        assert config.source_id == "camera-front"
        assert config.device_id == 0
        assert config.facing == "front"
        assert config.resolution == (1280, 720)
        assert config.fps == 30
        assert config.swap_rb is True
        assert config.rotate == 90

    def test_from_camera_config_back(self):
        camera_cfg = CameraConfig(devices={"front": 0, "back": "samples/clip.mp4"})
        config = OpenCVSourceConfig.from_camera_config(camera_cfg, "back")

        assert config.source_id == "camera-back"
        assert config.device_id == "samples/clip.mp4"
        assert config.facing == "back"

    def test_factory_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            create_source_from_config(CameraConfig(backend="picamera2"))

    def test_factory_builds_unopened_source(self):
        source = create_source_from_config(CameraConfig(), "back")
        assert isinstance(source, OpenCVSource)
        assert source.source_id == "camera-back"
        assert source.device_id == 1
        assert not source.is_open


class TestMockSource:
    def test_source_lifecycle(self):
        config = ObservationConfig(source_id="test")
        frames = [np.zeros((100, 100, 3), dtype=np.uint8) for _ in range(3)]
        source = MockSource(config, frames)

        assert not source.is_open
        source.open()
        assert source.is_open
        assert source.frame_index == 0

        fd = source.read()
        assert fd is not None
        assert fd.source == "test"
        assert fd.frame_index == 1
        assert source.frame_index == 1

        source.close()
        assert not source.is_open

    def test_context_manager(self):
        config = ObservationConfig(source_id="ctx-test")
        frames = [np.zeros((50, 50, 3), dtype=np.uint8) for _ in range(2)]

        with MockSource(config, frames) as source:
            assert source.is_open
            count = sum(1 for _ in source)
            assert count == 2

        assert not source.is_open

    def test_iteration(self):
        config = ObservationConfig(source_id="iter-test")
        frames = [np.ones((10, 10, 3), dtype=np.uint8) * i for i in range(5)]

        with MockSource(config, frames) as source:
            collected = list(source)

        assert len(collected) == 5
        for i, fd in enumerate(collected):
            assert fd.frame_index == i + 1
            assert fd.source == "iter-test"

    def test_iteration_requires_open(self):
        source = MockSource(ObservationConfig(), [])

        with pytest.raises(RuntimeError, match="must be open"):
            list(source)

    def test_get_frame_when_closed(self):
        source = MockSource(ObservationConfig(), [np.zeros((4, 4, 3), dtype=np.uint8)])
        with pytest.raises(FrameNotReady):
            source.get_frame()

    def test_get_frame_when_exhausted(self):
        with MockSource(ObservationConfig(), []) as source:
            assert source.read() is None
            with pytest.raises(FrameNotReady):
                source.get_frame()


class TestOpenCVSource:
    def test_usb_camera_detection(self):
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        assert source.is_file is False

    def test_video_file_detection(self, tmp_path):
        clip = tmp_path / "clip.mp4"
        clip.write_bytes(b"")
        source = OpenCVSource(OpenCVSourceConfig(device_id=str(clip)))
        assert source.is_file is True

    def test_source_id_property(self):
        config = OpenCVSourceConfig(source_id="camera-front", device_id=0)
        source = OpenCVSource(config)
        assert source.source_id == "camera-front"
        assert source.facing == "front"

    def test_read_before_open(self):
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        assert source.read() is None
        with pytest.raises(FrameNotReady):
            source.get_frame()

    def test_open_missing_file_fails(self, tmp_path):
        config = OpenCVSourceConfig(device_id=str(tmp_path / "missing.mp4"), max_retries=1)
        source = OpenCVSource(config)
        with pytest.raises(RuntimeError):
            source.open()
        assert not source.is_open

    def test_mirror_transform(self):
        source = OpenCVSource(OpenCVSourceConfig(flip_horizontal=True))
        frame = np.zeros((2, 3, 3), dtype=np.uint8)
        frame[:, 0] = 255
        out = source._apply_transforms(frame)
        assert (out[:, 2] == 255).all()
        assert (out[:, 0] == 0).all()

    def test_rotate_transform(self):
        source = OpenCVSource(OpenCVSourceConfig(rotate=90))
        out = source._apply_transforms(np.zeros((2, 3, 3), dtype=np.uint8))
        assert out.shape == (3, 2, 3)

    def test_swap_rb_transform(self):
        source = OpenCVSource(OpenCVSourceConfig(swap_rb=True))
        frame = np.zeros((1, 1, 3), dtype=np.uint8)
        frame[0, 0] = (255, 0, 0)
        out = source._apply_transforms(frame)
        assert tuple(out[0, 0]) == (0, 0, 255)


class FakeDevice:
    """A webcam that can be unplugged and plugged back in."""

    def __init__(self):
        self.plugged = True
        self.opened = 0


class FakeCapture:
    def __init__(self, device: FakeDevice):
        self._device = device
        self._open = device.plugged
        device.opened += 1

    def isOpened(self):
        return self._open

    def read(self):
        if self._open and self._device.plugged:
            return True, np.zeros((4, 4, 3), dtype=np.uint8)
        return False, None

    def release(self):
        self._open = False

    def set(self, prop, value):
        return True

    def get(self, prop):
        return 0.0


@pytest.fixture
def device(monkeypatch):
    dev = FakeDevice()
    monkeypatch.setattr("observation.opencv_source.cv2.VideoCapture", lambda device_id: FakeCapture(dev))
    return dev


class TestOpenCVSourceReconnect:
    def _source(self, **kwargs):
        config = OpenCVSourceConfig(device_id=0, warmup_s=0, max_retries=1, max_read_failures=2, **kwargs)
        return OpenCVSource(config)

    def test_recovers_after_camera_returns(self, device):
        source = self._source(reconnect_interval_s=0)
        source.open()
        assert source.read() is not None

        device.plugged = False
        for _ in range(5):
            assert source.read() is None

        device.plugged = True
        fd = source.read()
        assert fd is not None
        assert source.frame_index == 2
        source.close()

    def test_reconnect_attempts_are_throttled(self, device):
        source = self._source(reconnect_interval_s=60)
        source.open()
        device.plugged = False
        for _ in range(10):
            source.read()
        # initial open plus a single reconnect attempt
        assert device.opened == 2

        device.plugged = True
        assert source.read() is None

        source._last_reconnect = time.monotonic() - 61
        assert source.read() is not None
        source.close()

    def test_reconnect_does_not_sleep(self, device, monkeypatch):
        source = self._source(reconnect_interval_s=0)
        source.open()
        sleeps = []
        monkeypatch.setattr("observation.opencv_source.time.sleep", sleeps.append)

        device.plugged = False
        for _ in range(4):
            source.read()
        device.plugged = True
        assert source.read() is not None
        assert sleeps == []
        source.close()
