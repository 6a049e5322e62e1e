"""
Tests for detector loading and the Ultralytics CPU backend.
"""

import sys
import threading
from unittest.mock import MagicMock, Mock, patch

import numpy as np
import pytest

from inference import detector_factory_from_config
from inference.cpu_backend import CpuYoloConfig, UltralyticsCpuBackend
from inference.loader import DetectorLoader, LoadState
from models.config import DetectionConfig
from runtime.errors import ModelLoadFailure


class DummyDetector:
    def detect(self, frame):
        return []


class TestDetectorLoader:
    def test_initial_state_is_loading(self):
        loader = DetectorLoader(DummyDetector)
        assert loader.state == LoadState.LOADING
        assert loader.detector is None
        assert loader.error is None

    def test_successful_load(self):
        loader = DetectorLoader(DummyDetector)
        loader.load()
        assert loader.state == LoadState.READY
        assert isinstance(loader.detector, DummyDetector)
        assert loader.load_seconds is not None
        assert loader.wait(0)

    def test_failed_load_is_unavailable(self):
        def broken():
            raise OSError("weights not found")

        loader = DetectorLoader(broken)
        loader.load()
        assert loader.state == LoadState.UNAVAILABLE
        assert loader.detector is None
        assert isinstance(loader.error, ModelLoadFailure)
        assert isinstance(loader.error.__cause__, OSError)
        assert "weights not found" in str(loader.error)

    def test_start_loads_in_background(self):
        gate = threading.Event()
        calls = []

        def slow():
            gate.wait(2)
            calls.append(1)
            return DummyDetector()

        loader = DetectorLoader(slow)
        loader.start()
        loader.start()
        assert loader.state == LoadState.LOADING
        gate.set()
        assert loader.wait(2)
        assert loader.state == LoadState.READY
        assert calls == [1]

    def test_state_values(self):
        assert LoadState.READY.value == "ready"
        assert LoadState.UNAVAILABLE == "unavailable"


def _mock_results(names, xyxy, conf, cls):
    boxes = MagicMock()
    boxes.xyxy = Mock(cpu=Mock(return_value=Mock(numpy=Mock(return_value=np.array(xyxy)))))
    boxes.conf = Mock(cpu=Mock(return_value=Mock(numpy=Mock(return_value=np.array(conf)))))
    boxes.cls = Mock(cpu=Mock(return_value=Mock(numpy=Mock(return_value=np.array(cls)))))
    result = MagicMock()
    result.names = names
    result.boxes = boxes
    return [result]


@pytest.fixture
def fake_ultralytics():
    module = MagicMock()
    model = MagicMock()
    module.YOLO.return_value = model
    with patch.dict(sys.modules, {"ultralytics": module}):
        yield module, model


class TestUltralyticsCpuBackend:
    def test_converts_results(self, fake_ultralytics):
        module, model = fake_ultralytics
        model.predict.return_value = _mock_results(
            {0: "person", 15: "cat"},
            [[10, 20, 50, 100], [60, 20, 100, 80]],
            [0.8, 0.6],
            [15, 0],
        )
        backend = UltralyticsCpuBackend(CpuYoloConfig(model="yolov8n.pt", max_detections=5))
        dets = backend.detect(np.zeros((120, 160, 3), dtype=np.uint8))

        module.YOLO.assert_called_once_with("yolov8n.pt")
        assert [d.label for d in dets] == ["cat", "person"]
        assert dets[0].bbox.as_xywh() == (10, 20, 40, 80)
        assert dets[1].score == pytest.approx(0.6)
        kwargs = model.predict.call_args.kwargs
        assert kwargs["max_det"] == 5
        assert kwargs["conf"] == 0.25

    def test_class_name_override(self, fake_ultralytics):
        _, model = fake_ultralytics
        model.predict.return_value = _mock_results({15: "cat"}, [[0, 0, 10, 10]], [0.9], [15])
        backend = UltralyticsCpuBackend(CpuYoloConfig(class_name_overrides={15: "kitty"}))
        assert backend.detect(np.zeros((10, 10, 3), dtype=np.uint8))[0].label == "kitty"

    def test_unknown_class_falls_back_to_id(self, fake_ultralytics):
        _, model = fake_ultralytics
        model.predict.return_value = _mock_results({}, [[0, 0, 10, 10]], [0.9], [42])
        backend = UltralyticsCpuBackend(CpuYoloConfig())
        assert backend.detect(np.zeros((10, 10, 3), dtype=np.uint8))[0].label == "42"

    def test_no_results(self, fake_ultralytics):
        _, model = fake_ultralytics
        model.predict.return_value = []
        backend = UltralyticsCpuBackend(CpuYoloConfig())
        assert backend.detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []


class TestDetectorFactory:
    def test_factory_is_lazy(self, fake_ultralytics):
        module, _ = fake_ultralytics
        build = detector_factory_from_config(DetectionConfig())
        module.YOLO.assert_not_called()
        backend = build()
        assert isinstance(backend, UltralyticsCpuBackend)
        module.YOLO.assert_called_once()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            detector_factory_from_config(DetectionConfig(backend="tflite"))
