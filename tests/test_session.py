"""
Tests for the viewer session (settings, exports, status, lifecycle).
"""

import threading
import time
from typing import Optional

import numpy as np
import pytest

from inference.loader import LoadState
from models.config import Config
from models.detection import Detection
from models.frame import FrameData
from observation.base import ObservationConfig, ObservationSource
from runtime.errors import FrameNotReady
from runtime.session import ViewerSession


class MockSource(ObservationSource):
    def __init__(self, source_id: str):
        super().__init__(ObservationConfig(source_id=source_id))
        self.closed = False

    def open(self) -> None:
        self._is_open = True

    def read(self) -> Optional[FrameData]:
        if not self._is_open:
            return None
        self._frame_index += 1
        frame = np.full((120, 160, 3), 60, dtype=np.uint8)
        return FrameData.from_numpy(frame, frame_index=self._frame_index, source=self.source_id)

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class StaticDetector:
    def __init__(self, detections):
        self.detections = detections

    def detect(self, frame):
        return list(self.detections)


CAT = Detection.from_xyxy("cat", 0.9, 40, 50, 100, 90)
DOG = Detection.from_xyxy("dog", 0.3, 10, 10, 30, 30)


@pytest.fixture
def config(valid_config):
    # long interval: tests drive ticks by hand
    valid_config["scheduler"]["interval_ms"] = 60000
    return Config.from_dict(valid_config)


@pytest.fixture
def opened():
    return []


@pytest.fixture
def session(config, opened):
    def source_factory(camera_cfg, facing):
        source = MockSource(f"camera-{facing}")
        opened.append(source)
        return source

    s = ViewerSession(config, source_factory=source_factory, detector_factory=lambda: StaticDetector([CAT, DOG]))
    s.start()
    assert s.loader.wait(2)
    yield s
    s.stop()


def _run_tick(session):
    assert session.scheduler.tick()
    assert session.scheduler.wait_for_idle(2)


class TestSettings:
    def test_initial_settings_from_config(self, session):
        assert session.settings.confidence_threshold == 0.5
        assert session.settings.show_boxes is True
        assert session.settings.facing == "front"

    def test_partial_update(self, session):
        session.update_settings(confidence_threshold=0.8)
        assert session.settings.confidence_threshold == 0.8
        assert session.settings.show_boxes is True

    def test_invalid_update_keeps_previous(self, session):
        with pytest.raises(ValueError):
            session.update_settings(confidence_threshold=2.0)
        assert session.settings.confidence_threshold == 0.5

    def test_toggle_camera_swaps_source(self, session, opened):
        _run_tick(session)
        session.toggle_camera()

        assert session.settings.facing == "back"
        assert session.scheduler.source_id == "camera-back"
        assert opened[0].closed
        assert session.current_predictions() == ()

        session.toggle_camera()
        assert session.scheduler.source_id == "camera-front"

    def test_same_facing_does_not_reopen(self, session, opened):
        session.update_settings(facing="front")
        assert len(opened) == 1

    def test_overlapping_facing_changes_end_on_latest(self, config):
        def slow_back_factory(camera_cfg, facing):
            if facing == "back":
                time.sleep(0.3)
            return MockSource(f"camera-{facing}")

        s = ViewerSession(config, source_factory=slow_back_factory, detector_factory=lambda: StaticDetector([]))
        s.start()
        try:
            switcher = threading.Thread(target=s.update_settings, kwargs={"facing": "back"})
            switcher.start()
            time.sleep(0.05)
            s.update_settings(facing="front")
            switcher.join(2)

            assert s.settings.facing == "front"
            assert s.scheduler.source_id == "camera-front"
        finally:
            s.stop()


class TestViews:
    def test_predictions_unfiltered_and_visible(self, session):
        _run_tick(session)
        assert [d.label for d in session.current_predictions()] == ["cat", "dog"]
        assert [d.label for d in session.visible_predictions()] == ["cat"]

    def test_threshold_change_does_not_touch_data(self, session):
        _run_tick(session)
        before_preds = session.current_predictions()
        before_hist = session.history_entries()

        session.update_settings(confidence_threshold=0.1)

        assert session.current_predictions() == before_preds
        assert session.history_entries() == before_hist
        assert [d.label for d in session.visible_predictions()] == ["cat", "dog"]

    def test_low_score_captured_but_hidden(self, session):
        session.update_settings(confidence_threshold=0.8)
        _run_tick(session)
        assert {e.label for e in session.history_entries()} == {"cat", "dog"}
        assert [d.label for d in session.visible_predictions()] == ["cat"]

    def test_live_frame_without_boxes(self, session):
        _run_tick(session)
        session.update_settings(show_boxes=False)
        image = session.render_live_frame()
        assert image is not None
        assert (image == 60).all()

    def test_live_frame_with_boxes(self, session):
        _run_tick(session)
        image = session.render_live_frame()
        assert not (image == 60).all()


class TestExports:
    def test_screenshot_before_first_frame(self, config):
        s = ViewerSession(config, source_factory=lambda c, f: MockSource("camera-front"),
                          detector_factory=lambda: StaticDetector([]))
        with pytest.raises(FrameNotReady):
            s.capture_screenshot()

    def test_screenshot_does_not_touch_history(self, session):
        _run_tick(session)
        before = session.history_entries()
        data = session.capture_screenshot()
        assert data.startswith(b"\xff\xd8")
        assert session.history_entries() == before

    def test_screenshot_without_boxes(self, session):
        _run_tick(session)
        session.update_settings(show_boxes=False)
        plain = session.capture_screenshot()
        expected = session.compositor.compose(session.scheduler.latest_frame, [], 0.5)
        assert plain == expected

    def test_export_returns_stored_bytes(self, session):
        _run_tick(session)
        entry = session.history_entries()[0]
        assert session.export_history_snapshot(0) == entry.snapshot
        assert session.export_history_snapshot(0) == session.export_history_snapshot(0)

    def test_export_out_of_range(self, session):
        with pytest.raises(IndexError):
            session.export_history_snapshot(3)


class TestLifecycle:
    def test_status_fields(self, session):
        _run_tick(session)
        status = session.status()
        assert status["detector_state"] == "ready"
        assert status["detector_error"] is None
        assert status["camera_source"] == "camera-front"
        assert status["camera_ready"] is True
        assert status["predictions"] == 2
        assert status["history_size"] == 2
        assert status["settings"]["facing"] == "front"
        assert status["scheduler"]["published"] == 1

    def test_stop_prevents_further_captures(self, session, opened):
        session.stop()
        assert session.scheduler.tick() is False
        assert len(session.history) == 0
        assert opened[0].closed

    def test_model_load_failure(self, config):
        def broken():
            raise RuntimeError("bad weights")

        s = ViewerSession(config, source_factory=lambda c, f: MockSource(f"camera-{f}"), detector_factory=broken)
        s.start()
        try:
            assert s.loader.wait(2)
            assert s.loader.state == LoadState.UNAVAILABLE
            assert s.scheduler.tick() is False
            status = s.status()
            assert status["detector_state"] == "unavailable"
            assert "bad weights" in status["detector_error"]
        finally:
            s.stop()
