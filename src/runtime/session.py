"""
Viewer session: the single owner of all mutable viewer state.

Presentation layers (web API, OpenCV window) read immutable snapshots from
the session and change settings only through update_settings().
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from inference import DetectorLoader, InferenceBackend, detector_factory_from_config
from models.config import CameraConfig, Config
from models.detection import Detection, filter_by_threshold
from models.history import HistoryEntry
from models.settings import ViewerSettings
from observation import ObservationSource, create_source_from_config
from pipeline.scheduler import DetectionScheduler
from pipeline.stages.annotate import SnapshotCompositor
from pipeline.stages.history import HistoryStore

SourceFactory = Callable[[CameraConfig, str], ObservationSource]


class ViewerSession:
    """
    Wires the frame source, detector, scheduler and history together.

    Example:
        session = ViewerSession(Config.from_dict(raw_config))
        session.start()
        jpeg = session.capture_screenshot()
        session.stop()
    """

    def __init__(
        self,
        config: Config,
        source_factory: SourceFactory = create_source_from_config,
        detector_factory: Optional[Callable[[], InferenceBackend]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._source_factory = source_factory
        self._settings_lock = threading.Lock()
        self._facing_lock = threading.RLock()
        self._settings = ViewerSettings.from_config(config)

        self.compositor = SnapshotCompositor(config.snapshot)
        self.history = HistoryStore(self.compositor, config.history, clock=clock)
        self.loader = DetectorLoader(detector_factory or detector_factory_from_config(config.detection))
        self.scheduler = DetectionScheduler(
            self.loader,
            self.history,
            config.scheduler,
            threshold_provider=lambda: self.settings.confidence_threshold,
        )
        self.start_time: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the camera, begin loading the model and start the loop."""
        self.start_time = time.time()
        with self._facing_lock:
            self._open_source(self.settings.facing)
        self.loader.start()
        self.scheduler.start()

    def stop(self) -> None:
        """Stop the loop; no history entry is added after this returns."""
        self.scheduler.stop()
        self.scheduler.close_source()

    def _open_source(self, facing: str) -> bool:
        try:
            source = self._source_factory(self.config.camera, facing)
        except (ValueError, RuntimeError) as e:
            logging.error(f"Cannot create camera source for facing={facing}: {e}")
            return False
        return self.scheduler.replace_source(source)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def settings(self) -> ViewerSettings:
        with self._settings_lock:
            return self._settings

    def update_settings(
        self,
        confidence_threshold: Optional[float] = None,
        show_boxes: Optional[bool] = None,
        facing: Optional[str] = None,
    ) -> ViewerSettings:
        """
        Apply a partial settings update.

        Facing changes are serialized, so the camera that ends up open is
        always the one the settings report.

        Raises:
            ValueError: If a value is out of range.
        """
        if facing is None:
            return self._apply_settings(confidence_threshold, show_boxes, None)[1]

        with self._facing_lock:
            old, new = self._apply_settings(confidence_threshold, show_boxes, facing)
            if new.facing != old.facing:
                self._open_source(new.facing)
            return new

    def _apply_settings(
        self,
        confidence_threshold: Optional[float],
        show_boxes: Optional[bool],
        facing: Optional[str],
    ) -> Tuple[ViewerSettings, ViewerSettings]:
        with self._settings_lock:
            old = self._settings
            new = old.updated(confidence_threshold=confidence_threshold, show_boxes=show_boxes, facing=facing)
            self._settings = new

        if new != old:
            logging.info(f"Viewer settings updated: {new.to_dict()}")
        return old, new

    def toggle_camera(self) -> ViewerSettings:
        with self._facing_lock:
            return self.update_settings(facing=self.settings.other_facing)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def current_predictions(self) -> Tuple[Detection, ...]:
        """Latest published result set, unfiltered."""
        return self.scheduler.predictions

    def visible_predictions(self) -> List[Detection]:
        """Latest result set filtered by the current threshold (live overlay)."""
        return filter_by_threshold(self.scheduler.predictions, self.settings.confidence_threshold)

    def history_entries(self) -> Tuple[HistoryEntry, ...]:
        return self.history.entries()

    def render_live_frame(self) -> Optional[np.ndarray]:
        """Latest live frame with the current overlay, or None before the first frame."""
        frame_data = self.scheduler.latest_frame
        if frame_data is None:
            return None
        settings = self.settings
        return self.compositor.render(
            frame_data,
            self.scheduler.predictions,
            settings.confidence_threshold,
            draw_boxes=settings.show_boxes,
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def capture_screenshot(self) -> bytes:
        """
        Encode the current view as JPEG; does not touch history.

        Raises:
            FrameNotReady: If no frame has been read yet.
            SnapshotUnavailable: If encoding fails.
        """
        settings = self.settings
        return self.compositor.compose(
            self.scheduler.latest_frame,
            self.scheduler.predictions,
            settings.confidence_threshold,
            draw_boxes=settings.show_boxes,
        )

    def export_history_snapshot(self, index: int) -> bytes:
        """Stored snapshot bytes of a history entry, unchanged."""
        return self.history.get(index).snapshot

    def status(self) -> Dict[str, Any]:
        now = time.time()
        error = self.loader.error
        latest = self.scheduler.latest_frame
        return {
            "detector_state": self.loader.state.value,
            "detector_error": str(error) if error is not None else None,
            "camera_source": self.scheduler.source_id,
            "camera_ready": latest is not None,
            "last_frame_age_s": (now - latest.timestamp) if latest is not None else None,
            "settings": self.settings.to_dict(),
            "predictions": len(self.scheduler.predictions),
            "history_size": len(self.history),
            "uptime_seconds": int(now - self.start_time) if self.start_time else None,
            "scheduler": self.scheduler.stats_snapshot(),
        }
