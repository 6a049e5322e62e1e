"""
Detection loop scheduler.

Fires inference attempts on a fixed cadence and publishes each result set as
the current predictions. Guarantees:

- At most one detector call is outstanding at any time; ticks that find the
  detector busy are skipped, never queued.
- Result sets are applied in submission order.
- After stop() (or a source swap) late results are discarded, and stop()
  returning means no further history insertions can happen.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.config import SchedulerConfig
from models.detection import Detection
from models.frame import FrameData
from models.history import HistoryEntry
from observation.base import ObservationSource
from runtime.errors import DetectorBusy, FrameNotReady
from pipeline.stages.history import HistoryStore


@dataclass(frozen=True)
class PredictionsPublished:
    """Event emitted after a result set has been published."""
    seq: int
    frame: FrameData
    detections: Tuple[Detection, ...]
    new_entries: Tuple[HistoryEntry, ...]
    latency_s: float


@dataclass
class SchedulerStats:
    """Runtime counters for the detection loop."""
    ticks: int = 0
    submitted: int = 0
    published: int = 0
    discarded: int = 0
    skipped_not_loaded: int = 0
    skipped_no_frame: int = 0
    skipped_busy: int = 0
    detector_errors: int = 0
    last_latency_s: Optional[float] = None
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class DetectionScheduler:
    """
    Drives the detector at a fixed cadence.

    The loader only needs a `detector` attribute that is None until the
    model is ready. Ticks before that are no-ops.

    Example:
        scheduler = DetectionScheduler(loader, history, SchedulerConfig(), source=source,
                                       threshold_provider=lambda: session.settings.confidence_threshold)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        loader: Any,
        history: HistoryStore,
        config: Optional[SchedulerConfig] = None,
        source: Optional[ObservationSource] = None,
        threshold_provider: Callable[[], float] = lambda: 0.5,
    ):
        self._loader = loader
        self._history = history
        self.config = config or SchedulerConfig()
        self._threshold_provider = threshold_provider

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._source_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="detector"
        )

        self._source = source
        self._inflight: Optional[Future] = None
        self._generation = 0
        self._submitted_seq = 0
        self._applied_seq = 0
        self._predictions: Tuple[Detection, ...] = ()
        self._predictions_frame: Optional[FrameData] = None
        self._latest_frame: Optional[FrameData] = None
        self._listeners: List[Callable[[PredictionsPublished], None]] = []
        self.stats = SchedulerStats()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def predictions(self) -> Tuple[Detection, ...]:
        """The latest published result set."""
        with self._lock:
            return self._predictions

    @property
    def predictions_frame(self) -> Optional[FrameData]:
        """The frame the latest published result set was computed on."""
        with self._lock:
            return self._predictions_frame

    @property
    def latest_frame(self) -> Optional[FrameData]:
        """The most recent frame read from the source (live view)."""
        with self._lock:
            return self._latest_frame

    @property
    def source_id(self) -> Optional[str]:
        """Identifier of the current frame source, None while swapping."""
        with self._source_lock:
            return self._source.source_id if self._source is not None else None

    @property
    def is_busy(self) -> bool:
        with self._lock:
            return self._inflight is not None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def stats_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return asdict(self.stats)

    def add_listener(self, callback: Callable[[PredictionsPublished], None]) -> None:
        """Register a callback invoked after every publish."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the timer thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="detection-scheduler", daemon=True)
        self._thread.start()
        logging.info(f"Detection scheduler started (interval={self.config.interval_ms}ms)")

    def stop(self, timeout: float = 2.0) -> None:
        """
        Stop ticking and abandon any in-flight inference.

        A result that arrives after this returns is discarded.
        """
        self._stop_event.set()
        with self._lock:
            self._generation += 1
            executor = self._executor
            self._executor = None
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        logging.info(
            f"Detection scheduler stopped: ticks={self.stats.ticks}, "
            f"published={self.stats.published}, discarded={self.stats.discarded}"
        )

    def replace_source(self, source: Optional[ObservationSource]) -> bool:
        """
        Swap the frame source (e.g. after a camera facing change).

        Results still in flight for the old source are discarded. Ticks see
        FrameNotReady until the new source is open. Returns False if the
        new source could not be opened.
        """
        with self._source_lock:
            old = self._source
            self._source = None
        with self._lock:
            self._generation += 1
            self._predictions = ()
            self._predictions_frame = None
            self._latest_frame = None

        if old is not None:
            try:
                old.close()
            except Exception as e:
                logging.warning(f"Error closing source: {e}")

        if source is None:
            return True

        if not source.is_open:
            try:
                source.open()
            except RuntimeError as e:
                logging.error(f"Failed to open source {source.source_id}: {e}")
                return False

        with self._source_lock:
            self._source = source
        logging.info(f"Frame source switched to {source.source_id}")
        return True

    def close_source(self) -> None:
        """Release the current frame source."""
        with self._source_lock:
            source = self._source
            self._source = None
        if source is not None:
            try:
                source.close()
            except Exception as e:
                logging.warning(f"Error closing source: {e}")

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no inference call is outstanding. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._inflight is None, timeout)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        interval = self.config.interval_ms / 1000.0
        next_tick = time.monotonic() + interval
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            try:
                self.tick()
            except Exception as e:
                logging.error(f"Unexpected error in detection tick: {e}")
            self._maybe_log_stats()

            next_tick += interval
            now = time.monotonic()
            if next_tick < now:
                next_tick = now

    def tick(self) -> bool:
        """
        Run one iteration of the loop.

        Returns True if a frame was submitted to the detector.
        """
        if self._stop_event.is_set():
            return False
        with self._lock:
            self.stats.ticks += 1

        detector = self._loader.detector
        if detector is None:
            with self._lock:
                self.stats.skipped_not_loaded += 1
            return False

        try:
            frame_data = self._read_frame()
        except FrameNotReady:
            with self._lock:
                self.stats.skipped_no_frame += 1
            return False

        try:
            return self._submit(detector, frame_data)
        except DetectorBusy:
            with self._lock:
                self.stats.skipped_busy += 1
            return False

    def _read_frame(self) -> FrameData:
        with self._source_lock:
            if self._source is None:
                raise FrameNotReady("No frame source")
            frame_data = self._source.get_frame()
        with self._lock:
            self._latest_frame = frame_data
        return frame_data

    def _submit(self, detector: Any, frame_data: FrameData) -> bool:
        with self._lock:
            if self._inflight is not None:
                raise DetectorBusy("Inference call still outstanding")
            if self._executor is None:
                return False
            self._submitted_seq += 1
            seq = self._submitted_seq
            generation = self._generation
            submitted_at = time.monotonic()
            future = self._executor.submit(detector.detect, frame_data.frame)
            self._inflight = future
            self.stats.submitted += 1

        future.add_done_callback(
            functools.partial(
                self._on_done,
                seq=seq,
                generation=generation,
                frame_data=frame_data,
                submitted_at=submitted_at,
            )
        )
        return True

    def _on_done(
        self,
        future: Future,
        seq: int,
        generation: int,
        frame_data: FrameData,
        submitted_at: float,
    ) -> None:
        event: Optional[PredictionsPublished] = None
        try:
            try:
                detections = tuple(future.result())
            except CancelledError:
                return
            except Exception as e:
                with self._lock:
                    self.stats.detector_errors += 1
                logging.warning(f"Detector call failed: {e}")
                return

            latency = time.monotonic() - submitted_at
            threshold = self._threshold_provider()
            with self._lock:
                if generation != self._generation or seq <= self._applied_seq:
                    self.stats.discarded += 1
                    logging.debug(f"Discarding stale result set seq={seq}")
                    return
                self._applied_seq = seq
                self._predictions = detections
                self._predictions_frame = frame_data
                self.stats.published += 1
                self.stats.last_latency_s = latency

                try:
                    new_entries = self._history.record(detections, frame_data, threshold)
                except Exception as e:
                    logging.error(f"History capture failed: {e}")
                    new_entries = []

                event = PredictionsPublished(
                    seq=seq,
                    frame=frame_data,
                    detections=detections,
                    new_entries=tuple(new_entries),
                    latency_s=latency,
                )
        finally:
            with self._idle:
                if self._inflight is future:
                    self._inflight = None
                self._idle.notify_all()

        if event is not None:
            self._notify(event)

    def _notify(self, event: PredictionsPublished) -> None:
        for callback in self._listeners:
            try:
                callback(event)
            except Exception as e:
                logging.warning(f"Listener error: {e}")

    def _maybe_log_stats(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time < self.config.stats_log_interval:
            return
        stats = self.stats_snapshot()
        latency = stats["last_latency_s"]
        logging.info(
            f"Detection stats: ticks={stats['ticks']}, published={stats['published']}, "
            f"busy_skips={stats['skipped_busy']}, no_frame={stats['skipped_no_frame']}, "
            f"latency_ms={latency * 1000 if latency is not None else 'n/a'}"
        )
        with self._lock:
            self.stats.last_stats_log_time = now
