"""
Background detector loading.

Model weights can take a long time to load (or download), so the loader runs
the backend factory on a daemon thread and exposes the outcome as a state the
UI can show: "loading", "ready" or "unavailable".
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from runtime.errors import ModelLoadFailure
from .backend import InferenceBackend


class LoadState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class DetectorLoader:
    """
    Loads a detector exactly once and hands it out once ready.

    Example:
        loader = DetectorLoader(lambda: UltralyticsCpuBackend(cfg))
        loader.start()
        ...
        detector = loader.detector  # None until READY
    """

    def __init__(self, factory: Callable[[], InferenceBackend]):
        self._factory = factory
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = LoadState.LOADING
        self._detector: Optional[InferenceBackend] = None
        self._error: Optional[ModelLoadFailure] = None
        self._load_seconds: Optional[float] = None

    @property
    def state(self) -> LoadState:
        with self._lock:
            return self._state

    @property
    def detector(self) -> Optional[InferenceBackend]:
        """The loaded detector, or None while loading or after a failure."""
        with self._lock:
            return self._detector

    @property
    def error(self) -> Optional[ModelLoadFailure]:
        with self._lock:
            return self._error

    @property
    def load_seconds(self) -> Optional[float]:
        with self._lock:
            return self._load_seconds

    def start(self) -> None:
        """Begin loading on a background thread (idempotent)."""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self.load, name="detector-loader", daemon=True)
        self._thread.start()

    def load(self) -> None:
        """Run the factory synchronously and record the outcome."""
        start = time.monotonic()
        logging.info("Loading detector model...")
        try:
            detector = self._factory()
        except Exception as e:
            failure = ModelLoadFailure(f"Detector failed to load: {e}")
            failure.__cause__ = e
            with self._lock:
                self._state = LoadState.UNAVAILABLE
                self._error = failure
            logging.error(str(failure))
        else:
            elapsed = time.monotonic() - start
            with self._lock:
                self._detector = detector
                self._state = LoadState.READY
                self._load_seconds = elapsed
            logging.info(f"Detector ready (loaded in {elapsed:.1f}s)")
        finally:
            self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until loading finished (either way). Returns False on timeout."""
        return self._done.wait(timeout)
