from __future__ import annotations

import time
from typing import Iterable

from pipeline.stages.annotate import SnapshotCompositor
from runtime.errors import SnapshotUnavailable


class LiveStreamService:
    @staticmethod
    def mjpeg_stream(session, fps: int = 10, max_frames: int = 0) -> Iterable[bytes]:
        """
        Yield MJPEG multipart chunks of the live overlay.

        Frames come from the session (the detection loop is the only camera
        reader), so any number of clients can stream at once. `max_frames`
        bounds the stream (0 = unbounded).
        """
        fps = max(1, min(30, int(fps)))
        delay = 1.0 / fps
        compositor: SnapshotCompositor = session.compositor

        sent = 0
        while max_frames <= 0 or sent < max_frames:
            image = session.render_live_frame()
            if image is None:
                time.sleep(delay)
                continue
            try:
                jpg = compositor.encode(image)
            except SnapshotUnavailable:
                time.sleep(delay)
                continue
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg + b"\r\n"
            sent += 1
            time.sleep(delay)
