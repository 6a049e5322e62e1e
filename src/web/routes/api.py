from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response, StreamingResponse

from runtime.errors import FrameNotReady, SnapshotUnavailable
from ..services.stream_service import LiveStreamService
from ..state import state
from ..api_models import (
    DetectionModel,
    HistoryItem,
    PredictionsResponse,
    SettingsModel,
    SettingsUpdate,
    StatusResponse,
)

router = APIRouter()


def _require_session():
    session = state.get_session()
    if session is None:
        raise HTTPException(status_code=503, detail="Viewer session not started")
    return session


def _jpeg_response(data: bytes, filename: str, download: bool) -> Response:
    headers = {"Cache-Control": "no-store"}
    if download:
        headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return Response(content=data, media_type="image/jpeg", headers=headers)


@router.get("/status", response_model=StatusResponse)
def status():
    """
    Viewer status for the UI.
    Fields:
    - detector_state: loading|ready|unavailable (unavailable = model failed to load)
    - camera_source / camera_ready / last_frame_age_s: frame source freshness
    - settings: current threshold, box visibility and camera facing
    - predictions / history_size: counts of the latest result set and of history
    - scheduler: detection loop counters (ticks, busy skips, latency, ...)
    """
    return _require_session().status()


@router.get("/settings", response_model=SettingsModel)
def get_settings():
    return _require_session().settings.to_dict()


@router.post("/settings", response_model=SettingsModel)
def update_settings(req: SettingsUpdate):
    session = _require_session()
    try:
        settings = session.update_settings(
            confidence_threshold=req.confidence_threshold,
            show_boxes=req.show_boxes,
            facing=req.facing,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return settings.to_dict()


@router.get("/predictions", response_model=PredictionsResponse)
def predictions():
    """Latest result set, filtered by the current confidence threshold."""
    session = _require_session()
    threshold = session.settings.confidence_threshold
    current = session.current_predictions()
    visible = [d for d in current if d.is_visible(threshold)]
    return PredictionsResponse(
        threshold=threshold,
        total=len(current),
        detections=[DetectionModel(**d.to_dict()) for d in visible],
    )


@router.get("/history", response_model=List[HistoryItem])
def history():
    """Detection history, newest first."""
    entries = _require_session().history_entries()
    return [
        HistoryItem(
            index=i,
            label=e.label,
            score=e.score,
            timestamp=e.timestamp,
            time_label=e.time_label,
            snapshot_url=f"/api/history/{i}/snapshot.jpg",
        )
        for i, e in enumerate(entries)
    ]


@router.get("/history/{index}/snapshot.jpg")
def history_snapshot(index: int, download: bool = False):
    try:
        data = _require_session().export_history_snapshot(index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"No history entry at index {index}")
    return _jpeg_response(data, "detection.jpg", download)


@router.post("/screenshot")
def screenshot(download: bool = True):
    """Capture the current view (annotated if boxes are shown); not added to history."""
    try:
        data = _require_session().capture_screenshot()
    except FrameNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SnapshotUnavailable as e:
        logging.warning(f"Screenshot failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return _jpeg_response(data, "screenshot.jpg", download)


@router.get("/camera/live.mjpg")
def camera_live_stream(fps: Optional[int] = None):
    session = _require_session()
    return StreamingResponse(
        LiveStreamService.mjpeg_stream(session, fps=fps or session.config.web.stream_fps),
        media_type="multipart/x-mixed-replace; boundary=frame",
    )
