from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class DetectionModel(BaseModel):
    label: str
    score: float
    bbox: List[float] = Field(..., description="[x, y, width, height] in frame pixels")


class PredictionsResponse(BaseModel):
    threshold: float
    total: int = Field(..., description="Detections in the latest result set before thresholding")
    detections: List[DetectionModel]


class SettingsModel(BaseModel):
    confidence_threshold: float
    show_boxes: bool
    facing: Literal["front", "back"]


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields are left unchanged."""
    confidence_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    show_boxes: Optional[bool] = None
    facing: Optional[Literal["front", "back"]] = None


class HistoryItem(BaseModel):
    index: int = Field(..., description="Position in history (0 = newest)")
    label: str
    score: float
    timestamp: float
    time_label: str
    snapshot_url: str


class StatusResponse(BaseModel):
    detector_state: str = Field(..., description="loading|ready|unavailable")
    detector_error: Optional[str] = None
    camera_source: Optional[str] = None
    camera_ready: bool
    last_frame_age_s: Optional[float] = None
    settings: SettingsModel
    predictions: int
    history_size: int
    uptime_seconds: Optional[int] = None
    scheduler: Dict[str, Any]
