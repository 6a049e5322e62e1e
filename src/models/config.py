"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

FACINGS = ("front", "back")
CAPTURE_POLICIES = ("first_sighting", "above_threshold")


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    facing: str = "front"
    devices: Dict[str, Union[int, str]] = field(default_factory=lambda: {"front": 0, "back": 1})
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    def device_for(self, facing: str) -> Union[int, str]:
        """Resolve the capture device for a camera facing."""
        if facing not in FACINGS:
            raise ValueError(f"facing must be one of {FACINGS}, got {facing!r}")
        return self.devices.get(facing, 0 if facing == "front" else 1)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            facing=d.get("facing", "front"),
            devices=dict(d.get("devices") or {"front": 0, "back": 1}),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "facing": self.facing,
            "devices": dict(self.devices),
            "resolution": self.resolution,
            "fps": self.fps,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class YoloConfig:
    """YOLO detector configuration."""
    model: str = "yolov8n.pt"
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    max_detections: int = 20
    classes: Optional[List[int]] = None
    class_name_overrides: Optional[Dict[int, str]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "YoloConfig":
        return cls(
            model=d.get("model", "yolov8n.pt"),
            conf_threshold=d.get("conf_threshold", 0.25),
            iou_threshold=d.get("iou_threshold", 0.45),
            max_detections=d.get("max_detections", 20),
            classes=d.get("classes"),
            class_name_overrides=d.get("class_name_overrides"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "model": self.model,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "max_detections": self.max_detections,
        }
        if self.classes is not None:
            d["classes"] = self.classes
        if self.class_name_overrides is not None:
            d["class_name_overrides"] = self.class_name_overrides
        return d


@dataclass
class DetectionConfig:
    """Detection configuration."""
    backend: str = "yolo"
    yolo: YoloConfig = field(default_factory=YoloConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            backend=d.get("backend", "yolo"),
            yolo=YoloConfig.from_dict(d.get("yolo") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "yolo": self.yolo.to_dict(),
        }


@dataclass
class SchedulerConfig:
    """Detection loop cadence."""
    interval_ms: int = 100
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            interval_ms=d.get("interval_ms", 100),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_ms": self.interval_ms,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class ViewerConfig:
    """Initial values for the user-adjustable viewer settings."""
    confidence_threshold: float = 0.5
    show_boxes: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ViewerConfig":
        return cls(
            confidence_threshold=d.get("confidence_threshold", 0.5),
            show_boxes=d.get("show_boxes", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence_threshold": self.confidence_threshold,
            "show_boxes": self.show_boxes,
        }


@dataclass
class HistoryConfig:
    """
    Detection history policy.

    capture_policy:
        "first_sighting": any detection claims its label, regardless of threshold.
        "above_threshold": only detections at or above the current threshold are captured.
    """
    capture_policy: str = "first_sighting"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HistoryConfig":
        return cls(capture_policy=d.get("capture_policy", "first_sighting"))

    def to_dict(self) -> Dict[str, Any]:
        return {"capture_policy": self.capture_policy}


@dataclass
class SnapshotConfig:
    """Annotation style and JPEG encoding."""
    jpeg_quality: int = 90
    box_color: List[int] = field(default_factory=lambda: [0, 0, 255])  # BGR red
    text_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    line_thickness: int = 2
    font_scale: float = 0.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SnapshotConfig":
        return cls(
            jpeg_quality=d.get("jpeg_quality", 90),
            box_color=d.get("box_color", [0, 0, 255]),
            text_color=d.get("text_color", [255, 255, 255]),
            line_thickness=d.get("line_thickness", 2),
            font_scale=d.get("font_scale", 0.5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jpeg_quality": self.jpeg_quality,
            "box_color": self.box_color,
            "text_color": self.text_color,
            "line_thickness": self.line_thickness,
            "font_scale": self.font_scale,
        }


@dataclass
class WebConfig:
    """Web server configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000
    stream_fps: int = 10

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
            stream_fps=d.get("stream_fps", 10),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
            "stream_fps": self.stream_fps,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    web: WebConfig = field(default_factory=WebConfig)
    screenshot_dir: str = "output/screenshots"
    log_path: str = "logs/object_viewer.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        output = d.get("output") or {}
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            detection=DetectionConfig.from_dict(d.get("detection") or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler") or {}),
            viewer=ViewerConfig.from_dict(d.get("viewer") or {}),
            history=HistoryConfig.from_dict(d.get("history") or {}),
            snapshot=SnapshotConfig.from_dict(d.get("snapshot") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            screenshot_dir=output.get("screenshot_dir", "output/screenshots"),
            log_path=d.get("log_path", "logs/object_viewer.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "viewer": self.viewer.to_dict(),
            "history": self.history.to_dict(),
            "snapshot": self.snapshot.to_dict(),
            "web": self.web.to_dict(),
            "output": {"screenshot_dir": self.screenshot_dir},
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
