"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  facing: "front"
  devices:
    front: 0
    back: 1
  resolution: [640, 480]
  fps: 30

detection:
  backend: "yolo"
  yolo:
    model: "yolov8n.pt"
    conf_threshold: 0.25

scheduler:
  interval_ms: 100

viewer:
  confidence_threshold: 0.5
  show_boxes: true

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "facing": "front",
            "devices": {"front": 0, "back": 1},
            "resolution": [1280, 720],
            "fps": 30,
        },
        "detection": {
            "backend": "yolo",
            "yolo": {
                "model": "yolov8n.pt",
                "conf_threshold": 0.25,
                "iou_threshold": 0.45,
                "max_detections": 20,
            },
        },
        "scheduler": {"interval_ms": 100},
        "viewer": {"confidence_threshold": 0.5, "show_boxes": True},
        "history": {"capture_policy": "first_sighting"},
        "snapshot": {"jpeg_quality": 90},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def gray_frame():
    """A mid-gray 120x160 BGR frame."""
    return np.full((120, 160, 3), 128, dtype=np.uint8)
