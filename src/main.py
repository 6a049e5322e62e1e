"""
Main application for the Object Detector viewer.

Opens the camera, loads the object detector in the background, runs the
fixed-cadence detection loop and serves the viewer API. Every object class
seen for the first time is recorded in the detection history with an
annotated snapshot.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the live overlay in an OpenCV window
    --no-web: Do not start the web server
"""

import os
import sys
import argparse
import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import cv2
import uvicorn
import yaml

from models.config import CAPTURE_POLICIES, FACINGS, Config
from ops.logging import setup_logging
from runtime.errors import FrameNotReady, SnapshotUnavailable
from runtime.session import ViewerSession
from web.app import create_app
from web.state import state as web_state

WINDOW_NAME = "Object Detector"
THRESHOLD_STEP = 0.05


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"
    if camera.get('facing', 'front') not in FACINGS:
        return False, f"camera.facing must be one of: {', '.join(FACINGS)}"
    devices = camera.get('devices', {})
    if not isinstance(devices, dict):
        return False, "camera.devices must map facing to a device index or path"
    for facing, device in devices.items():
        if facing not in FACINGS:
            return False, f"camera.devices has unknown facing: {facing}"
        if not isinstance(device, (int, str)):
            return False, f"camera.devices.{facing} must be an integer (index) or string (path)"
        if isinstance(device, int) and device < 0:
            return False, f"camera.devices.{facing} integer must be non-negative"
    if 'resolution' in camera:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in res):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"

    # Detection
    detection = config.get('detection') or {}
    if detection.get('backend', 'yolo') != 'yolo':
        return False, "detection.backend must be: yolo"
    yolo_cfg = detection.get('yolo') or {}
    if 'model' in yolo_cfg and (not isinstance(yolo_cfg['model'], str) or not yolo_cfg['model']):
        return False, "detection.yolo.model must be a non-empty string"
    for key in ('conf_threshold', 'iou_threshold'):
        if key in yolo_cfg:
            value = yolo_cfg[key]
            if not isinstance(value, (int, float)) or not (0 <= value <= 1):
                return False, f"detection.yolo.{key} must be a number between 0 and 1"
    if 'max_detections' in yolo_cfg:
        md = yolo_cfg['max_detections']
        if not isinstance(md, int) or md <= 0:
            return False, "detection.yolo.max_detections must be a positive integer"

    # Scheduler
    scheduler = config.get('scheduler') or {}
    if 'interval_ms' in scheduler:
        interval = scheduler['interval_ms']
        if not isinstance(interval, int) or interval <= 0:
            return False, "scheduler.interval_ms must be a positive integer"

    # Viewer
    viewer = config.get('viewer') or {}
    if 'confidence_threshold' in viewer:
        thr = viewer['confidence_threshold']
        if not isinstance(thr, (int, float)) or not (0 <= thr <= 1):
            return False, "viewer.confidence_threshold must be between 0 and 1"
    if 'show_boxes' in viewer and not isinstance(viewer['show_boxes'], bool):
        return False, "viewer.show_boxes must be a boolean"

    # History
    history = config.get('history') or {}
    if history.get('capture_policy', 'first_sighting') not in CAPTURE_POLICIES:
        return False, f"history.capture_policy must be one of: {', '.join(CAPTURE_POLICIES)}"

    # Snapshot
    snapshot = config.get('snapshot') or {}
    if 'jpeg_quality' in snapshot:
        q = snapshot['jpeg_quality']
        if not isinstance(q, int) or not (1 <= q <= 100):
            return False, "snapshot.jpeg_quality must be an integer between 1 and 100"

    # Web
    web = config.get('web') or {}
    if 'port' in web and (not isinstance(web['port'], int) or not (0 < web['port'] < 65536)):
        return False, "web.port must be a valid TCP port"

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def save_screenshot(session: ViewerSession, output_dir: str) -> Optional[str]:
    """Write a manual screenshot to disk. Returns the path, or None if no frame was ready."""
    try:
        data = session.capture_screenshot()
    except (FrameNotReady, SnapshotUnavailable) as e:
        logging.warning(f"Screenshot skipped: {e}")
        return None

    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    path = os.path.join(output_dir, f"screenshot_{timestamp}.jpg")
    with open(path, "wb") as f:
        f.write(data)
    logging.info(f"Screenshot saved: {path}")
    return path


def handle_key(session: ViewerSession, key: int, output_dir: str) -> bool:
    """
    Apply a display-window key press.

    Returns False when the user asked to quit.
    """
    if key == ord('q'):
        return False
    if key == ord('s'):
        save_screenshot(session, output_dir)
    elif key == ord('b'):
        session.update_settings(show_boxes=not session.settings.show_boxes)
    elif key == ord('c'):
        session.toggle_camera()
    elif key in (ord('+'), ord('=')):
        thr = min(1.0, session.settings.confidence_threshold + THRESHOLD_STEP)
        session.update_settings(confidence_threshold=round(thr, 2))
    elif key in (ord('-'), ord('_')):
        thr = max(0.0, session.settings.confidence_threshold - THRESHOLD_STEP)
        session.update_settings(confidence_threshold=round(thr, 2))
    return True


def run_display(session: ViewerSession, output_dir: str) -> None:
    """Show the live overlay until the user presses 'q'."""
    while True:
        image = session.render_live_frame()
        if image is not None:
            state_label = session.loader.state.value
            if state_label != "ready":
                text = "Loading model..." if state_label == "loading" else "Detection unavailable"
                cv2.putText(image, text, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 255), 2)
            cv2.putText(
                image,
                f"Threshold: {session.settings.confidence_threshold:.2f}  History: {len(session.history)}",
                (10, image.shape[0] - 10),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                (255, 255, 255),
                1,
            )
            cv2.imshow(WINDOW_NAME, image)
        key = cv2.waitKey(30) & 0xFF
        if key != 0xFF and not handle_key(session, key, output_dir):
            break


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Object Detector - real-time detection viewer')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show the live overlay in a window')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the web server')
    args = parser.parse_args()

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting Object Detector")

    cfg = Config.from_dict(config)
    session = ViewerSession(cfg)
    web_state.set_session(session)

    if cfg.web.enabled and not args.no_web:
        def run_web_app():
            uvicorn.run(
                create_app(),
                host=cfg.web.host,
                port=cfg.web.port,
                log_level="info",
            )

        web_thread = threading.Thread(target=run_web_app, name="web", daemon=True)
        web_thread.start()
        logging.info(f"Web interface started on port {cfg.web.port}")

    try:
        session.start()
        if args.display:
            run_display(session, cfg.screenshot_dir)
        else:
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        session.stop()
        if args.display:
            cv2.destroyAllWindows()
        logging.info(f"Object Detector stopped (history: {len(session.history)} classes)")


if __name__ == "__main__":
    main()
