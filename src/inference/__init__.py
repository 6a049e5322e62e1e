"""
Inference layer: detector backends and background loading.
"""

from typing import Callable

from models.config import DetectionConfig
from .backend import InferenceBackend
from .loader import DetectorLoader, LoadState


def detector_factory_from_config(detection_cfg: DetectionConfig) -> Callable[[], InferenceBackend]:
    """
    Return a zero-argument factory that builds the configured backend.

    Construction is deferred so the (slow) model load happens on the
    loader thread rather than at startup.
    """
    if detection_cfg.backend != "yolo":
        raise ValueError(f"Unsupported detection backend: {detection_cfg.backend}")

    ycfg = detection_cfg.yolo

    def build() -> InferenceBackend:
        from .cpu_backend import CpuYoloConfig, UltralyticsCpuBackend

        return UltralyticsCpuBackend(
            CpuYoloConfig(
                model=ycfg.model,
                conf_threshold=float(ycfg.conf_threshold),
                iou_threshold=float(ycfg.iou_threshold),
                max_detections=int(ycfg.max_detections),
                classes=ycfg.classes,
                class_name_overrides=ycfg.class_name_overrides,
            )
        )

    return build


__all__ = [
    "InferenceBackend",
    "DetectorLoader",
    "LoadState",
    "detector_factory_from_config",
]
