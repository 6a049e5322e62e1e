"""
Annotate stage: draws detections on frames and encodes still snapshots.

Used by the history store (first-sighting captures), manual screenshots and
the live overlay. Nothing here mutates its inputs or any shared state.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

import cv2
import numpy as np

from models.config import SnapshotConfig
from models.detection import Detection
from models.frame import FrameData
from runtime.errors import FrameNotReady, SnapshotUnavailable

FONT = cv2.FONT_HERSHEY_SIMPLEX
TAG_PADDING = 2


def tag_span(box_top: int, tag_height: int) -> Tuple[int, int]:
    """
    Vertical extent (top, bottom) of a label tag for a box.

    The tag sits above the box; when that would leave the canvas it is
    placed just below the box's top edge instead.
    """
    if box_top >= tag_height:
        return box_top - tag_height, box_top
    return box_top, box_top + tag_height


class SnapshotCompositor:
    """
    Renders frames with bounding-box and label annotations.

    Example:
        compositor = SnapshotCompositor(SnapshotConfig(jpeg_quality=85))
        jpeg = compositor.compose(frame_data, detections, threshold=0.5)
    """

    def __init__(self, config: Optional[SnapshotConfig] = None):
        self.config = config or SnapshotConfig()
        self._box_color = tuple(int(c) for c in self.config.box_color)
        self._text_color = tuple(int(c) for c in self.config.text_color)

    def annotate(
        self,
        frame: np.ndarray,
        detections: Iterable[Detection],
        threshold: float,
    ) -> np.ndarray:
        """Return a copy of `frame` with every detection scoring >= threshold drawn."""
        canvas = frame.copy()
        h, w = canvas.shape[:2]
        for det in detections:
            if not det.is_visible(threshold):
                continue
            self._draw_detection(canvas, det, w, h)
        return canvas

    def _draw_detection(self, canvas: np.ndarray, det: Detection, w: int, h: int) -> None:
        x1, y1, x2, y2 = det.bbox.as_int_tuple()
        x1 = min(max(x1, 0), w - 1)
        x2 = min(max(x2, 0), w - 1)
        y1 = min(max(y1, 0), h - 1)
        y2 = min(max(y2, 0), h - 1)
        if x2 <= x1 or y2 <= y1:
            return

        cv2.rectangle(canvas, (x1, y1), (x2, y2), self._box_color, self.config.line_thickness)

        scale = self.config.font_scale
        (tw, th), baseline = cv2.getTextSize(det.label, FONT, scale, 1)
        tag_h = th + baseline + 2 * TAG_PADDING
        top, bottom = tag_span(y1, tag_h)
        cv2.rectangle(canvas, (x1, top), (x1 + tw + 2 * TAG_PADDING, bottom), self._box_color, -1)
        cv2.putText(
            canvas,
            det.label,
            (x1 + TAG_PADDING, bottom - baseline - TAG_PADDING),
            FONT,
            scale,
            self._text_color,
            1,
        )

    def encode(self, image: np.ndarray) -> bytes:
        """Encode an image as JPEG bytes."""
        try:
            ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(self.config.jpeg_quality)])
        except cv2.error as e:
            raise SnapshotUnavailable(f"JPEG encoding failed: {e}") from e
        if not ok:
            raise SnapshotUnavailable("JPEG encoding failed")
        return buf.tobytes()

    def render(
        self,
        frame_data: Optional[FrameData],
        detections: Sequence[Detection],
        threshold: float,
        draw_boxes: bool = True,
    ) -> np.ndarray:
        """
        Produce the (unencoded) image for a frame, annotated if requested.

        Raises:
            FrameNotReady: If there is no frame to draw on.
        """
        if frame_data is None or frame_data.frame is None or frame_data.frame.size == 0:
            raise FrameNotReady("No frame available for snapshot")
        if not draw_boxes:
            return frame_data.copy_pixels()
        return self.annotate(frame_data.frame, detections, threshold)

    def compose(
        self,
        frame_data: Optional[FrameData],
        detections: Sequence[Detection],
        threshold: float,
        draw_boxes: bool = True,
    ) -> bytes:
        """
        Render and encode a snapshot.

        Raises:
            FrameNotReady: If there is no frame to draw on.
            SnapshotUnavailable: If encoding fails.
        """
        return self.encode(self.render(frame_data, detections, threshold, draw_boxes))
