"""
Error taxonomy for the detection viewer.

Only ModelLoadFailure is user-visible; the others are transient conditions
that make the caller skip the current cycle.
"""

from __future__ import annotations


class ViewerError(RuntimeError):
    """Base class for viewer errors."""


class ModelLoadFailure(ViewerError):
    """The detector could not be loaded; detection stays unavailable."""


class FrameNotReady(ViewerError):
    """No decodable frame is available yet (cold start, camera switch, read failure)."""


class DetectorBusy(ViewerError):
    """An inference call is already outstanding for this detector."""


class SnapshotUnavailable(ViewerError):
    """A snapshot could not be rendered or encoded."""
