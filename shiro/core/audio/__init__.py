"""Audio capture package."""

from .base import (
    CaptureError,
    CaptureOptions,
    CaptureStatus,
    FinalizedCapture,
    MediaCapture,
    PermissionDeniedError,
)
from .session import CapturedAudio, RecordingSessionController, RecordingState

__all__ = [
    "CaptureError",
    "CaptureOptions",
    "CaptureStatus",
    "CapturedAudio",
    "FinalizedCapture",
    "MediaCapture",
    "PermissionDeniedError",
    "RecordingSessionController",
    "RecordingState",
]
