"""Media capture abstractions consumed by the recording controller."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CaptureOptions:
    """How the capture resource should be configured when it is opened."""

    sample_rate: int = 16_000
    channels: int = 1
    exclusive: bool = True
    mix_with_others: bool = False
    metering: bool = True


@dataclass(frozen=True)
class CaptureStatus:
    elapsed_ms: int
    metering_db: Optional[float] = None


@dataclass(frozen=True)
class FinalizedCapture:
    uri: str
    duration_ms: int


class MediaCapture(abc.ABC):
    """Asynchronous microphone capability.

    Handles returned by :meth:`start_capture` are opaque to callers and must be
    handed back to the other methods unchanged.
    """

    @abc.abstractmethod
    async def request_permission(self) -> bool:
        """Return ``True`` when microphone access is granted.

        Backends may raise :class:`PermissionDeniedError` instead of returning
        ``False``; the controller treats both the same way.
        """

    @abc.abstractmethod
    async def start_capture(self, options: CaptureOptions) -> Any:
        """Open and start the capture resource, returning its handle."""

    @abc.abstractmethod
    async def read_status(self, handle: Any) -> CaptureStatus:
        """Return elapsed time and, when available, the current loudness."""

    @abc.abstractmethod
    async def finalize(self, handle: Any) -> FinalizedCapture:
        """Stop capturing and persist the audio."""

    @abc.abstractmethod
    async def release(self, handle: Any) -> None:
        """Free the resource; unfinalized data is discarded."""


class CaptureError(RuntimeError):
    """Raised when audio capture cannot be initialised or used."""


class PermissionDeniedError(CaptureError):
    """Raised when the platform refuses microphone access."""


__all__ = [
    "CaptureError",
    "CaptureOptions",
    "CaptureStatus",
    "FinalizedCapture",
    "MediaCapture",
    "PermissionDeniedError",
]
