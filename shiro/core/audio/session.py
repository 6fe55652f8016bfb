"""Recording session controller.

Owns exactly one in-flight microphone capture: permission, live duration and
level polling, then either stop-and-save or cancel-and-discard. Every exit
path funnels through :meth:`RecordingSessionController._release` so the
capture resource is freed exactly once.
"""

from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ...logging import get_logger
from .base import CaptureOptions, MediaCapture, PermissionDeniedError
from .levels import (
    DEFAULT_OSCILLATION_PERIOD,
    MIN_SCALE,
    level_to_scale,
    normalize_db,
    oscillation_scale,
)

LOGGER = get_logger(__name__)

PERMISSION_DENIED_TITLE = "Permission Denied"
PERMISSION_DENIED_MESSAGE = "Microphone access is required to record audio."
START_FAILED_TITLE = "Recording Error"
START_FAILED_MESSAGE = "The microphone could not be started."
SAVE_FAILED_TITLE = "Recording Error"
SAVE_FAILED_MESSAGE = "The recording could not be saved."

AlertCallback = Callable[[str, str], None]


class RecordingState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    ACTIVE = "active"
    STOPPING = "stopping"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


_BUSY_STATES = frozenset(
    {RecordingState.REQUESTING_PERMISSION, RecordingState.ACTIVE, RecordingState.STOPPING}
)
_CANCELLABLE_STATES = frozenset({RecordingState.REQUESTING_PERMISSION, RecordingState.ACTIVE})


@dataclass(frozen=True)
class CapturedAudio:
    local_handle: str
    duration_ms: int


def _log_alert(title: str, message: str) -> None:
    LOGGER.warning("%s: %s", title, message)


class RecordingSessionController:
    """State machine around a single :class:`MediaCapture` session."""

    def __init__(
        self,
        capture: MediaCapture,
        options: Optional[CaptureOptions] = None,
        *,
        duration_interval: float = 0.2,
        level_interval: float = 0.14,
        metering_probe_samples: int = 2,
        oscillation_period: float = DEFAULT_OSCILLATION_PERIOD,
        release_timeout: Optional[float] = 5.0,
        alert: Optional[AlertCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if duration_interval <= 0 or level_interval <= 0:
            raise ValueError("poll intervals must be positive")
        if metering_probe_samples < 1:
            raise ValueError("metering_probe_samples must be at least 1")
        self._capture = capture
        self._options = options or CaptureOptions()
        self._duration_interval = duration_interval
        self._level_interval = level_interval
        self._probe_samples = metering_probe_samples
        self._oscillation_period = oscillation_period
        self._release_timeout = release_timeout
        self._alert = alert or _log_alert
        self._clock = clock

        self._state = RecordingState.IDLE
        self._generation = 0
        self._handle: Any = None
        self._tasks: List[asyncio.Task] = []
        self._reset_session()

    def _reset_session(self) -> None:
        self._elapsed_ms = 0
        self._metering_available: Optional[bool] = None
        self._level = 0.0
        self._level_samples = 0
        self._started_at: Optional[float] = None
        self._result: Optional[CapturedAudio] = None
        self._error: Optional[str] = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state in _BUSY_STATES

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def metering_available(self) -> Optional[bool]:
        """``None`` until the first probe samples decide either way."""
        return self._metering_available

    @property
    def level_normalized(self) -> float:
        return self._level

    @property
    def result(self) -> Optional[CapturedAudio]:
        return self._result

    @property
    def error(self) -> Optional[str]:
        return self._error

    def display_scale(self, now: Optional[float] = None) -> float:
        """Indicator scale for the current instant.

        Real loudness maps onto ``1.0`` .. ``1.5``; without metering a smooth
        ``1.0`` .. ``1.25`` oscillation keeps the indicator moving.
        """

        if self._state is not RecordingState.ACTIVE or self._started_at is None:
            return MIN_SCALE
        if self._metering_available is False:
            now = self._clock() if now is None else now
            return oscillation_scale(now - self._started_at, self._oscillation_period)
        return level_to_scale(self._level)

    async def start(self) -> bool:
        if self.is_busy:
            LOGGER.warning("Recording already in progress (%s); ignoring start", self._state.value)
            return False

        self._generation += 1
        generation = self._generation
        self._reset_session()
        self._state = RecordingState.REQUESTING_PERMISSION

        try:
            granted = await self._capture.request_permission()
        except PermissionDeniedError as exc:
            LOGGER.warning("Microphone access refused: %s", exc)
            granted = False
        except Exception:
            LOGGER.exception("Microphone permission request failed")
            granted = False
        if not self._is_current(generation, RecordingState.REQUESTING_PERMISSION):
            return False
        if not granted:
            self._fail(PERMISSION_DENIED_TITLE, PERMISSION_DENIED_MESSAGE)
            return False

        opening = asyncio.ensure_future(self._capture.start_capture(self._options))
        try:
            handle = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The device may still finish opening after the caller gave up.
            if self._is_current(generation, RecordingState.REQUESTING_PERMISSION):
                self._state = RecordingState.CANCELLED
            await self._release_when_opened(opening)
            raise
        except Exception as exc:
            LOGGER.exception("Failed to start capture")
            if self._is_current(generation, RecordingState.REQUESTING_PERMISSION):
                self._fail(START_FAILED_TITLE, f"{START_FAILED_MESSAGE} ({exc})")
            return False
        if not self._is_current(generation, RecordingState.REQUESTING_PERMISSION):
            # Cancelled while the device was opening.
            await self._release(handle)
            return False

        self._handle = handle
        self._started_at = self._clock()
        self._state = RecordingState.ACTIVE
        if not self._options.metering:
            self._metering_available = False
        self._tasks = [
            asyncio.create_task(self._poll_duration(generation)),
            asyncio.create_task(self._poll_level(generation)),
        ]
        LOGGER.info("Recording started")
        return True

    async def stop_and_save(self) -> Optional[CapturedAudio]:
        if self._state is not RecordingState.ACTIVE:
            LOGGER.warning("Cannot stop recording from state %s", self._state.value)
            return None

        self._state = RecordingState.STOPPING
        handle, self._handle = self._handle, None
        await self._halt_polls()

        try:
            finalized = await self._capture.finalize(handle)
        except Exception:
            LOGGER.exception("Failed to finalize recording")
            await self._release(handle)
            self._fail(SAVE_FAILED_TITLE, SAVE_FAILED_MESSAGE)
            return None
        await self._release(handle)

        self._elapsed_ms = max(int(finalized.duration_ms), 0)
        self._result = CapturedAudio(local_handle=finalized.uri, duration_ms=self._elapsed_ms)
        self._state = RecordingState.COMPLETED
        LOGGER.info("Recording saved to %s (%d ms)", finalized.uri, self._elapsed_ms)
        return self._result

    async def cancel(self) -> None:
        if self._state not in _CANCELLABLE_STATES:
            return

        self._state = RecordingState.CANCELLED
        handle, self._handle = self._handle, None
        await self._halt_polls()
        if handle is not None:
            await self._release(handle)
        LOGGER.info("Recording cancelled; partial audio discarded")

    async def aclose(self) -> None:
        """Teardown hook for hosts going away; identical to :meth:`cancel`."""

        await self.cancel()

    async def __aenter__(self) -> "RecordingSessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _is_current(self, generation: int, state: RecordingState) -> bool:
        return self._generation == generation and self._state is state

    def _fail(self, title: str, message: str) -> None:
        self._state = RecordingState.FAILED
        self._error = message
        try:
            self._alert(title, message)
        except Exception:
            LOGGER.exception("Alert callback raised an exception")

    async def _release(self, handle: Any) -> None:
        try:
            await asyncio.wait_for(self._capture.release(handle), timeout=self._release_timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("Releasing the capture resource timed out")
        except Exception as exc:
            LOGGER.debug("Ignoring error while releasing capture: %s", exc)

    async def _release_when_opened(self, opening: asyncio.Future[Any]) -> None:
        try:
            handle = await opening
        except Exception as exc:
            LOGGER.debug("Capture failed to open after start was abandoned: %s", exc)
            return
        await self._release(handle)

    async def _halt_polls(self) -> None:
        tasks, self._tasks = self._tasks, []
        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _read_status(self, generation: int):
        try:
            status = await self._capture.read_status(self._handle)
        except Exception as exc:
            LOGGER.debug("Transient capture status failure: %s", exc)
            return None
        if not self._is_current(generation, RecordingState.ACTIVE):
            return None
        return status

    async def _poll_duration(self, generation: int) -> None:
        while self._is_current(generation, RecordingState.ACTIVE):
            await asyncio.sleep(self._duration_interval)
            if not self._is_current(generation, RecordingState.ACTIVE):
                return
            status = await self._read_status(generation)
            if status is not None:
                self._elapsed_ms = max(self._elapsed_ms, int(status.elapsed_ms))

    async def _poll_level(self, generation: int) -> None:
        while self._is_current(generation, RecordingState.ACTIVE):
            if self._metering_available is False:
                return
            await asyncio.sleep(self._level_interval)
            if not self._is_current(generation, RecordingState.ACTIVE):
                return
            status = await self._read_status(generation)
            if status is None:
                continue
            self._level_samples += 1
            if status.metering_db is not None:
                self._metering_available = True
                self._level = normalize_db(status.metering_db)
            elif self._metering_available is None and self._level_samples >= self._probe_samples:
                self._metering_available = False
                LOGGER.info(
                    "No metering after %d sample(s); switching to synthetic level indicator",
                    self._level_samples,
                )


__all__ = [
    "CapturedAudio",
    "PERMISSION_DENIED_MESSAGE",
    "PERMISSION_DENIED_TITLE",
    "RecordingSessionController",
    "RecordingState",
    "SAVE_FAILED_MESSAGE",
]
