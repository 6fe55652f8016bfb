import asyncio
from typing import Optional

import pytest

from shiro.core.audio.base import (
    CaptureOptions,
    CaptureStatus,
    FinalizedCapture,
    MediaCapture,
    PermissionDeniedError,
)
from shiro.core.audio.session import (
    PERMISSION_DENIED_TITLE,
    CapturedAudio,
    RecordingSessionController,
    RecordingState,
)

FAST = dict(duration_interval=0.005, level_interval=0.005)


class FakeCapture(MediaCapture):
    def __init__(
        self,
        *,
        granted: bool = True,
        metering_db: Optional[float] = None,
        duration_ms: int = 12_000,
        status_failures: int = 0,
        finalize_error: Optional[Exception] = None,
        release_error: Optional[Exception] = None,
        permission_error: Optional[Exception] = None,
    ) -> None:
        self.granted = granted
        self.metering_db = metering_db
        self.duration_ms = duration_ms
        self.status_failures = status_failures
        self.finalize_error = finalize_error
        self.release_error = release_error
        self.permission_error = permission_error
        self.permission_gate: Optional[asyncio.Event] = None
        self.start_gate: Optional[asyncio.Event] = None
        self.opened: list[int] = []
        self.open_handles: set[int] = set()
        self.released: list[int] = []
        self.options: Optional[CaptureOptions] = None
        self.status_reads = 0
        self.elapsed_ms = 0

    async def request_permission(self) -> bool:
        if self.permission_gate is not None:
            await self.permission_gate.wait()
        if self.permission_error is not None:
            raise self.permission_error
        return self.granted

    async def start_capture(self, options: CaptureOptions) -> int:
        if self.start_gate is not None:
            await self.start_gate.wait()
        self.options = options
        handle = len(self.opened) + 1
        self.opened.append(handle)
        self.open_handles.add(handle)
        return handle

    async def read_status(self, handle: int) -> CaptureStatus:
        self.status_reads += 1
        if self.status_failures > 0:
            self.status_failures -= 1
            raise OSError("status unavailable")
        self.elapsed_ms += 200
        return CaptureStatus(elapsed_ms=self.elapsed_ms, metering_db=self.metering_db)

    async def finalize(self, handle: int) -> FinalizedCapture:
        if self.finalize_error is not None:
            raise self.finalize_error
        return FinalizedCapture(uri=f"file:///tmp/rec-{handle}.wav", duration_ms=self.duration_ms)

    async def release(self, handle: int) -> None:
        self.released.append(handle)
        self.open_handles.discard(handle)
        if self.release_error is not None:
            raise self.release_error


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.002)


def test_start_enters_active_and_polls_duration() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        assert await controller.start() is True
        assert controller.state is RecordingState.ACTIVE
        await _wait_until(lambda: controller.elapsed_ms >= 600)
        await controller.cancel()

    asyncio.run(_run())

    assert capture.options == CaptureOptions()
    assert capture.options.exclusive and not capture.options.mix_with_others


def test_permission_denied_fails_without_resource() -> None:
    alerts: list[tuple[str, str]] = []
    capture = FakeCapture(granted=False)
    controller = RecordingSessionController(capture, alert=lambda t, m: alerts.append((t, m)), **FAST)

    started = asyncio.run(controller.start())

    assert started is False
    assert controller.state is RecordingState.FAILED
    assert capture.opened == []
    assert alerts and alerts[0][0] == PERMISSION_DENIED_TITLE
    assert controller.error == alerts[0][1]


def test_cancel_is_idempotent() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await controller.cancel()
        assert controller.state is RecordingState.CANCELLED
        await controller.cancel()
        assert controller.state is RecordingState.CANCELLED

    asyncio.run(_run())

    assert capture.released == [1]
    assert controller.result is None


def test_second_start_is_rejected_while_active() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        assert await controller.start() is True
        assert await controller.start() is False
        assert controller.state is RecordingState.ACTIVE
        assert len(capture.open_handles) == 1
        await controller.cancel()

    asyncio.run(_run())

    assert capture.opened == [1]
    assert capture.open_handles == set()


def test_stop_and_save_emits_captured_audio() -> None:
    capture = FakeCapture(duration_ms=12_000)
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await asyncio.sleep(0.02)
        return await controller.stop_and_save()

    captured = asyncio.run(_run())

    assert captured == CapturedAudio(local_handle="file:///tmp/rec-1.wav", duration_ms=12_000)
    assert controller.state is RecordingState.COMPLETED
    assert controller.result is captured
    assert capture.released == [1]


def test_polls_stop_after_save() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await asyncio.sleep(0.02)
        await controller.stop_and_save()
        reads = capture.status_reads
        await asyncio.sleep(0.03)
        return reads

    reads_at_stop = asyncio.run(_run())

    assert capture.status_reads == reads_at_stop


def test_finalize_error_fails_session() -> None:
    alerts: list[tuple[str, str]] = []
    capture = FakeCapture(finalize_error=OSError("disk full"))
    controller = RecordingSessionController(capture, alert=lambda t, m: alerts.append((t, m)), **FAST)

    async def _run():
        await controller.start()
        return await controller.stop_and_save()

    captured = asyncio.run(_run())

    assert captured is None
    assert controller.state is RecordingState.FAILED
    assert controller.result is None
    assert capture.released == [1]
    assert len(alerts) == 1


def test_stop_outside_active_is_ignored() -> None:
    controller = RecordingSessionController(FakeCapture(), **FAST)

    assert asyncio.run(controller.stop_and_save()) is None
    assert controller.state is RecordingState.IDLE


def test_metering_fallback_switches_to_oscillation() -> None:
    now = [100.0]
    capture = FakeCapture(metering_db=None)
    controller = RecordingSessionController(
        capture, metering_probe_samples=2, clock=lambda: now[0], **FAST
    )

    async def _run():
        await controller.start()
        await _wait_until(lambda: controller.metering_available is not None)
        samples = [controller.display_scale(now=100.0 + step * 0.1) for step in range(31)]
        await controller.cancel()
        return samples

    samples = asyncio.run(_run())

    assert controller.metering_available is False
    assert max(samples) - min(samples) > 0.2
    assert all(1.0 <= sample <= 1.25 + 1e-9 for sample in samples)
    assert len({round(sample, 4) for sample in samples}) > 5


def test_metering_drives_level_and_scale() -> None:
    capture = FakeCapture(metering_db=-40.0)
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await _wait_until(lambda: controller.metering_available is True)
        scale = controller.display_scale()
        await controller.cancel()
        return scale

    scale = asyncio.run(_run())

    assert controller.level_normalized == 0.75
    assert scale == 1.375


def test_transient_status_errors_are_swallowed() -> None:
    capture = FakeCapture(status_failures=3)
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await _wait_until(lambda: controller.elapsed_ms > 0)
        state = controller.state
        await controller.cancel()
        return state

    assert asyncio.run(_run()) is RecordingState.ACTIVE
    assert capture.status_reads > 3


def test_cancel_during_permission_request() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        capture.permission_gate = asyncio.Event()
        start = asyncio.create_task(controller.start())
        await asyncio.sleep(0)
        assert controller.state is RecordingState.REQUESTING_PERMISSION
        await controller.cancel()
        capture.permission_gate.set()
        return await start

    assert asyncio.run(_run()) is False
    assert controller.state is RecordingState.CANCELLED
    assert capture.opened == []


def test_cancel_while_device_opens_releases_late_handle() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        capture.start_gate = asyncio.Event()
        start = asyncio.create_task(controller.start())
        await asyncio.sleep(0.01)
        await controller.cancel()
        capture.start_gate.set()
        return await start

    assert asyncio.run(_run()) is False
    assert controller.state is RecordingState.CANCELLED
    assert capture.opened == [1]
    assert capture.released == [1]


def test_release_errors_never_surface_on_cancel() -> None:
    capture = FakeCapture(release_error=RuntimeError("device gone"))
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        await controller.cancel()

    asyncio.run(_run())

    assert controller.state is RecordingState.CANCELLED


def test_scope_exit_tears_down_active_session() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        async with controller:
            await controller.start()
            await asyncio.sleep(0.01)

    asyncio.run(_run())

    assert controller.state is RecordingState.CANCELLED
    assert capture.open_handles == set()


def test_restart_after_failure_begins_new_session() -> None:
    capture = FakeCapture(granted=False)
    controller = RecordingSessionController(capture, alert=lambda t, m: None, **FAST)

    async def _run():
        assert await controller.start() is False
        capture.granted = True
        assert await controller.start() is True
        assert controller.error is None
        return await controller.stop_and_save()

    captured = asyncio.run(_run())

    assert captured is not None
    assert controller.state is RecordingState.COMPLETED


def test_refused_access_from_backend_fails_session() -> None:
    alerts: list[tuple[str, str]] = []
    capture = FakeCapture(permission_error=PermissionDeniedError("no input device"))
    controller = RecordingSessionController(capture, alert=lambda t, m: alerts.append((t, m)), **FAST)

    assert asyncio.run(controller.start()) is False
    assert controller.state is RecordingState.FAILED
    assert alerts[0][0] == PERMISSION_DENIED_TITLE
    assert capture.opened == []


def test_cancel_after_save_keeps_result() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        await controller.start()
        captured = await controller.stop_and_save()
        await controller.cancel()
        return captured

    captured = asyncio.run(_run())

    assert controller.state is RecordingState.COMPLETED
    assert controller.result is captured
    assert capture.released == [1]


def test_abandoned_start_releases_late_handle() -> None:
    capture = FakeCapture()
    controller = RecordingSessionController(capture, **FAST)

    async def _run():
        capture.start_gate = asyncio.Event()
        start = asyncio.create_task(controller.start())
        await asyncio.sleep(0.01)
        start.cancel()
        await asyncio.sleep(0.01)
        capture.start_gate.set()
        with pytest.raises(asyncio.CancelledError):
            await start

    asyncio.run(_run())

    assert controller.state is RecordingState.CANCELLED
    assert capture.opened == [1]
    assert capture.open_handles == set()
