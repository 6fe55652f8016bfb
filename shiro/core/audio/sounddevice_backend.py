"""Microphone capture implementation powered by sounddevice/PortAudio."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ...logging import get_logger
from .base import (
    CaptureError,
    CaptureOptions,
    CaptureStatus,
    FinalizedCapture,
    MediaCapture,
    PermissionDeniedError,
)
from .writers import AudioFileWriter

LOGGER = get_logger(__name__)

_FALLBACK_SAMPLE_RATES = (48_000, 44_100, 32_000, 24_000, 22_050, 16_000, 12_000, 11_025, 8_000)


@dataclass
class SoundDeviceHandle:
    """Live stream plus the file it is writing into."""

    stream: Any
    writer: AudioFileWriter
    metering: bool
    stream_closed: bool = False
    finalized: bool = False

    @property
    def path(self) -> Path:
        return self.writer.path


class SoundDeviceMediaCapture(MediaCapture):
    """Capture microphone audio into WAV files using the sounddevice library."""

    def __init__(
        self,
        output_dir: Path,
        device: Optional[int | str] = None,
        block_size: int = 1024,
        prefix: str = "recording",
    ) -> None:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:  # pragma: no cover - depends on runtime availability
            raise CaptureError("sounddevice dependency is required for capture") from exc

        self._sd = sd
        self.output_dir = Path(output_dir)
        self._device = device
        self._block_size = block_size
        self._prefix = prefix
        self._device_info: Optional[dict] = None

    async def request_permission(self) -> bool:
        try:
            info = await asyncio.to_thread(self._sd.query_devices, self._device, "input")
        except Exception as exc:
            raise PermissionDeniedError(f"No usable microphone for {self._device}: {exc}") from exc
        self._device_info = dict(info)
        return int(info.get("max_input_channels") or 0) > 0

    async def start_capture(self, options: CaptureOptions) -> SoundDeviceHandle:
        path = self.output_dir / f"{self._prefix}-{uuid.uuid4().hex[:8]}.wav"
        return await asyncio.to_thread(self._open, path, options)

    async def read_status(self, handle: SoundDeviceHandle) -> CaptureStatus:
        writer = handle.writer
        metering_db = None
        if handle.metering and writer.frames_written > 0:
            metering_db = writer.last_level_db
        return CaptureStatus(elapsed_ms=writer.duration_ms, metering_db=metering_db)

    async def finalize(self, handle: SoundDeviceHandle) -> FinalizedCapture:
        await asyncio.to_thread(self._close_stream, handle)
        handle.writer.close()
        handle.finalized = True
        LOGGER.info("Finalized %s (%d frames)", handle.path, handle.writer.frames_written)
        return FinalizedCapture(uri=str(handle.path), duration_ms=handle.writer.duration_ms)

    async def release(self, handle: SoundDeviceHandle) -> None:
        await asyncio.to_thread(self._close_stream, handle)
        handle.writer.close()
        if not handle.finalized:
            LOGGER.debug("Discarding partial recording %s", handle.path)
            handle.path.unlink(missing_ok=True)

    def _open(self, path: Path, options: CaptureOptions) -> SoundDeviceHandle:
        LOGGER.info("Starting microphone capture on device %s", self._device)

        last_error: Optional[Exception] = None
        for channels in self._resolve_channel_candidates(options):
            for sample_rate in self._resolve_sample_rate_candidates(options):
                writer = AudioFileWriter(path, sample_rate, channels)

                def _callback(indata, frames, time_info, status, writer=writer) -> None:  # pragma: no cover - runtime
                    if status:
                        LOGGER.warning("sounddevice status: %s", status)
                    writer.write(indata.copy())

                try:
                    stream = self._sd.InputStream(
                        samplerate=sample_rate,
                        channels=channels,
                        dtype="float32",
                        blocksize=self._block_size,
                        device=self._device,
                        callback=_callback,
                    )
                    stream.start()
                except self._sd.PortAudioError as exc:  # pragma: no cover - depends on runtime device
                    last_error = exc
                    writer.close()
                    path.unlink(missing_ok=True)
                    message = str(exc)
                    if "Invalid number of channels" in message:
                        LOGGER.warning("sounddevice rejected %s channel(s): %s", channels, message)
                        break
                    if "sample rate" in message.lower():
                        LOGGER.warning("sounddevice rejected %s Hz: %s", sample_rate, message)
                        continue
                    raise CaptureError(message) from exc

                if sample_rate != options.sample_rate or channels != options.channels:
                    LOGGER.warning(
                        "Adjusted capture from %s Hz/%s ch to %s Hz/%s ch",
                        options.sample_rate,
                        options.channels,
                        sample_rate,
                        channels,
                    )
                return SoundDeviceHandle(stream=stream, writer=writer, metering=options.metering)

        error_message = (
            f"Failed to open microphone {self._device}: no compatible channel/sample rate combination"
        )
        if last_error is not None:
            error_message = f"{error_message} ({last_error})"
        raise CaptureError(error_message) from last_error

    @staticmethod
    def _close_stream(handle: SoundDeviceHandle) -> None:
        if handle.stream_closed:
            return
        handle.stream_closed = True
        try:
            handle.stream.stop()
        finally:
            with contextlib.suppress(Exception):
                handle.stream.close()

    def _resolve_channel_candidates(self, options: CaptureOptions) -> list[int]:
        candidates: list[int] = []
        if options.channels > 0:
            candidates.append(options.channels)
        max_channels = int((self._device_info or {}).get("max_input_channels") or 0)
        if max_channels > 0:
            candidates = [channel for channel in candidates if channel <= max_channels]
        if 1 not in candidates:
            candidates.append(1)
        return candidates

    def _resolve_sample_rate_candidates(self, options: CaptureOptions) -> list[int]:
        candidates: list[int] = []
        if options.sample_rate > 0:
            candidates.append(options.sample_rate)
        raw = (self._device_info or {}).get("default_samplerate")
        try:
            default_rate = int(float(raw)) if raw is not None else None
        except (TypeError, ValueError):  # pragma: no cover - malformed device info
            default_rate = None
        if default_rate and default_rate not in candidates:
            candidates.append(default_rate)
        for rate in _FALLBACK_SAMPLE_RATES:
            if rate not in candidates:
                candidates.append(rate)
        return candidates


__all__ = ["SoundDeviceHandle", "SoundDeviceMediaCapture"]
