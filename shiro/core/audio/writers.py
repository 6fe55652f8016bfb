"""Utilities for writing PCM wave files."""

from __future__ import annotations

import threading
import wave
from pathlib import Path

import numpy as np

from .levels import DB_FLOOR, rms_dbfs


class AudioFileWriter:
    """Wave file writer that accepts floating point numpy arrays.

    Blocks may arrive from the audio driver's callback thread, so frame
    counting and the last observed level are guarded by a lock.
    """

    def __init__(self, path: Path, sample_rate: int, channels: int) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.sample_rate = sample_rate
        self.channels = channels
        self._lock = threading.Lock()
        self._wave = wave.open(str(self.path), "wb")
        self._wave.setnchannels(channels)
        self._wave.setsampwidth(2)  # 16-bit PCM
        self._wave.setframerate(sample_rate)
        self._frames_written = 0
        self._last_level_db = DB_FLOOR
        self._closed = False

    def write(self, data: np.ndarray) -> None:
        if data.ndim == 1:
            data = data[:, np.newaxis]
        if data.shape[1] != self.channels:
            if data.shape[1] == 1 and self.channels == 2:
                data = np.repeat(data, 2, axis=1)
            else:
                raise ValueError("Channel mismatch when writing audio")
        clipped = np.clip(data, -1.0, 1.0)
        as_int16 = (clipped * 32767.0).astype(np.int16)
        with self._lock:
            if self._closed:
                return
            self._wave.writeframes(as_int16.tobytes())
            self._frames_written += as_int16.shape[0]
            self._last_level_db = rms_dbfs(clipped)

    @property
    def frames_written(self) -> int:
        return self._frames_written

    @property
    def duration_ms(self) -> int:
        if self.sample_rate == 0:
            return 0
        return int(self._frames_written * 1000 / self.sample_rate)

    @property
    def last_level_db(self) -> float:
        return self._last_level_db

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._wave.close()

    def __enter__(self) -> "AudioFileWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["AudioFileWriter"]
