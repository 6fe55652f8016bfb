"""Loudness normalisation and indicator scale mapping."""

from __future__ import annotations

import math

import numpy as np

DB_FLOOR = -160.0
MIN_SCALE = 1.0
MAX_SCALE = 1.5
OSCILLATION_PEAK = 1.25
DEFAULT_OSCILLATION_PERIOD = 1.3


def normalize_db(db: float) -> float:
    """Map device loudness in dB (``-160`` .. ``0``) onto ``0.0`` .. ``1.0``."""

    clamped = min(max(float(db), DB_FLOOR), 0.0)
    return (clamped - DB_FLOOR) / -DB_FLOOR


def level_to_scale(level: float) -> float:
    level = min(max(float(level), 0.0), 1.0)
    return MIN_SCALE + (MAX_SCALE - MIN_SCALE) * level


def oscillation_scale(elapsed: float, period: float = DEFAULT_OSCILLATION_PERIOD) -> float:
    """Synthetic indicator scale used when no metering data exists.

    Starts at 1.0, peaks at 1.25 half a period later and returns smoothly.
    """

    if period <= 0:
        raise ValueError("period must be positive")
    phase = 2.0 * math.pi * (elapsed / period)
    return MIN_SCALE + (OSCILLATION_PEAK - MIN_SCALE) * (1.0 - math.cos(phase)) / 2.0


def rms_dbfs(samples: np.ndarray) -> float:
    """Return the RMS level of float PCM samples in dBFS, floored at -160."""

    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return DB_FLOOR
    rms = float(np.sqrt(np.mean(np.square(data))))
    if rms <= 0.0:
        return DB_FLOOR
    return max(20.0 * math.log10(rms), DB_FLOOR)


__all__ = [
    "DB_FLOOR",
    "MAX_SCALE",
    "MIN_SCALE",
    "OSCILLATION_PEAK",
    "level_to_scale",
    "normalize_db",
    "oscillation_scale",
    "rms_dbfs",
]
