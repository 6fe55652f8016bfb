"""Transcription service abstractions."""

from __future__ import annotations

import abc
from pathlib import Path


class TranscriptionService(abc.ABC):
    """Convert a recorded audio file into text."""

    @abc.abstractmethod
    def transcribe(self, audio_path: Path) -> str:
        raise NotImplementedError


__all__ = ["TranscriptionService"]
