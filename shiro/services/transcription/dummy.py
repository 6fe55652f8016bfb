"""Dummy transcription service for testing or offline usage."""

from __future__ import annotations

from pathlib import Path

from .base import TranscriptionService


class DummyTranscriptionService(TranscriptionService):
    def transcribe(self, audio_path: Path) -> str:
        return (
            f"Dummy transcript for {Path(audio_path).name}. "
            "Replace with a real transcription backend."
        )


__all__ = ["DummyTranscriptionService"]
