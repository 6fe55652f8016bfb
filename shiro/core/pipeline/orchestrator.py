"""Voice note pipeline: attach finished recordings to notes."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ...data.models import AudioBlock, CreateNoteInput, Note, ServiceResult
from ...data.repository import NoteRepository
from ...logging import get_logger
from ...services.transcription.base import TranscriptionService
from ...utils.audio import format_duration
from ..audio.session import CapturedAudio

LOGGER = get_logger(__name__)


class VoiceNoteOrchestrator:
    """Turns a :class:`CapturedAudio` into an audio block on a note."""

    def __init__(
        self,
        repository: NoteRepository,
        transcription: Optional[TranscriptionService] = None,
    ) -> None:
        self.repository = repository
        self.transcription = transcription

    def build_block(self, captured: CapturedAudio) -> AudioBlock:
        transcript: Optional[str] = None
        if self.transcription is not None:
            try:
                transcript = self.transcription.transcribe(Path(captured.local_handle)) or None
            except Exception:
                LOGGER.exception("Transcription failed for %s", captured.local_handle)
        return AudioBlock(
            url=captured.local_handle,
            duration=format_duration(captured.duration_ms),
            transcript=transcript,
        )

    def save_recording(
        self, captured: CapturedAudio, note_id: Optional[str] = None
    ) -> ServiceResult[Note]:
        block = self.build_block(captured)
        if note_id is None:
            result = self.repository.create_note(CreateNoteInput(content=[block]))
        else:
            result = self.repository.append_block(note_id, block)
        if result.success and result.data is not None:
            LOGGER.info("Attached %s recording to note %s", block.duration, result.data.id)
        else:
            LOGGER.warning("Could not attach recording: %s", result.error)
        return result


__all__ = ["VoiceNoteOrchestrator"]
