"""Factories for runtime service selection."""

from __future__ import annotations

from typing import Optional

from ..config import Settings, get_settings
from ..data.repository import InMemoryNoteRepository, NoteRepository
from ..data.storage import SQLiteNoteRepository
from .chat.base import ResponseGenerator
from .chat.echo import EchoResponseGenerator
from .chat.openai_chat import OpenAIResponseGenerator
from .transcription.base import TranscriptionService
from .transcription.dummy import DummyTranscriptionService
from .transcription.openai_client import OpenAITranscriptionService


class ServiceConfigurationError(ValueError):
    """Raised when an unknown backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "none"
    return name.strip().lower()


def resolve_response_generator(name: Optional[str]) -> ResponseGenerator:
    backend = _normalise(name)
    if backend in {"none", "echo", "dummy"}:
        return EchoResponseGenerator()
    if backend == "openai":
        return OpenAIResponseGenerator()
    raise ServiceConfigurationError(f"Unknown response backend: {name}")


def resolve_transcription_backend(name: Optional[str]) -> Optional[TranscriptionService]:
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return None
    if backend == "dummy":
        return DummyTranscriptionService()
    if backend == "openai":
        return OpenAITranscriptionService()
    raise ServiceConfigurationError(f"Unknown transcription backend: {name}")


def resolve_note_repository(
    name: Optional[str], settings: Optional[Settings] = None
) -> NoteRepository:
    settings = settings or get_settings()
    backend = _normalise(name)
    if backend == "memory":
        return InMemoryNoteRepository()
    if backend == "sqlite":
        repository = SQLiteNoteRepository(settings.database_path)
        repository.initialize()
        return repository
    raise ServiceConfigurationError(f"Unknown note backend: {name}")


__all__ = [
    "ServiceConfigurationError",
    "resolve_note_repository",
    "resolve_response_generator",
    "resolve_transcription_backend",
]
