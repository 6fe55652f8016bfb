import types

import pytest

from shiro.data.models import Author, Message
from shiro.data.repository import InMemoryNoteRepository
from shiro.data.storage import SQLiteNoteRepository
from shiro.services.chat.echo import EchoResponseGenerator
from shiro.services.chat.openai_chat import SYSTEM_PROMPT, OpenAIResponseGenerator
from shiro.services.factory import (
    ServiceConfigurationError,
    resolve_note_repository,
    resolve_response_generator,
    resolve_transcription_backend,
)
from shiro.services.transcription.dummy import DummyTranscriptionService
from shiro.services.transcription.openai_client import OpenAITranscriptionService


def _turn(*texts):
    return [Message(text=text, author=Author.USER, timestamp=float(i)) for i, text in enumerate(texts)]


def test_echo_joins_the_turn() -> None:
    assert EchoResponseGenerator().generate(_turn("slept badly", "coffee helps")) == (
        'I received: "slept badly; coffee helps"'
    )


class _FakeResponses:
    def __init__(self) -> None:
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return types.SimpleNamespace(output_text="Glad to hear it.")


def test_openai_generator_sends_whole_turn() -> None:
    responses = _FakeResponses()
    generator = object.__new__(OpenAIResponseGenerator)
    generator.model = "test-model"
    generator.client = types.SimpleNamespace(responses=responses)

    reply = generator(_turn("one", "two"))

    assert reply == "Glad to hear it."
    call = responses.calls[0]
    assert call["model"] == "test-model"
    assert call["input"] == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "one"},
        {"role": "user", "content": "two"},
    ]


class _FakeTranscriptions:
    def create(self, **kwargs):
        assert kwargs["response_format"] == "text"
        return "  spoken words \n"


def test_openai_transcription_reads_file(tmp_path) -> None:
    audio = tmp_path / "clip.wav"
    audio.write_bytes(b"RIFF")
    service = object.__new__(OpenAITranscriptionService)
    service.model = "test-model"
    service.client = types.SimpleNamespace(audio=types.SimpleNamespace(transcriptions=_FakeTranscriptions()))

    assert service.transcribe(audio) == "spoken words"


def test_resolve_response_generator() -> None:
    assert isinstance(resolve_response_generator("Echo"), EchoResponseGenerator)
    assert isinstance(resolve_response_generator(None), EchoResponseGenerator)
    with pytest.raises(ServiceConfigurationError):
        resolve_response_generator("carrier-pigeon")


def test_resolve_transcription_backend() -> None:
    assert resolve_transcription_backend("none") is None
    assert isinstance(resolve_transcription_backend("dummy"), DummyTranscriptionService)
    with pytest.raises(ServiceConfigurationError):
        resolve_transcription_backend("whisper.cpp")


def test_resolve_note_repository(isolated_settings) -> None:
    from shiro.config import get_settings

    assert isinstance(resolve_note_repository("memory"), InMemoryNoteRepository)
    sqlite_repo = resolve_note_repository("sqlite", get_settings())
    assert isinstance(sqlite_repo, SQLiteNoteRepository)
    assert sqlite_repo.path == isolated_settings / "shiro.db"
    with pytest.raises(ServiceConfigurationError):
        resolve_note_repository("postgres")
