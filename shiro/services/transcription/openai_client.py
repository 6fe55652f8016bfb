"""OpenAI powered transcription service."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from ...config import get_settings
from ...logging import get_logger
from .base import TranscriptionService

LOGGER = get_logger(__name__)


class OpenAITranscriptionService(TranscriptionService):
    def __init__(self, model: Optional[str] = None) -> None:
        settings = get_settings()
        self.model = model or settings.openai_transcription_model
        try:
            from openai import OpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for OpenAITranscriptionService") from exc
        client_kwargs = {}
        if settings.openai_api_key:
            client_kwargs["api_key"] = settings.openai_api_key

        try:
            self.client = OpenAI(**client_kwargs)
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise RuntimeError(
                    "OpenAI API key not configured. Set the OPENAI_API_KEY environment variable "
                    "or run `shiro config set openai_api_key <key>`."
                ) from exc
            raise RuntimeError(f"Failed to initialise OpenAI transcription client: {message}") from exc

    def transcribe(self, audio_path: Path) -> str:
        LOGGER.info("Requesting OpenAI transcription for %s", audio_path)
        with open(audio_path, "rb") as audio_file:
            response: Any = self.client.audio.transcriptions.create(
                model=self.model,
                file=audio_file,
                response_format="text",
            )
        if isinstance(response, str):
            return response.strip()
        return str(getattr(response, "text", "") or "").strip()


__all__ = ["OpenAITranscriptionService"]
