"""OpenAI-powered journaling companion replies."""

from __future__ import annotations

from typing import Optional, Sequence

from ...config import get_settings
from ...data.models import Message
from ...logging import get_logger
from .base import ResponseGenerator

LOGGER = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a warm journaling companion. The user wrote one or more short messages in a row; "
    "reply once, briefly, to all of them together and ask at most one follow-up question."
)


class OpenAIResponseGenerator(ResponseGenerator):
    def __init__(self, model: Optional[str] = None) -> None:
        settings = get_settings()
        self.model = model or settings.openai_chat_model
        try:
            from openai import OpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for OpenAIResponseGenerator") from exc
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
            raise RuntimeError(f"Failed to initialise OpenAI chat client: {message}") from exc

    def generate(self, turn: Sequence[Message]) -> str:
        LOGGER.info("Requesting OpenAI reply for a turn of %d message(s)", len(turn))
        response = self.client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": SYSTEM_PROMPT},
                *({"role": "user", "content": message.text} for message in turn),
            ],
        )
        return response.output_text


__all__ = ["OpenAIResponseGenerator"]
