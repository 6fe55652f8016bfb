"""Offline reply generator that echoes the turn back."""

from __future__ import annotations

from typing import Sequence

from ...data.models import Message
from .base import ResponseGenerator

MESSAGE_SEPARATOR = "; "


class EchoResponseGenerator(ResponseGenerator):
    def __init__(self, separator: str = MESSAGE_SEPARATOR) -> None:
        self.separator = separator

    def generate(self, turn: Sequence[Message]) -> str:
        combined = self.separator.join(message.text for message in turn)
        return f'I received: "{combined}"'


__all__ = ["EchoResponseGenerator", "MESSAGE_SEPARATOR"]
