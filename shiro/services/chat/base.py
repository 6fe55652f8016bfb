"""Reply generation service abstractions."""

from __future__ import annotations

import abc
from typing import Sequence

from ...data.models import Message


class ResponseGenerator(abc.ABC):
    @abc.abstractmethod
    def generate(self, turn: Sequence[Message]) -> str:
        """Return the reply text for every user message of one turn."""
        raise NotImplementedError

    def __call__(self, turn: Sequence[Message]) -> str:
        return self.generate(turn)


__all__ = ["ResponseGenerator"]
