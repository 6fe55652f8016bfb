"""Turn-coalescing chat responder.

Consecutive user messages form one *turn*. A reply is scheduled only while the
last message came from the user and nothing is being composed; every new
message or composing change restarts the quiet period, so a burst of messages
gets a single reply generated from all of them.
"""

from __future__ import annotations

import enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ...data.models import Author, Message
from ...logging import get_logger
from ...services.chat.base import ResponseGenerator
from .scheduler import CancellableTimer, Scheduler

LOGGER = get_logger(__name__)

DEFAULT_RESPONSE_DELAY = 3.0
DEFAULT_FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."

GeneratorLike = Union[ResponseGenerator, Callable[[Sequence[Message]], str]]


class ResponderState(str, enum.Enum):
    WAITING = "waiting"
    ARMED = "armed"


class TurnCoalescingResponder:
    """Debounced, one-reply-per-turn chat responder."""

    def __init__(
        self,
        generator: GeneratorLike,
        scheduler: Scheduler,
        *,
        delay: float = DEFAULT_RESPONSE_DELAY,
        greeting: Optional[str] = None,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
        listener: Optional[Callable[[Message], None]] = None,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")
        if not fallback_reply or not fallback_reply.strip():
            raise ValueError("fallback_reply must not be blank")
        self._generate = generator
        self._scheduler = scheduler
        self._timer = CancellableTimer(scheduler)
        self.delay = delay
        self.fallback_reply = fallback_reply
        self._listener = listener
        self._messages: List[Message] = []
        self._composing = False
        self._closed = False
        if greeting and greeting.strip():
            self._append(greeting.strip(), Author.AGENT)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def state(self) -> ResponderState:
        return ResponderState.ARMED if self._timer.pending else ResponderState.WAITING

    @property
    def is_composing(self) -> bool:
        return self._composing

    @property
    def closed(self) -> bool:
        return self._closed

    def submit_user_message(self, text: str) -> Optional[Message]:
        trimmed = text.strip()
        if not trimmed:
            return None
        message = self._append(trimmed, Author.USER)
        # Sending clears the input field.
        self._composing = False
        self._reevaluate()
        return message

    def set_composing(self, is_composing: bool) -> None:
        # Only a flip restarts the quiet period.
        if bool(is_composing) == self._composing:
            return
        self._composing = bool(is_composing)
        self._reevaluate()

    def current_turn(self) -> List[Message]:
        turn: List[Message] = []
        for message in reversed(self._messages):
            if message.author is Author.AGENT:
                break
            turn.append(message)
        turn.reverse()
        return turn

    def close(self) -> None:
        """Cancel any pending reply and drop transient input state."""

        self._timer.cancel()
        self._composing = False
        self._closed = True
        LOGGER.debug("Conversation closed with %d message(s)", len(self._messages))

    def reopen(self) -> None:
        self._closed = False
        self._reevaluate()

    def _reevaluate(self) -> None:
        self._timer.cancel()
        if self._closed or self._composing or not self._messages:
            return
        if self._messages[-1].author is Author.USER:
            self._timer.schedule(self.delay, self._respond)

    def _respond(self) -> None:
        turn = self.current_turn()
        if not turn:
            return
        try:
            reply = self._generate(turn)
        except Exception:
            LOGGER.exception("Reply generation failed for a turn of %d message(s)", len(turn))
            reply = self.fallback_reply
        if not isinstance(reply, str) or not reply.strip():
            LOGGER.warning("Reply generator returned no text; using fallback reply")
            reply = self.fallback_reply
        self._append(reply.strip(), Author.AGENT)

    def _append(self, text: str, author: Author) -> Message:
        timestamp = self._scheduler.time()
        if self._messages:
            timestamp = max(timestamp, self._messages[-1].timestamp)
        message = Message(text=text, author=author, timestamp=timestamp)
        self._messages.append(message)
        if self._listener is not None:
            try:
                self._listener(message)
            except Exception:
                LOGGER.exception("Message listener raised an exception")
        return message


__all__ = [
    "DEFAULT_FALLBACK_REPLY",
    "DEFAULT_RESPONSE_DELAY",
    "ResponderState",
    "TurnCoalescingResponder",
]
