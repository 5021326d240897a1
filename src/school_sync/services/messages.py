"""Bounded, deduplicated chat window fed by a push subscription."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from school_sync.domain.errors import InvalidInput, SubscriptionError, WriteRejected
from school_sync.domain.messages import Message

_logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 100

Unsubscribe = Callable[[], Awaitable[None]]
MessageCallback = Callable[[Message | Exception], None]


class MessageRepository(Protocol):
    """Remote store interface for chat messages."""

    async def subscribe(self, on_event: MessageCallback, limit: int) -> Unsubscribe:
        """Deliver the latest ``limit`` messages, then every new one.

        Messages arrive one at a time; failures are passed as exceptions.
        """

    async def append(self, school_id: str, school_name: str, content: str) -> Message:
        """Store a new message and return it with its assigned id and timestamp."""


class StreamState(Enum):
    """Lifecycle of a message stream."""

    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    CLOSED = "closed"


def _ignore_error(_error: SubscriptionError) -> None:
    return None


@dataclass
class MessageStream:
    """State machine over the chat subscription."""

    repository: MessageRepository
    window_size: int = DEFAULT_WINDOW_SIZE
    on_error: Callable[[SubscriptionError], None] = _ignore_error
    _state: StreamState = field(default=StreamState.UNSUBSCRIBED, init=False)
    _messages: list[Message] = field(default_factory=list, init=False)
    _unsubscribe: Unsubscribe | None = field(default=None, init=False)

    @property
    def state(self) -> StreamState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return the retained window, oldest first."""
        return tuple(self._messages)

    async def open(self) -> None:
        """Subscribe to the remote message feed."""
        if self._state is not StreamState.UNSUBSCRIBED:
            raise RuntimeError(f"Cannot open a message stream in state {self._state}")
        self._state = StreamState.SUBSCRIBING
        try:
            unsubscribe = await self.repository.subscribe(
                self.receive, limit=self.window_size
            )
        except Exception as exc:
            self._state = StreamState.UNSUBSCRIBED
            _logger.exception("Failed to open message subscription")
            raise SubscriptionError("Failed to subscribe to messages") from exc
        if self._state is StreamState.CLOSED:
            # Closed while the subscription was being established.
            await unsubscribe()
            return
        self._unsubscribe = unsubscribe
        self._state = StreamState.LIVE

    def receive(self, event: Message | Exception) -> None:
        """React to one delivery from the subscription."""
        if self._state is StreamState.CLOSED:
            return
        if isinstance(event, Exception):
            error = (
                event
                if isinstance(event, SubscriptionError)
                else SubscriptionError(str(event) or type(event).__name__)
            )
            _logger.warning("Message subscription error: %s", error)
            self.on_error(error)
            return
        self.ingest(event)

    def ingest(self, message: Message) -> bool:
        """Insert a message into the window; return False if it was discarded.

        Once the window is full, a message no newer than the oldest retained
        one is discarded, even on a timestamp tie.
        """
        if any(existing.id == message.id for existing in self._messages):
            return False
        if (
            len(self._messages) >= self.window_size
            and self._messages
            and message.timestamp <= self._messages[0].timestamp
        ):
            return False
        self._messages.append(message)
        self._messages.sort(key=lambda item: item.timestamp)
        if len(self._messages) > self.window_size:
            del self._messages[: len(self._messages) - self.window_size]
        return True

    async def send(self, school_id: str, school_name: str, content: str) -> Message:
        """Append a message remotely without waiting for its echo."""
        if not content.strip():
            raise InvalidInput("Message content is empty")
        try:
            message = await self.repository.append(school_id, school_name, content)
        except Exception as exc:
            _logger.warning("Message append rejected: school_id=%s", school_id)
            raise WriteRejected("Failed to send message") from exc
        if self._state is not StreamState.CLOSED:
            self.ingest(message)
        return message

    async def close(self) -> None:
        """Tear down the subscription; later calls do nothing."""
        if self._state is StreamState.CLOSED:
            return
        self._state = StreamState.CLOSED
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            await unsubscribe()
