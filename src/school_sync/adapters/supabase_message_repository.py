"""Supabase repository for chat messages."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import AsyncClient

from school_sync.domain.messages import Message
from school_sync.services.messages import (
    MessageCallback,
    MessageRepository,
    Unsubscribe,
)

_logger = logging.getLogger(__name__)

_FAILED_STATES = {"CHANNEL_ERROR", "TIMED_OUT"}
_COLUMNS = "id, school_id, school_name, content, created_at"


@dataclass
class SupabaseMessageRepository(MessageRepository):
    """Supabase implementation for chat messages."""

    client: AsyncClient
    table: str = "messages"

    async def subscribe(self, on_event: MessageCallback, limit: int) -> Unsubscribe:
        """Deliver the latest messages, then every inserted one."""
        closed = False

        def on_insert(payload: dict[str, object]) -> None:
            if closed:
                return
            record = _extract_record(payload)
            if record is None:
                return
            try:
                message = _parse_message(record)
            except (KeyError, TypeError, ValueError) as exc:
                on_event(exc)
                return
            on_event(message)

        def on_status(status: object, error: Exception | None = None) -> None:
            state = str(getattr(status, "value", status))
            if state in _FAILED_STATES and not closed:
                _logger.warning("Messages channel %s: %s", state, error)
                on_event(error or RuntimeError(f"Messages channel {state}"))

        channel = self.client.channel(f"{self.table}-inserts")
        channel.on_postgres_changes(
            "INSERT", schema="public", table=self.table, callback=on_insert
        )
        await channel.subscribe(on_status)
        try:
            backlog = await self.list_latest(limit)
        except Exception:
            await self.client.remove_channel(channel)
            raise
        for message in backlog:
            on_event(message)

        async def unsubscribe() -> None:
            nonlocal closed
            closed = True
            await self.client.remove_channel(channel)

        return unsubscribe

    async def list_latest(self, limit: int) -> list[Message]:
        """Return the most recent messages, oldest first."""
        response = (
            await self.client.table(self.table)
            .select(_COLUMNS)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        messages = [_parse_message(row) for row in response.data or []]
        messages.reverse()
        return messages

    async def append(self, school_id: str, school_name: str, content: str) -> Message:
        """Insert a message row and return the stored message."""
        response = (
            await self.client.table(self.table)
            .insert(
                {
                    "school_id": school_id,
                    "school_name": school_name,
                    "content": content,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to store message")
        return _parse_message(response.data[0])


def _extract_record(payload: Mapping[str, object]) -> Mapping[str, object] | None:
    data = payload.get("data")
    if isinstance(data, Mapping):
        record = data.get("record")
        if isinstance(record, Mapping):
            return record
    record = payload.get("new") or payload.get("record")
    return record if isinstance(record, Mapping) else None


def _parse_message(row: Mapping[str, object]) -> Message:
    timestamp = datetime.fromisoformat(str(row["created_at"]))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return Message(
        id=str(row["id"]),
        school_id=str(row["school_id"]),
        school_name=str(row.get("school_name", "")),
        content=str(row.get("content", "")),
        timestamp=timestamp,
    )
