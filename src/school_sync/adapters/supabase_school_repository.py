"""Supabase repository for school records."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from supabase import AsyncClient

from school_sync.domain.schools import CategoryCounts, School
from school_sync.services.registry import (
    SchoolRepository,
    SnapshotCallback,
    Unsubscribe,
)

_logger = logging.getLogger(__name__)

_FAILED_STATES = {"CHANNEL_ERROR", "TIMED_OUT"}


@dataclass
class SupabaseSchoolRepository(SchoolRepository):
    """Supabase implementation for school records."""

    client: AsyncClient
    table: str = "schools"

    async def fetch_all(self) -> list[School]:
        """Return every school row."""
        response = (
            await self.client.table(self.table)
            .select("id, name, candidates")
            .order("name", desc=False)
            .execute()
        )
        return [_parse_school(row) for row in response.data or []]

    async def subscribe(self, on_update: SnapshotCallback) -> Unsubscribe:
        """Push a freshly fetched snapshot whenever the table changes."""
        feed = _SnapshotFeed(repository=self, on_update=on_update)
        channel = self.client.channel(f"{self.table}-changes")
        channel.on_postgres_changes(
            "*", schema="public", table=self.table, callback=feed.on_change
        )
        await channel.subscribe(feed.on_status)

        async def unsubscribe() -> None:
            feed.close()
            await self.client.remove_channel(channel)

        return unsubscribe

    async def write_candidates(self, school_id: str, counts: CategoryCounts) -> None:
        """Replace the candidate counts of a school."""
        response = (
            await self.client.table(self.table)
            .update({"candidates": dict(counts)})
            .eq("id", school_id)
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Failed to update school {school_id}")


@dataclass
class _SnapshotFeed:
    """Turns change notifications into serialized full-table re-fetches."""

    repository: SupabaseSchoolRepository
    on_update: SnapshotCallback
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _tasks: set[asyncio.Task[None]] = field(default_factory=set)
    _closed: bool = False

    def on_change(self, _payload: dict[str, object]) -> None:
        self._schedule_refresh()

    def on_status(self, status: object, error: Exception | None = None) -> None:
        state = str(getattr(status, "value", status))
        if state == "SUBSCRIBED":
            # Covers changes made between the initial fetch and the subscription.
            self._schedule_refresh()
        elif state in _FAILED_STATES and not self._closed:
            _logger.warning("Schools channel %s: %s", state, error)
            self.on_update(error or RuntimeError(f"Schools channel {state}"))

    def close(self) -> None:
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _schedule_refresh(self) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self._refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self) -> None:
        async with self._lock:
            if self._closed:
                return
            try:
                schools = await self.repository.fetch_all()
            except Exception as exc:
                _logger.warning("Failed to refresh schools: %s", exc)
                if not self._closed:
                    self.on_update(exc)
                return
            if not self._closed:
                self.on_update(schools)


def _parse_school(row: Mapping[str, object]) -> School:
    raw_candidates = row.get("candidates") or {}
    candidates = (
        {str(key): max(0, int(value)) for key, value in raw_candidates.items()}
        if isinstance(raw_candidates, Mapping)
        else {}
    )
    return School(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        candidates=candidates,
    )
