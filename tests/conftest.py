"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from school_sync.config import Settings
from school_sync.containers import AppContainer
from school_sync.domain.categories import DEFAULT_LICENSE_FEES
from school_sync.domain.messages import Message
from school_sync.domain.schools import CategoryCounts, School
from school_sync.services.messages import (
    MessageCallback,
    MessageRepository,
    MessageStream,
    Unsubscribe,
)
from school_sync.services.registry import (
    SchoolRegistry,
    SchoolRepository,
    SnapshotCallback,
)
from school_sync.services.sync import SyncSession

BASE_TIME = datetime(2024, 9, 1, 9, 0, tzinfo=UTC)


def make_message(
    message_id: str,
    minutes: int,
    school_id: str = "s1",
    content: str = "merhaba",
) -> Message:
    return Message(
        id=message_id,
        school_id=school_id,
        school_name=f"School {school_id}",
        content=content,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
    )


@dataclass
class InMemorySchoolRepository(SchoolRepository):
    """In-memory school store that pushes snapshots on demand."""

    schools: dict[str, School] = field(default_factory=dict)
    subscribers: list[SnapshotCallback] = field(default_factory=list)
    writes: list[tuple[str, dict[str, int]]] = field(default_factory=list)
    unsubscribe_calls: int = 0
    fail_fetch: bool = False
    fail_subscribe: bool = False
    fail_write: bool = False
    fetch_gate: asyncio.Event | None = None
    subscribe_gate: asyncio.Event | None = None

    async def fetch_all(self) -> list[School]:
        if self.fail_fetch:
            raise RuntimeError("store offline")
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return list(self.schools.values())

    async def subscribe(self, on_update: SnapshotCallback) -> Unsubscribe:
        if self.fail_subscribe:
            raise RuntimeError("channel refused")
        if self.subscribe_gate is not None:
            await self.subscribe_gate.wait()
        self.subscribers.append(on_update)

        async def unsubscribe() -> None:
            self.unsubscribe_calls += 1
            self.subscribers.remove(on_update)

        return unsubscribe

    async def write_candidates(self, school_id: str, counts: CategoryCounts) -> None:
        if self.fail_write:
            raise RuntimeError("write refused")
        self.writes.append((school_id, dict(counts)))

    def put(self, school: School) -> None:
        self.schools[school.id] = school

    def push(self) -> None:
        snapshot = list(self.schools.values())
        for callback in list(self.subscribers):
            callback(snapshot)

    def push_error(self, error: Exception) -> None:
        for callback in list(self.subscribers):
            callback(error)


@dataclass
class InMemoryMessageRepository(MessageRepository):
    """In-memory message store with a manual delivery queue."""

    stored: list[Message] = field(default_factory=list)
    subscribers: list[MessageCallback] = field(default_factory=list)
    unsubscribe_calls: int = 0
    fail_subscribe: bool = False
    fail_append: bool = False
    clock_minutes: int = 100

    async def subscribe(self, on_event: MessageCallback, limit: int) -> Unsubscribe:
        if self.fail_subscribe:
            raise RuntimeError("channel refused")
        self.subscribers.append(on_event)
        for message in self.stored[-limit:]:
            on_event(message)

        async def unsubscribe() -> None:
            self.unsubscribe_calls += 1
            self.subscribers.remove(on_event)

        return unsubscribe

    async def append(self, school_id: str, school_name: str, content: str) -> Message:
        if self.fail_append:
            raise RuntimeError("append refused")
        self.clock_minutes += 1
        message = Message(
            id=f"m{len(self.stored) + 1}",
            school_id=school_id,
            school_name=school_name,
            content=content,
            timestamp=BASE_TIME + timedelta(minutes=self.clock_minutes),
        )
        self.stored.append(message)
        return message

    def deliver(self, event: Message | Exception) -> None:
        for callback in list(self.subscribers):
            callback(event)

    def echo_all(self) -> None:
        for message in self.stored:
            self.deliver(message)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
    )


@pytest.fixture
def fee_table() -> dict[str, float]:
    return dict(DEFAULT_LICENSE_FEES)


@pytest.fixture
def school_repository() -> InMemorySchoolRepository:
    repository = InMemorySchoolRepository()
    repository.put(School(id="s1", name="Merkez MTSK", candidates={"B": 2, "A1": 1}))
    repository.put(School(id="s2", name="Sahil MTSK", candidates={"B": 0, "C": 3}))
    return repository


@pytest.fixture
def message_repository() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def session(
    school_repository: InMemorySchoolRepository,
    message_repository: InMemoryMessageRepository,
    fee_table: dict[str, float],
) -> SyncSession:
    return SyncSession(
        registry=SchoolRegistry(school_repository),
        message_stream=MessageStream(message_repository),
        fee_table=fee_table,
    )


@pytest.fixture
def container(settings: Settings, session: SyncSession) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        registry=session.registry,
        message_stream=session.message_stream,
        session=session,
        close_resources=close_resources,
    )
