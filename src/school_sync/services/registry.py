"""Process-wide cache of school records."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from school_sync.domain.errors import StoreUnavailable, SubscriptionError, WriteRejected
from school_sync.domain.schools import CategoryCounts, School

_logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], Awaitable[None]]
SnapshotCallback = Callable[[list[School] | Exception], None]
RegistryCallback = Callable[[tuple[School, ...] | SubscriptionError], None]


class SchoolRepository(Protocol):
    """Remote store interface for school records."""

    async def fetch_all(self) -> list[School]:
        """Return every school currently stored."""

    async def subscribe(self, on_update: SnapshotCallback) -> Unsubscribe:
        """Push the full school list on every remote change.

        Failures are passed to ``on_update`` as exceptions.
        """

    async def write_candidates(self, school_id: str, counts: CategoryCounts) -> None:
        """Replace the category counts of a school."""


@dataclass
class RegistrySubscription:
    """Handle for the registry's push subscription."""

    unsubscribe: Unsubscribe | None = None
    closed: bool = False

    async def close(self) -> None:
        """Release the remote subscription; repeated calls do nothing."""
        if self.closed:
            return
        self.closed = True
        if self.unsubscribe is not None:
            await self.unsubscribe()


@dataclass
class SchoolRegistry:
    """Read-mostly cache of all schools fed by the remote store."""

    repository: SchoolRepository
    _snapshot: tuple[School, ...] = field(default=(), init=False)
    _subscription: RegistrySubscription | None = field(default=None, init=False)

    @property
    def snapshot(self) -> tuple[School, ...]:
        """Return the current cached snapshot."""
        return self._snapshot

    def get(self, school_id: str) -> School | None:
        """Return the cached school with the given id, if present."""
        for school in self._snapshot:
            if school.id == school_id:
                return school
        return None

    async def fetch_all(self) -> tuple[School, ...]:
        """Load every school once and replace the cached snapshot."""
        try:
            schools = await self.repository.fetch_all()
        except Exception as exc:
            _logger.exception("Failed to fetch schools")
            raise StoreUnavailable("Failed to load schools") from exc
        self._snapshot = _unique_by_id(schools)
        _logger.info("Loaded %s schools", len(self._snapshot))
        return self._snapshot

    async def subscribe(self, on_update: RegistryCallback) -> RegistrySubscription:
        """Open the push subscription for school changes.

        ``on_update`` receives the full snapshot after every change, or a
        ``SubscriptionError`` when the stream breaks. Nothing is raised.
        """
        if self._subscription is not None and not self._subscription.closed:
            raise RuntimeError("School registry already has an active subscription")
        subscription = RegistrySubscription()
        self._subscription = subscription

        def react(update: list[School] | Exception) -> None:
            if subscription.closed:
                return
            if isinstance(update, Exception):
                _logger.warning("School subscription error: %s", update)
                on_update(_as_subscription_error(update))
                return
            self._snapshot = _unique_by_id(update)
            on_update(self._snapshot)

        try:
            unsubscribe = await self.repository.subscribe(react)
        except Exception as exc:
            _logger.exception("Failed to open school subscription")
            subscription.closed = True
            on_update(_as_subscription_error(exc))
            return subscription
        if subscription.closed:
            # Closed while the subscription was being established.
            await unsubscribe()
            return subscription
        subscription.unsubscribe = unsubscribe
        return subscription

    async def close(self) -> None:
        """Close the current subscription, including one still being opened."""
        if self._subscription is not None:
            await self._subscription.close()

    async def write(self, school_id: str, counts: CategoryCounts) -> None:
        """Write new category counts for a school to the remote store."""
        try:
            await self.repository.write_candidates(school_id, counts)
        except Exception as exc:
            _logger.warning("Candidate write rejected: school_id=%s", school_id)
            raise WriteRejected(f"Failed to update school {school_id}") from exc


def resolve_selection(
    previous: School | None, snapshot: Sequence[School]
) -> School | None:
    """Re-resolve a selected school against a new snapshot.

    The previous value is kept when its id is missing from the snapshot; only
    an explicit logout clears the selection.
    """
    if previous is None:
        return None
    for school in snapshot:
        if school.id == previous.id:
            return school
    return previous


def _unique_by_id(schools: Sequence[School]) -> tuple[School, ...]:
    by_id: dict[str, School] = {}
    for school in schools:
        by_id[school.id] = school
    return tuple(by_id.values())


def _as_subscription_error(exc: Exception) -> SubscriptionError:
    if isinstance(exc, SubscriptionError):
        return exc
    error = SubscriptionError(str(exc) or type(exc).__name__)
    error.__cause__ = exc
    return error
