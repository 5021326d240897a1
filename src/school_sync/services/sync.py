"""Session lifecycle and mutation intents over the synchronized state."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from school_sync.domain.categories import is_known_category
from school_sync.domain.errors import (
    InvalidInput,
    StoreUnavailable,
    SubscriptionError,
    SyncError,
)
from school_sync.domain.messages import Message
from school_sync.domain.reports import DetailedReport
from school_sync.domain.schools import School
from school_sync.services.ledger import apply_delta, total_count, total_fee
from school_sync.services.messages import MessageStream, StreamState
from school_sync.services.registry import (
    SchoolRegistry,
    resolve_selection,
)
from school_sync.services.reports import build_report

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchoolTotals:
    """Enrollee count and fee for a single school."""

    total_count: int
    total_fee: float


@dataclass
class SyncSession:
    """Owns the synchronized view for one running client."""

    registry: SchoolRegistry
    message_stream: MessageStream
    fee_table: Mapping[str, float]
    _selected: School | None = field(default=None, init=False)
    _error: SyncError | None = field(default=None, init=False)
    # Set from the start of activation until deactivation or a failed load.
    _running: bool = field(default=False, init=False)
    _active: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.message_stream.on_error = self._on_stream_error

    @property
    def is_active(self) -> bool:
        """Return True between a successful activation and deactivation."""
        return self._active

    @property
    def error(self) -> SyncError | None:
        """Return the current error, if any."""
        return self._error

    @property
    def schools(self) -> tuple[School, ...]:
        """Return the current registry snapshot."""
        return self.registry.snapshot

    @property
    def selected_school(self) -> School | None:
        """Return the school this session acts as."""
        return self._selected

    @property
    def selected_totals(self) -> SchoolTotals | None:
        """Return totals for the selected school."""
        if self._selected is None:
            return None
        return SchoolTotals(
            total_count=total_count(self._selected.candidates),
            total_fee=total_fee(self._selected.candidates, self.fee_table),
        )

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return the retained chat window."""
        return self.message_stream.messages

    @property
    def report(self) -> DetailedReport:
        """Return the cross-school report for the current snapshot."""
        return build_report(self.registry.snapshot, self.fee_table)

    async def activate(self) -> None:
        """Load the schools and open both subscriptions."""
        if self._running:
            return
        if self.message_stream.state is StreamState.CLOSED:
            raise RuntimeError("A deactivated session cannot be reactivated")
        self._running = True
        try:
            await self.registry.fetch_all()
        except StoreUnavailable as exc:
            self._running = False
            self._error = exc
            return
        if not self._running:
            return
        self._error = None
        await self.registry.subscribe(self._on_registry_update)
        if not self._running:
            return
        try:
            await self.message_stream.open()
        except SubscriptionError as exc:
            self._error = exc
        if not self._running:
            return
        self._active = True
        _logger.info("Sync session activated")

    async def deactivate(self) -> None:
        """Close both subscriptions; safe to call more than once.

        Also stops an activation that is still in progress.
        """
        if not self._running:
            return
        self._running = False
        was_active, self._active = self._active, False
        await self.registry.close()
        await self.message_stream.close()
        if was_active:
            _logger.info("Sync session deactivated")
        else:
            _logger.info("Sync session activation cancelled")

    def select_school(self, school_id: str) -> SyncError | None:
        """Act as the given school from now on."""
        school = self.registry.get(school_id)
        if school is None:
            return InvalidInput(f"Unknown school {school_id}")
        self._selected = school
        return None

    def request_logout(self) -> None:
        """Clear the selected school."""
        self._selected = None

    async def request_candidate_delta(
        self, school_id: str, category: str, delta: int
    ) -> SyncError | None:
        """Write the next counts for a school, computed from the local snapshot."""
        if not is_known_category(category):
            return InvalidInput(f"Unknown license category {category}")
        school = self.registry.get(school_id)
        if school is None:
            return InvalidInput(f"Unknown school {school_id}")
        counts = apply_delta(school.candidates, category, delta)
        try:
            await self.registry.write(school_id, counts)
        except SyncError as exc:
            self._error = exc
            return exc
        return None

    async def request_send_message(
        self, school_id: str, school_name: str, content: str
    ) -> SyncError | None:
        """Send a chat message on behalf of a school."""
        try:
            await self.message_stream.send(school_id, school_name, content)
        except InvalidInput as exc:
            return exc
        except SyncError as exc:
            self._error = exc
            return exc
        return None

    def _on_registry_update(
        self, update: tuple[School, ...] | SubscriptionError
    ) -> None:
        if not self._running:
            return
        if isinstance(update, SubscriptionError):
            self._error = update
            return
        self._selected = resolve_selection(self._selected, update)
        if self._error is not None and not self._error.terminal:
            self._error = None

    def _on_stream_error(self, error: SubscriptionError) -> None:
        if self._running:
            self._error = error
