"""Tests for the sync session lifecycle."""

import asyncio

import pytest

from school_sync.domain.errors import (
    InvalidInput,
    StoreUnavailable,
    SubscriptionError,
    WriteRejected,
)
from school_sync.domain.schools import School
from school_sync.services.messages import StreamState


def test_activate_loads_schools_and_opens_subscriptions(
    session, school_repository, message_repository
) -> None:
    asyncio.run(session.activate())

    assert session.is_active
    assert session.error is None
    assert [school.id for school in session.schools] == ["s1", "s2"]
    assert len(school_repository.subscribers) == 1
    assert len(message_repository.subscribers) == 1
    assert session.message_stream.state is StreamState.LIVE


def test_failed_initial_load_is_terminal_and_skips_subscriptions(
    session, school_repository, message_repository
) -> None:
    school_repository.fail_fetch = True

    asyncio.run(session.activate())

    assert not session.is_active
    assert isinstance(session.error, StoreUnavailable)
    assert session.error.terminal
    assert school_repository.subscribers == []
    assert message_repository.subscribers == []


def test_activation_can_be_retried_after_terminal_error(
    session, school_repository
) -> None:
    school_repository.fail_fetch = True
    asyncio.run(session.activate())
    school_repository.fail_fetch = False

    asyncio.run(session.activate())

    assert session.is_active
    assert session.error is None


def test_registry_error_is_non_terminal_and_keeps_data(
    session, school_repository
) -> None:
    asyncio.run(session.activate())

    school_repository.push_error(RuntimeError("socket closed"))

    assert isinstance(session.error, SubscriptionError)
    assert not session.error.terminal
    assert len(session.schools) == 2

    school_repository.push()

    assert session.error is None


def test_message_stream_error_is_reported(session, message_repository) -> None:
    asyncio.run(session.activate())

    message_repository.deliver(RuntimeError("socket closed"))

    assert isinstance(session.error, SubscriptionError)


def test_selection_follows_snapshots_and_survives_missing_school(
    session, school_repository
) -> None:
    asyncio.run(session.activate())
    assert session.select_school("s1") is None

    school_repository.put(School(id="s1", name="Merkez MTSK", candidates={"B": 5}))
    school_repository.push()
    assert session.selected_school.candidates == {"B": 5}

    del school_repository.schools["s1"]
    school_repository.push()
    assert session.selected_school.id == "s1"
    assert session.selected_school.candidates == {"B": 5}

    session.request_logout()
    assert session.selected_school is None


def test_select_unknown_school_is_invalid(session) -> None:
    asyncio.run(session.activate())

    error = session.select_school("missing")

    assert isinstance(error, InvalidInput)
    assert session.selected_school is None


def test_selected_totals(session, fee_table) -> None:
    asyncio.run(session.activate())
    assert session.selected_totals is None

    session.select_school("s1")

    totals = session.selected_totals
    assert totals.total_count == 3
    assert totals.total_fee == pytest.approx(2 * fee_table["B"] + fee_table["A1"])


def test_candidate_delta_writes_next_counts_from_snapshot(
    session, school_repository
) -> None:
    asyncio.run(session.activate())

    error = asyncio.run(session.request_candidate_delta("s1", "B", 1))

    assert error is None
    assert school_repository.writes == [("s1", {"B": 3, "A1": 1})]
    assert session.registry.get("s1").candidates == {"B": 2, "A1": 1}


def test_candidate_delta_clamps_at_zero(session, school_repository) -> None:
    asyncio.run(session.activate())

    asyncio.run(session.request_candidate_delta("s2", "B", -1))

    assert school_repository.writes == [("s2", {"B": 0, "C": 3})]


def test_candidate_delta_rejects_unknown_inputs(session, school_repository) -> None:
    asyncio.run(session.activate())

    unknown_category = asyncio.run(session.request_candidate_delta("s1", "Z", 1))
    unknown_school = asyncio.run(session.request_candidate_delta("s9", "B", 1))

    assert isinstance(unknown_category, InvalidInput)
    assert isinstance(unknown_school, InvalidInput)
    assert school_repository.writes == []
    assert session.error is None


def test_rejected_write_is_reported_on_error_channel(
    session, school_repository
) -> None:
    asyncio.run(session.activate())
    school_repository.fail_write = True

    error = asyncio.run(session.request_candidate_delta("s1", "B", 1))

    assert isinstance(error, WriteRejected)
    assert session.error is error
    assert session.registry.get("s1").candidates == {"B": 2, "A1": 1}


def test_send_message_shows_single_entry_after_echo(
    session, message_repository
) -> None:
    asyncio.run(session.activate())

    error = asyncio.run(
        session.request_send_message("s1", "Merkez MTSK", "merhaba")
    )
    message_repository.echo_all()

    assert error is None
    assert [message.content for message in session.messages] == ["merhaba"]


def test_send_blank_message_is_rejected_locally(session, message_repository) -> None:
    asyncio.run(session.activate())

    error = asyncio.run(session.request_send_message("s1", "Merkez MTSK", "  "))

    assert isinstance(error, InvalidInput)
    assert message_repository.stored == []
    assert session.error is None


def test_deactivate_releases_subscriptions_once(
    session, school_repository, message_repository
) -> None:
    async def scenario() -> None:
        await session.activate()
        await session.deactivate()
        await session.deactivate()

    asyncio.run(scenario())

    assert not session.is_active
    assert school_repository.unsubscribe_calls == 1
    assert message_repository.unsubscribe_calls == 1


def test_deactivate_without_activation_is_noop(
    session, school_repository, message_repository
) -> None:
    asyncio.run(session.deactivate())

    assert school_repository.unsubscribe_calls == 0
    assert message_repository.unsubscribe_calls == 0


def test_no_reaction_after_deactivation(session, school_repository) -> None:
    asyncio.run(session.activate())
    handlers = list(school_repository.subscribers)
    session.select_school("s1")

    asyncio.run(session.deactivate())
    handlers[0]([School(id="s1", name="Merkez MTSK", candidates={"B": 9})])
    handlers[0](RuntimeError("late error"))

    assert session.selected_school.candidates == {"B": 2, "A1": 1}
    assert session.error is None


def test_report_reflects_latest_snapshot(session, school_repository) -> None:
    asyncio.run(session.activate())
    assert session.report.total_count == 6

    school_repository.put(School(id="s3", name="Yeni MTSK", candidates={"D": 4}))
    school_repository.push()

    assert session.report.total_count == 10
    assert session.report.category_totals["D"] == 4


def test_deactivate_while_subscribing_releases_the_late_subscription(
    session, school_repository, message_repository
) -> None:
    async def scenario() -> None:
        school_repository.subscribe_gate = asyncio.Event()
        activation = asyncio.create_task(session.activate())
        await asyncio.sleep(0)
        await session.deactivate()
        school_repository.subscribe_gate.set()
        await activation

    asyncio.run(scenario())

    assert not session.is_active
    assert school_repository.subscribers == []
    assert school_repository.unsubscribe_calls == 1
    assert message_repository.subscribers == []
    assert session.message_stream.state is StreamState.CLOSED


def test_deactivate_while_loading_stops_activation(
    session, school_repository, message_repository
) -> None:
    async def scenario() -> None:
        school_repository.fetch_gate = asyncio.Event()
        activation = asyncio.create_task(session.activate())
        await asyncio.sleep(0)
        await session.deactivate()
        school_repository.fetch_gate.set()
        await activation

    asyncio.run(scenario())

    assert not session.is_active
    assert school_repository.subscribers == []
    assert message_repository.subscribers == []
    assert session.error is None
