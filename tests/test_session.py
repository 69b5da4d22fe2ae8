import asyncio

import pytest

from errors import FileWarning, RunInProgress
from models import TranslationRecord
from session import (
    SessionRegistry,
    SessionState,
    new_session,
    progress_of,
    run_cancelled,
    run_failed,
    run_finished,
    unit_completed,
    unit_started,
    units_discovered,
)


def _record(index):
    return TranslationRecord(f"s{index}", "", f"text {index}", index)


def test_progress_is_monotonic_and_reaches_exactly_100():
    session = units_discovered(new_session(), 3)
    percents = [progress_of(session).percent]
    for i in (2, 0, 1):
        session = unit_started(session, f"s{i}")
        session = unit_completed(session, f"s{i}", record=_record(i))
        percents.append(progress_of(session).percent)

    assert percents == [0, 33, 67, 100]
    assert session.completed_units == session.total_units == 3


def test_skipped_units_still_count_towards_progress():
    session = units_discovered(new_session(), 2)
    session = unit_completed(session, "s0", warning=FileWarning("s0", "HTTP 500"))
    assert session.percent == 50
    assert session.records == ()
    assert session.warnings == (FileWarning("s0", "HTTP 500"),)
    assert session.status_message.startswith("Skipped s0")


def test_unit_started_sets_status_without_counting():
    session = unit_started(units_discovered(new_session(), 2), "book.pdf (P1)")
    assert session.status_message == "Translating book.pdf (P1)..."
    assert session.completed_units == 0


def test_run_finished_sorts_records_into_unit_order():
    session = units_discovered(new_session(), 3)
    for i in (2, 0, 1):
        session = unit_completed(session, f"s{i}", record=_record(i))
    session = run_finished(session)

    assert session.state == SessionState.FINISHED
    assert [r.unit_index for r in session.records] == [0, 1, 2]
    assert session.percent == 100
    assert not session.is_processing


def test_run_with_no_successful_units_fails():
    session = units_discovered(new_session(), 1)
    session = unit_completed(session, "s0", warning=FileWarning("s0", "HTTP 500 for s0"))
    session = run_finished(session)

    assert session.state == SessionState.FAILED
    assert "HTTP 500 for s0" in session.error


def test_running_state_and_terminal_transitions():
    session = new_session("precise")
    assert session.state == SessionState.IDLE
    running = units_discovered(session, 4, (FileWarning("x.txt", "unsupported"),))
    assert running.is_processing
    assert running.warnings[0].source == "x.txt"

    failed = run_failed(running, "boom")
    assert failed.state == SessionState.FAILED and failed.error == "boom"

    cancelled = run_cancelled(unit_completed(running, "s0", record=_record(0)))
    assert cancelled.state == SessionState.CANCELLED
    assert "1/4" in cancelled.status_message


def test_transitions_do_not_mutate_the_previous_value():
    before = units_discovered(new_session(), 2)
    after = unit_completed(before, "s0", record=_record(0))
    assert before.completed_units == 0
    assert after.completed_units == 1


def test_registry_allows_one_run_at_a_time():
    async def scenario():
        registry = SessionRegistry()
        first, _ = await registry.begin()
        with pytest.raises(RunInProgress):
            await registry.begin()

        registry.update(run_finished(unit_completed(units_discovered(first, 1), "s0", record=_record(0))))
        second, cancel_event = await registry.begin()
        assert second.job_id != first.job_id
        assert registry.cancel(second.job_id)
        assert cancel_event.is_set()
        assert not registry.cancel("missing")

    asyncio.run(scenario())


def test_registered_run_is_processing_before_planning():
    async def scenario():
        registry = SessionRegistry()
        session, _ = await registry.begin("precise")
        return session, registry

    session, registry = asyncio.run(scenario())
    assert session.state == SessionState.QUEUED
    assert session.is_processing
    assert session.status_message == "Preparing files..."
    assert registry.is_processing

    running = units_discovered(session, 2)
    assert running.state == SessionState.RUNNING
    assert running.quality == "precise"
