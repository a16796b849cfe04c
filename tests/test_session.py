"""
tests/test_session.py
─────────────────────────────────────────────────────────────────────────────
RefineSession: state machine, busy / supersede / cancel handling, apply and
undo, and the JSONL event trail.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio

import pytest

from ideadate.errors import SuggestionNotFoundError, UndoUnavailableError
from ideadate.modules.candidates.local_resolver import LocalCandidateResolver
from ideadate.modules.candidates.resolver_chain import ResolverChain
from ideadate.modules.observability.logger import (
    StructuredLogger,
    event_types,
    read_events,
    trail_filename,
)
from ideadate.modules.refinement.session import RefineSession, RefineState, RefineStatus

from conftest import FailingResolver, YieldingResolver, calm_plan, messy_plan


def _session(plan=None, resolver=None, events=None) -> RefineSession:
    return RefineSession(
        plan or messy_plan(),
        resolver=resolver or ResolverChain(local=LocalCandidateResolver()),
        events=events,
    )


# ── Refine cycle ──────────────────────────────────────────────────────────────

def test_refine_reaches_ready():
    session = _session()
    assert session.state is RefineState.IDLE

    outcome = asyncio.run(session.refine())

    assert outcome.status is RefineStatus.READY
    assert session.state is RefineState.READY
    assert session.suggestions == outcome.suggestions
    assert session.plan.meta.resolver_telemetry.used == "local"
    assert not session.in_flight


def test_refine_on_a_calm_plan_is_empty():
    session = _session(calm_plan(), resolver=FailingResolver())
    outcome = asyncio.run(session.refine())
    assert outcome.status is RefineStatus.EMPTY
    assert session.state is RefineState.EMPTY
    assert outcome.pack.message is not None
    assert session.plan.meta.resolver_telemetry.error == "upstream exploded (503)"


def test_second_refine_while_busy_is_rejected(tmp_path):
    events = StructuredLogger(tmp_path)
    session = _session(resolver=YieldingResolver(), events=events)

    async def both():
        return await asyncio.gather(session.refine(), session.refine())

    first, second = asyncio.run(both())
    events.close()

    assert first.status is RefineStatus.READY
    assert second.busy
    assert second.pack is None

    types = event_types(read_events("plan-messy", logs_dir=tmp_path))
    assert types.count("refine_started") == 1
    assert types.count("refine_rejected_busy") == 1
    assert types.count("refine_completed") == 1


def test_supersede_discards_the_older_cycle():
    session = _session(resolver=YieldingResolver())

    async def run():
        older = asyncio.create_task(session.refine())
        await asyncio.sleep(0)
        assert session.in_flight
        newer = await session.refine(supersede=True)
        return await older, newer

    older, newer = asyncio.run(run())
    assert older.superseded
    assert newer.status is RefineStatus.READY
    assert session.pack is newer.pack
    assert not session.in_flight


def test_cancel_drops_the_in_flight_cycle():
    session = _session(resolver=YieldingResolver())

    async def run():
        task = asyncio.create_task(session.refine())
        await asyncio.sleep(0)
        cancelled = session.cancel()
        return cancelled, await task

    cancelled, outcome = asyncio.run(run())
    assert cancelled is True
    assert outcome.superseded
    assert session.state is RefineState.IDLE
    assert session.pack is None
    assert session.cancel() is False


# ── Apply / undo ──────────────────────────────────────────────────────────────

def test_preview_changes_nothing():
    session = _session()
    outcome = asyncio.run(session.refine())
    baseline = session.live
    preview = session.preview(outcome.suggestions[0].id)
    assert preview.computed.journey_score > baseline.computed.journey_score
    assert session.live is baseline


def test_apply_then_undo(tmp_path):
    events = StructuredLogger(tmp_path)
    session = _session(events=events)
    outcome = asyncio.run(session.refine())
    before = session.live.computed.journey_score
    chosen = outcome.suggestions[0]

    after = session.apply(chosen.id)
    assert after.computed.journey_score == pytest.approx(chosen.impact.after)
    assert session.state is RefineState.APPLIED
    assert session.can_undo
    assert session.plan.stop_ids == after.plan.stop_ids

    restored = session.undo()
    assert restored.computed.journey_score == pytest.approx(before)
    assert not session.can_undo
    assert session.state is RefineState.IDLE

    with pytest.raises(UndoUnavailableError):
        session.undo()
    events.close()

    types = event_types(read_events("plan-messy", logs_dir=tmp_path))
    assert types == [
        "refine_started",
        "refine_completed",
        "suggestion_applied",
        "undo_applied",
        "undo_unavailable",
    ]


def test_unknown_suggestion_id():
    session = _session()
    with pytest.raises(SuggestionNotFoundError):
        session.apply("idea-date-replace-nope")

    outcome = asyncio.run(session.refine())
    session.apply(outcome.suggestions[0].id)
    with pytest.raises(SuggestionNotFoundError):
        session.preview(outcome.suggestions[0].id)


def test_refine_after_apply_starts_from_the_new_baseline():
    session = _session()
    outcome = asyncio.run(session.refine())
    applied = session.apply(outcome.suggestions[0].id)

    again = asyncio.run(session.refine())
    assert again.status in (RefineStatus.READY, RefineStatus.EMPTY)
    for suggestion in again.suggestions:
        assert suggestion.impact.before == pytest.approx(applied.computed.journey_score)


def test_set_plan_resets_the_session():
    session = _session()
    outcome = asyncio.run(session.refine())
    session.apply(outcome.suggestions[0].id)

    live = session.set_plan(calm_plan())
    assert live.plan.id == "plan-calm"
    assert not session.can_undo
    assert session.state is RefineState.IDLE
    assert session.suggestions == ()


def test_events_payload_is_json(tmp_path):
    events = StructuredLogger(tmp_path)
    session = _session(events=events)
    asyncio.run(session.refine())
    events.close()

    completed = [r for r in read_events("plan-messy", logs_dir=tmp_path)
                 if r["event_type"] == "refine_completed"][0]
    payload = completed["payload"]
    assert payload["resolver"]["used"] == "local"
    assert "primary" in payload["stats"]["passes"]
    assert payload["suggestions"]
    assert completed["session_id"] == "plan-messy"


def test_read_events_for_unknown_session(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_events("nobody", logs_dir=tmp_path)


def test_event_trail_is_sequenced_per_session(tmp_path):
    events = StructuredLogger(tmp_path)
    assert events.log("a/../b", "refine_started") == 1
    assert events.log("a/../b", "refine_completed", {"n": 1}) == 2
    assert events.log("other", "refine_started") == 1
    events.close()

    assert trail_filename("a/../b") == "a_.._b.jsonl"
    assert (tmp_path / "a_.._b.jsonl").exists()
    records = read_events("a/../b", logs_dir=tmp_path)
    assert [r["seq"] for r in records] == [1, 2]
    assert records[0]["payload"] == {}
    assert event_types(records) == ["refine_started", "refine_completed"]
