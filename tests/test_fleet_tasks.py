# tests/test_fleet_tasks.py
"""
Tests for fleet.tasks (TaskRunner and the task shapes).

Covers:
- repeat runs to completion and frees the agent
- search stops at the first matching probe reply
- a disconnect mid-run aborts and does not reclaim the seat
- an agent is BUSY and unselectable for the whole run
- starting twice on one agent is refused
- shutdown cancels pending runs
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from fleet.agent import AgentStatus
from fleet.errors import AgentBusyError, NoActiveAgentError
from fleet.session import FleetSession
from fleet.tasks import (
    OUTCOME_ABORTED,
    OUTCOME_COMPLETED,
    OUTCOME_STOPPED,
    TaskSpec,
    contains,
    repeat_task,
    search_task,
)
from fleet.testing.fakes import FakeTurtle, settle
from monitoring.events import EventType, MonitoringEvent


ADVANCE = "advance"
PROBES = ["probe-up", "probe-down", "probe-left", "probe-right"]


async def wait_for_sent(turtle: FakeTurtle, count: int, limit: int = 200) -> None:
    for _ in range(limit):
        if len(turtle.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{turtle.name} only received {len(turtle.sent)} payloads")


# ---------------------------------------------------------------------------
# Task shapes
# ---------------------------------------------------------------------------


def test_repeat_task_yields_payload_count_times():
    task = repeat_task(3, "return turtle.forward()", label="forward")

    assert task.kind == "repeat"
    assert list(task.steps) == ["return turtle.forward()"] * 3
    assert task.stop_condition is None
    assert task.description == "forward x3"


def test_repeat_task_rejects_non_positive_count():
    with pytest.raises(ValueError):
        repeat_task(0, "return 1")


def test_search_task_interleaves_advance_and_probes():
    task = search_task(2, "ore", ADVANCE, PROBES)

    assert list(task.steps) == [ADVANCE, *PROBES, ADVANCE, *PROBES]
    assert task.stop_condition("iron_ore")
    assert not task.stop_condition("")


def test_contains_rejects_empty_needle():
    with pytest.raises(ValueError):
        contains("")


def test_search_task_rejects_non_positive_count():
    with pytest.raises(ValueError):
        search_task(0, "ore", ADVANCE, PROBES)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_repeat_completes_and_returns_agent_to_idle(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    turtle.script(["true", "true", "true"])

    result = await session.tasks.run(turtle.agent, repeat_task(3, "return turtle.forward()"))

    assert result.outcome == OUTCOME_COMPLETED
    assert result.steps_run == 3
    assert result.last_reply == "true"
    assert turtle.sent == ["return turtle.forward()"] * 3
    assert turtle.agent.status is AgentStatus.IDLE
    # Freed agent takes the empty seat back.
    assert session.current is turtle.agent


@pytest.mark.asyncio
async def test_search_stops_at_first_match(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    turtle.script(["", "false", "minecraft:diamond_ore", "never"])

    result = await session.tasks.run(turtle.agent, search_task(3, "diamond", ADVANCE, PROBES))

    assert result.outcome == OUTCOME_STOPPED
    assert result.steps_run == 3
    assert result.last_reply == "minecraft:diamond_ore"
    assert turtle.sent == [ADVANCE, "probe-up", "probe-down"]


@pytest.mark.asyncio
async def test_disconnect_mid_run_aborts(session: FleetSession):
    finished: List[MonitoringEvent] = []
    session.bus.subscribe(
        lambda e: finished.append(e) if e.event_type is EventType.TASK_FINISHED else None
    )
    turtle = FakeTurtle(session, "alpha")
    turtle.script(["true", "true"])

    handle = session.start_task(turtle.agent, repeat_task(5, "return turtle.forward()"))
    await wait_for_sent(turtle, 3)
    turtle.disconnect()
    result = await handle

    assert result.outcome == OUTCOME_ABORTED
    assert result.steps_run == 2
    assert "closed" in result.error
    assert turtle.agent.status is AgentStatus.IDLE
    assert session.current is None
    assert len(finished) == 1
    assert finished[0].payload["outcome"] == OUTCOME_ABORTED


@pytest.mark.asyncio
async def test_transport_error_mid_run_aborts(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")

    handle = session.start_task(turtle.agent, repeat_task(2, "return 1"))
    await wait_for_sent(turtle, 1)
    turtle.fail(OSError("reset"))
    result = await handle

    assert result.outcome == OUTCOME_ABORTED
    assert result.steps_run == 0
    assert session.current is turtle.agent


@pytest.mark.asyncio
async def test_agent_is_busy_for_every_request(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    turtle.script([""] * 4)
    observed: List[tuple] = []

    def check(event: MonitoringEvent) -> None:
        if event.event_type is EventType.REQUEST_SENT:
            observed.append((turtle.agent.status, session.current))

    session.bus.subscribe(check)

    await session.tasks.run(turtle.agent, repeat_task(4, "return 1"))

    assert observed == [(AgentStatus.BUSY, None)] * 4


@pytest.mark.asyncio
async def test_busy_agent_cannot_be_selected_or_started(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")

    handle = session.start_task(turtle.agent, repeat_task(1, "return 1"))
    assert turtle.agent.status is AgentStatus.BUSY
    assert session.current is None

    with pytest.raises(AgentBusyError):
        session.select_agent("alpha")
    with pytest.raises(AgentBusyError):
        session.start_task(turtle.agent, repeat_task(1, "return 2"))

    await wait_for_sent(turtle, 1)
    turtle.reply("done")
    await handle

    assert turtle.sent == ["return 1"]
    assert session.select_agent("alpha") is turtle.agent


@pytest.mark.asyncio
async def test_start_without_agent_raises(session: FleetSession):
    with pytest.raises(NoActiveAgentError):
        session.start_task(None, repeat_task(1, "return 1"))


@pytest.mark.asyncio
async def test_running_lists_in_progress_runs(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    spec = TaskSpec(kind="repeat", steps=["return 1"], description="once")

    handle = session.start_task(turtle.agent, spec)

    assert session.running_tasks() == [(turtle.agent, spec)]

    await wait_for_sent(turtle, 1)
    turtle.reply("1")
    await handle
    await settle()

    assert session.running_tasks() == []


@pytest.mark.asyncio
async def test_shutdown_cancels_and_frees_agent(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    handle = session.start_task(turtle.agent, repeat_task(1, "return 1"))
    await wait_for_sent(turtle, 1)

    await session.tasks.shutdown()

    assert handle.cancelled()
    assert turtle.agent.status is AgentStatus.IDLE
    assert turtle.agent.connection.listener_count == 0


@pytest.mark.asyncio
async def test_shutdown_before_first_step_frees_agent(session: FleetSession):
    finished: List[MonitoringEvent] = []
    session.bus.subscribe(
        lambda e: finished.append(e) if e.event_type is EventType.TASK_FINISHED else None
    )
    turtle = FakeTurtle(session, "alpha")

    handle = session.start_task(turtle.agent, repeat_task(3, "return 1"))
    await session.tasks.shutdown()

    assert handle.cancelled()
    assert turtle.sent == []
    assert turtle.agent.status is AgentStatus.IDLE
    assert session.current is turtle.agent
    assert session.running_tasks() == []
    assert len(finished) == 1
    assert finished[0].payload["outcome"] == OUTCOME_ABORTED
    assert finished[0].payload["steps_run"] == 0


@pytest.mark.asyncio
async def test_close_all_right_after_start_frees_agent(session: FleetSession):
    turtle = FakeTurtle(session, "alpha")
    agent = turtle.agent

    session.start_task(agent, repeat_task(2, "return 1"))
    await session.close_all()

    assert agent.status is AgentStatus.IDLE
    assert turtle.transport.closed
    assert len(session.registry) == 0


@pytest.mark.asyncio
async def test_cancel_mid_run_reports_aborted(session: FleetSession):
    finished: List[MonitoringEvent] = []
    session.bus.subscribe(
        lambda e: finished.append(e) if e.event_type is EventType.TASK_FINISHED else None
    )
    turtle = FakeTurtle(session, "alpha")
    turtle.script(["ok"])

    session.start_task(turtle.agent, repeat_task(3, "return 1"))
    await wait_for_sent(turtle, 2)
    await session.tasks.shutdown()

    assert len(finished) == 1
    assert finished[0].payload["outcome"] == OUTCOME_ABORTED
    assert finished[0].payload["steps_run"] == 1
    assert finished[0].payload["error"] == "cancelled"
