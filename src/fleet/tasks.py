# src/fleet/tasks.py
"""
Background tasks: multi-step request/reply loops that run detached from the
console.

A task claims its agent for the whole run:

    IDLE --start()--> BUSY --(completed | stopped | aborted)--> IDLE

While BUSY the agent cannot be selected, so the console can keep driving
other turtles without ever interleaving a request on this agent's
connection. Once a run has started it goes to completion, early stop or
transport failure; there is no operator-level cancel.

Two task shapes are provided:
- repeat_task: the same payload N times (e.g. move forward N times);
- search_task: dig forward N times, probing four faces after each step,
  stopping at the first probe whose reply contains a substring.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .agent import Agent, AgentStatus
from .correlator import ReplyCorrelator
from .errors import AgentBusyError, ConnectionClosedError, TransportError
from .selector import ActiveSelector

log = logging.getLogger(__name__)

_MODULE = "fleet.tasks"

StopCondition = Callable[[str], bool]

OUTCOME_COMPLETED = "completed"
OUTCOME_STOPPED = "stopped"
OUTCOME_ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Task description / result
# ---------------------------------------------------------------------------


@dataclass
class TaskSpec:
    """
    What to run against an agent.

    `steps` is consumed lazily, one payload per round trip, so it may be a
    generator. `stop_condition`, when set, is checked against every reply.
    """

    kind: str
    steps: Iterable[str]
    stop_condition: Optional[StopCondition] = None
    description: str = ""


@dataclass
class TaskResult:
    """Outcome of one finished run."""

    agent_name: str
    kind: str
    outcome: str
    steps_run: int
    last_reply: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(eq=False)
class _Claim:
    """One agent held BUSY by one run; released exactly once."""

    agent: Agent
    task: TaskSpec
    result: TaskResult
    released: bool = False


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class TaskRunner:
    """Starts and tracks detached task runs."""

    def __init__(
        self,
        correlator: ReplyCorrelator,
        selector: ActiveSelector,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._correlator = correlator
        self._selector = selector
        self._bus = bus
        self._claims: Dict["asyncio.Task[TaskResult]", _Claim] = {}

    def start(self, agent: Agent, task: TaskSpec) -> "asyncio.Task[TaskResult]":
        """
        Claim `agent` and run `task` against it in the background.

        The precondition check and the IDLE -> BUSY transition happen here,
        before the first await, so no console command can slip in between.

        Raises:
            AgentBusyError: the agent is already running a task.
        """
        if not agent.is_idle:
            raise AgentBusyError(agent.name)

        agent.status = AgentStatus.BUSY
        self._selector.notify_became_busy(agent)
        log_event(
            bus=self._bus,
            module=_MODULE,
            event_type=EventType.TASK_STARTED,
            message=f"Task {task.kind} started on {agent.name}",
            payload={"agent": agent.name, "kind": task.kind, "description": task.description},
            correlation_id=agent.name,
        )

        claim = _Claim(
            agent=agent,
            task=task,
            result=TaskResult(agent_name=agent.name, kind=task.kind, outcome=OUTCOME_COMPLETED, steps_run=0),
        )
        handle = asyncio.create_task(
            self._run(claim),
            name=f"task-{task.kind}-{agent.name}",
        )
        self._claims[handle] = claim
        handle.add_done_callback(self._forget)
        return handle

    async def run(self, agent: Agent, task: TaskSpec) -> TaskResult:
        """Start `task` and wait for its result (convenience for scripts/tests)."""
        return await self.start(agent, task)

    def running(self) -> List[Tuple[Agent, TaskSpec]]:
        """(agent, task spec) pairs for runs still in progress."""
        return [(c.agent, c.task) for c in self._claims.values() if not c.released]

    async def shutdown(self) -> None:
        """Cancel whatever is still running; used on process exit only."""
        pending = list(self._claims)
        for handle in pending:
            handle.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _forget(self, handle: "asyncio.Task[TaskResult]") -> None:
        claim = self._claims.pop(handle, None)
        if claim is None or claim.released:
            return
        # Cancelled before the coroutine ever ran, so _run's finally never fired.
        claim.result.outcome = OUTCOME_ABORTED
        claim.result.error = "cancelled"
        self._release(claim)

    # ------------------------------------------------------------------

    async def _run(self, claim: _Claim) -> TaskResult:
        agent, task, result = claim.agent, claim.task, claim.result
        try:
            for payload in task.steps:
                reply = await self._correlator.request(agent, payload)
                result.steps_run += 1
                result.last_reply = reply
                if task.stop_condition is not None and task.stop_condition(reply):
                    result.outcome = OUTCOME_STOPPED
                    break
        except (TransportError, ConnectionClosedError) as exc:
            log.info("Task %s on %s aborted: %s", task.kind, agent.name, exc)
            result.outcome = OUTCOME_ABORTED
            result.error = str(exc)
        except asyncio.CancelledError:
            result.outcome = OUTCOME_ABORTED
            result.error = "cancelled"
            raise
        finally:
            self._release(claim)
        return result

    def _release(self, claim: _Claim) -> None:
        """BUSY -> IDLE, offer the seat back, publish TASK_FINISHED."""
        if claim.released:
            return
        claim.released = True
        agent, result = claim.agent, claim.result
        agent.status = AgentStatus.IDLE
        self._selector.notify_became_idle(agent)
        log_event(
            bus=self._bus,
            module=_MODULE,
            event_type=EventType.TASK_FINISHED,
            message=f"Task {result.kind} on {agent.name} {result.outcome}",
            payload=result.to_dict(),
            correlation_id=agent.name,
        )


# ---------------------------------------------------------------------------
# Task shapes
# ---------------------------------------------------------------------------


def repeat_task(count: int, payload: str, label: str = "") -> TaskSpec:
    """Send the same payload `count` times."""
    if count < 1:
        raise ValueError("repeat count must be at least 1")
    return TaskSpec(
        kind="repeat",
        steps=itertools.repeat(payload, count),
        description=f"{label or payload} x{count}",
    )


def contains(needle: str) -> StopCondition:
    """Stop condition: the reply contains `needle` (case-sensitive)."""
    if not needle:
        raise ValueError("search needle must not be empty")
    return lambda reply: needle in reply


def search_task(
    count: int,
    needle: str,
    advance: str,
    probes: Sequence[str],
) -> TaskSpec:
    """
    Advance up to `count` times, running every probe after each advance, and
    stop at the first reply containing `needle`.

    `advance` must reply with an empty string so that only probe replies
    can satisfy the stop condition.
    """
    if count < 1:
        raise ValueError("search step count must be at least 1")

    def steps() -> Iterator[str]:
        for _ in range(count):
            yield advance
            yield from probes

    return TaskSpec(
        kind="search",
        steps=steps(),
        stop_condition=contains(needle),
        description=f"search {needle!r} over {count} steps",
    )
