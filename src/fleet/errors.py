# src/fleet/errors.py
"""
Domain errors for the fleet session layer.

Every error here is an expected, recoverable condition: it aborts the current
console command or background task, never the process. The console prints
them; TaskRunner turns transport failures into an aborted TaskResult.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FleetError(RuntimeError):
    """
    Base class for fleet errors.

    Carries a short machine-readable `code` and a `details` mapping, in the
    same shape as the other domain errors in this codebase, so monitoring
    events can record them without parsing messages.
    """

    code = "fleet_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self), "details": self.details}


class AgentNotFoundError(FleetError):
    """No connected agent has the requested name."""

    code = "not_found"

    def __init__(self, name: str) -> None:
        super().__init__(f"no such turtle {name}", {"name": name})
        self.name = name


class AgentBusyError(FleetError):
    """Selection or task start attempted on an agent that is running a task."""

    code = "agent_busy"

    def __init__(self, name: str) -> None:
        super().__init__(f"turtle {name} is busy running a task", {"name": name})
        self.name = name


class NoActiveAgentError(FleetError):
    """A command needs a target but no agent is selected."""

    code = "no_active_agent"

    def __init__(self, message: str = "no selected turtle") -> None:
        super().__init__(message)


class TransportError(FleetError):
    """The connection reported an error while a reply was pending."""

    code = "transport_error"

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(
            f"connection error on turtle {name}: {cause}",
            {"name": name, "cause": repr(cause)},
        )
        self.name = name
        self.__cause__ = cause


class ConnectionClosedError(FleetError):
    """The connection closed before the pending reply arrived."""

    code = "connection_closed"

    def __init__(self, name: str) -> None:
        super().__init__(f"connection to turtle {name} closed", {"name": name})
        self.name = name


class CommandError(FleetError):
    """Operator input that could not be parsed or has the wrong arity."""

    code = "bad_command"
