"""Workflow execution context.

This module provides the :class:`Context` record threaded through a running
workflow. The engine-owned fields are typed dataclasses; application data
(``Input``, ``Output`` and task results) stays schema-free JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from litestar_asl.core.types import JSON, WorkflowStatus

__all__ = ["Context", "ExecutionInfo", "StateInfo", "format_time", "utcnow"]


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_time(value: datetime | None) -> str | None:
    """Render a datetime the way it appears in the context record."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ExecutionInfo:
    """The ``Execution`` section of the context.

    Attributes:
        id: Unique identifier for this execution.
        input: The workflow input.
        start_time: When the first state was seeded.
        end_time: When the last state finished.
    """

    id: str
    input: JSON = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "Id": self.id,
                "Input": self.input,
                "StartTime": format_time(self.start_time),
                "EndTime": format_time(self.end_time),
            }
        )


@dataclass
class StateInfo:
    """The ``State`` section of the context: the record of the current state.

    Attributes:
        name: Short name of the state.
        guid: Unique identifier for this entry into the state.
        entered_time: When the state started.
        finished_time: When the state finished.
        duration: Seconds between entering and finishing.
        input: The raw state input.
        output: The state output once finished.
        next_state: The state to transition to, None to end the workflow.
        retry_count: Number of retries made by the active retrier.
        retrier: ``ErrorEquals`` of the active retrier.
        wait_until: Instant before which the state must not proceed.
        runner_context: Opaque task correlation data owned by a runner.
        error: ASL error name when the state failed.
        cause: Human-readable cause of the failure.
        item_contexts: Nested iteration contexts of a Map state.
    """

    name: str | None = None
    guid: str | None = None
    entered_time: datetime | None = None
    finished_time: datetime | None = None
    duration: float | None = None
    input: JSON = None
    output: JSON = None
    next_state: str | None = None
    retry_count: int | None = None
    retrier: list[str] | None = None
    wait_until: datetime | None = None
    runner_context: dict[str, Any] | None = None
    error: str | None = None
    cause: str | None = None
    item_contexts: list[Context] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "Name": self.name,
                "Guid": self.guid,
                "EnteredTime": format_time(self.entered_time),
                "FinishedTime": format_time(self.finished_time),
                "Duration": self.duration,
                "Input": self.input,
                "Output": self.output,
                "NextState": self.next_state,
                "RetryCount": self.retry_count,
                "Retrier": self.retrier,
                "WaitUntil": format_time(self.wait_until),
                "RunnerContext": self.runner_context,
                "Error": self.error,
                "Cause": self.cause,
                "ItemProcessorContext": (
                    [item.to_dict() for item in self.item_contexts] if self.item_contexts is not None else None
                ),
            },
            keep=("Input", "Output"),
        )


@dataclass
class Context:
    """Mutable execution record of one workflow (or one Map iteration).

    Attributes:
        execution: The ``Execution`` section.
        state: The record of the current state.
        state_history: Snapshots of every finished state, oldest first.
        state_machine: The ``StateMachine`` section (``Id`` and ``Name``).
        credentials: Secrets available to Task ``Credentials`` templates. Never
            rendered by :meth:`to_dict`.

    Example:
        >>> context = Context.create({"order": 7})
        >>> context.status
        <WorkflowStatus.PENDING: 'pending'>
        >>> context.to_dict()["Execution"]["Input"]
        {'order': 7}
    """

    execution: ExecutionInfo
    state: StateInfo = field(default_factory=StateInfo)
    state_history: list[dict[str, Any]] = field(default_factory=list)
    state_machine: dict[str, Any] = field(default_factory=dict)
    credentials: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def create(
        cls,
        input: JSON = None,  # noqa: A002
        execution_id: str | None = None,
        credentials: dict[str, Any] | None = None,
        state_machine: dict[str, Any] | None = None,
    ) -> Context:
        """Create a fresh context for a new execution.

        Args:
            input: The workflow input. Defaults to an empty object.
            execution_id: Execution identifier. A UUID is generated when omitted.
            credentials: Secrets for Task ``Credentials`` templates.
            state_machine: The ``StateMachine`` section.

        Returns:
            The new context.
        """
        return cls(
            execution=ExecutionInfo(id=execution_id or str(uuid4()), input={} if input is None else input),
            state_machine=dict(state_machine or {}),
            credentials=dict(credentials or {}),
        )

    @property
    def started(self) -> bool:
        return self.execution.start_time is not None

    @property
    def ended(self) -> bool:
        return self.execution.end_time is not None

    @property
    def running(self) -> bool:
        return self.started and not self.ended

    @property
    def failed(self) -> bool:
        """Whether the current (or, once ended, the last) state failed."""
        return self.state.error is not None

    @property
    def status(self) -> WorkflowStatus:
        if not self.started:
            return WorkflowStatus.PENDING
        if not self.ended:
            return WorkflowStatus.RUNNING
        return WorkflowStatus.FAILURE if self.failed else WorkflowStatus.SUCCESS

    @property
    def state_name(self) -> str | None:
        return self.state.name

    @property
    def input(self) -> JSON:
        return self.state.input

    @property
    def output(self) -> JSON:
        return self.state.output

    @output.setter
    def output(self, value: JSON) -> None:
        self.state.output = value

    @property
    def next_state(self) -> str | None:
        return self.state.next_state

    @next_state.setter
    def next_state(self, value: str | None) -> None:
        self.state.next_state = value

    @property
    def state_started(self) -> bool:
        return self.state.entered_time is not None

    @property
    def state_finished(self) -> bool:
        return self.state.finished_time is not None

    def to_dict(self) -> dict[str, Any]:
        """Render the JSON record used for ``$$`` paths and API responses."""
        return {
            "Execution": self.execution.to_dict(),
            "State": self.state.to_dict(),
            "StateHistory": list(self.state_history),
            "StateMachine": dict(self.state_machine),
        }


def _compact(values: dict[str, Any], keep: tuple[str, ...] = ()) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None or key in keep}
