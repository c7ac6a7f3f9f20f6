"""Core type definitions for litestar-asl.

This module defines the enums, error names, and type aliases shared by the
engine, the states, and the runners.
"""

from __future__ import annotations

from enum import StrEnum, auto
from typing import Any, TypeAlias

__all__ = [
    "ERROR_ALL",
    "ERROR_EXCEED_TOLERATED_FAILURE_THRESHOLD",
    "ERROR_HEARTBEAT_TIMEOUT",
    "ERROR_INTRINSIC_FAILURE",
    "ERROR_NO_CHOICE_MATCHED",
    "ERROR_RUNTIME",
    "ERROR_TASK_FAILED",
    "ERROR_TIMEOUT",
    "JSON",
    "StateType",
    "StepResult",
    "WorkflowStatus",
]


class StateType(StrEnum):
    """The ``Type`` values accepted in a workflow document."""

    TASK = "Task"
    CHOICE = "Choice"
    WAIT = "Wait"
    PASS = "Pass"
    SUCCEED = "Succeed"
    FAIL = "Fail"
    MAP = "Map"


class StepResult(StrEnum):
    """Outcome of a single non-blocking step.

    Attributes:
        BLOCKED: The current state is not ready; nothing transitioned.
        COMPLETED: The current state finished and the workflow advanced.
    """

    BLOCKED = auto()
    COMPLETED = auto()


class WorkflowStatus(StrEnum):
    """Overall status of a workflow execution.

    Attributes:
        PENDING: The execution has not been started.
        RUNNING: States are still being executed.
        SUCCESS: The execution ended without an unhandled error.
        FAILURE: The execution ended on an unhandled error or a Fail state.
    """

    PENDING = auto()
    RUNNING = auto()
    SUCCESS = auto()
    FAILURE = auto()


ERROR_ALL = "States.ALL"
ERROR_TIMEOUT = "States.Timeout"
ERROR_HEARTBEAT_TIMEOUT = "States.HeartbeatTimeout"
ERROR_TASK_FAILED = "States.TaskFailed"
ERROR_NO_CHOICE_MATCHED = "States.NoChoiceMatched"
ERROR_RUNTIME = "States.Runtime"
ERROR_INTRINSIC_FAILURE = "States.IntrinsicFailure"
ERROR_EXCEED_TOLERATED_FAILURE_THRESHOLD = "States.ExceedToleratedFailureThreshold"

JSON: TypeAlias = Any
"""Type alias for schema-free application data (Input, Output, results)."""
