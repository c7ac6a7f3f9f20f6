"""Data Transfer Objects for the litestar-asl web API.

This module defines DTOs for serializing and deserializing workflow data
in REST API requests and responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

__all__ = [
    "DefinitionDTO",
    "ExecutionDTO",
    "ExecutionDetailDTO",
    "GraphDTO",
    "StartExecutionDTO",
    "TransitionDTO",
]


@dataclass
class StartExecutionDTO:
    """DTO for starting a new execution.

    Attributes:
        definition_name: Name of the registered workflow to execute.
        input: The workflow input.
        credentials: Secrets for Task ``Credentials`` templates.
    """

    definition_name: str
    input: Any = None
    credentials: dict[str, Any] | None = None


@dataclass
class TransitionDTO:
    """One edge of a workflow graph."""

    source: str
    target: str
    label: str


@dataclass
class DefinitionDTO:
    """DTO for workflow definition metadata.

    Attributes:
        name: Workflow name.
        comment: The document ``Comment``.
        start_at: Name of the first state.
        states: State names mapped to their ``Type``.
        transitions: Every edge of the state graph.
        end_states: Names of the terminal states.
    """

    name: str
    comment: str | None
    start_at: str
    states: dict[str, str]
    transitions: list[TransitionDTO]
    end_states: list[str]


@dataclass
class GraphDTO:
    """DTO for a workflow graph rendering.

    Attributes:
        name: Workflow name.
        mermaid_source: MermaidJS graph definition.
    """

    name: str
    mermaid_source: str


@dataclass
class ExecutionDTO:
    """DTO for execution summary.

    Attributes:
        id: Execution ID.
        definition_name: Name of the workflow being executed.
        status: Current execution status.
        current_state: Current (or, once ended, last) state.
        started_at: When the execution started.
        ended_at: When the execution ended, if it has.
        error: Error code if the execution failed.
        cause: Error description if the execution failed.
    """

    id: str
    definition_name: str
    status: str
    current_state: str | None
    started_at: datetime | None
    ended_at: datetime | None = None
    error: str | None = None
    cause: str | None = None


@dataclass
class ExecutionDetailDTO(ExecutionDTO):
    """DTO for detailed execution information.

    Extends ExecutionDTO with the input, output and state history.
    """

    input: Any = None
    output: Any = None
    state_history: list[dict[str, Any]] = field(default_factory=list)
