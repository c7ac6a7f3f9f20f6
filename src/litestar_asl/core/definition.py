"""Workflow definition.

This module provides :class:`WorkflowDefinition`, the parsed and validated form
of a workflow document, and the step function that drives a
:class:`~litestar_asl.core.context.Context` through it.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from litestar_asl.core.context import StateInfo, utcnow
from litestar_asl.core.types import StateType, StepResult
from litestar_asl.exceptions import InvalidWorkflowError, WorkflowAlreadyCompletedError
from litestar_asl.runners.base import RunnerRegistry

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.runners.base import Runner
    from litestar_asl.states.base import State

__all__ = ["WorkflowDefinition"]

logger = logging.getLogger(__name__)

DEFAULT_NAME = "State Machine"


class WorkflowDefinition:
    """A parsed workflow document.

    The definition is immutable and holds no execution data; the same
    definition can drive any number of contexts.

    Attributes:
        name: Name of the workflow.
        payload: The workflow document.
        start_at: Name of the first state.
        comment: The document ``Comment``.
        states: States keyed by their short name.
        runners: Registry used to resolve Task resources.

    Example:
        >>> definition = WorkflowDefinition(
        ...     {"StartAt": "S", "States": {"S": {"Type": "Pass", "Result": {"x": 1}, "End": True}}}
        ... )
        >>> list(definition.states)
        ['S']
    """

    def __init__(
        self,
        payload: dict[str, Any] | str | bytes,
        name: str | None = None,
        runners: RunnerRegistry | None = None,
        prefix: list[str] | None = None,
    ) -> None:
        """Parse and validate a workflow document.

        Args:
            payload: The document, as JSON text or an already-parsed object.
            name: Name of the workflow. Defaults to ``State Machine``.
            runners: Registry used to resolve Task resources. Defaults to a
                registry serving ``local://``.
            prefix: Path-qualified name of the enclosing state for nested
                definitions, e.g. ``["States", "Iterate", "ItemProcessor"]``.

        Raises:
            InvalidWorkflowError: If the document is malformed.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                msg = f"Invalid workflow JSON: {e}"
                raise InvalidWorkflowError(msg) from e
        if not isinstance(payload, dict):
            msg = "Workflow document must be a JSON object"
            raise InvalidWorkflowError(msg)

        self.payload = payload
        self.name = name or DEFAULT_NAME
        self.prefix = list(prefix or [])
        self.runners = runners if runners is not None else RunnerRegistry.default()
        self.comment: str | None = payload.get("Comment")
        self.start_at: str | None = payload.get("StartAt")

        owner = self.prefix or self.name
        states = payload.get("States")
        if not states:
            raise InvalidWorkflowError.missing_field(owner, "States")
        if not isinstance(states, dict):
            raise InvalidWorkflowError.invalid_field(owner, "States", states, "must be an object")
        if self.start_at is None:
            raise InvalidWorkflowError.missing_field(owner, "StartAt")

        from litestar_asl.states import build_state

        self.states: dict[str, State] = {
            state_name: build_state(self, [*self.prefix, "States", state_name], state_payload)
            for state_name, state_payload in states.items()
        }
        self._validate(owner)

    def _validate(self, owner: list[str] | str) -> None:
        if self.start_at not in self.states:
            raise InvalidWorkflowError.invalid_field(owner, "StartAt", self.start_at, 'is not found in "States"')

        for state in self.states.values():
            for label, target in state.transitions():
                if target not in self.states:
                    field_name = label.split(" ", 1)[0]
                    raise InvalidWorkflowError.invalid_field(state.name, field_name, target, 'is not found in "States"')

    def current_state(self, context: Context) -> State:
        return self.states[context.state_name]

    def start_workflow(self, context: Context) -> None:
        """Seed the context with the first state. Does nothing once started."""
        if context.state_name is not None:
            return

        context.state = StateInfo(name=self.start_at, guid=str(uuid4()), input=copy.deepcopy(context.execution.input))
        context.execution.start_time = utcnow()
        logger.info("Starting workflow [%s] execution [%s]", self.name, context.execution.id)

    def step_nonblock(self, context: Context) -> StepResult:
        """Drive the current state through one non-blocking step.

        Returns:
            ``BLOCKED`` if the state is not ready, ``COMPLETED`` once it finished
            and the context moved to the next state (or ended).

        Raises:
            WorkflowAlreadyCompletedError: If the workflow has already ended.
        """
        if context.ended:
            raise WorkflowAlreadyCompletedError(context.execution.id, context.status)
        self.start_workflow(context)

        result = self.current_state(context).run_nonblock(context)
        if result is StepResult.BLOCKED:
            return result

        context.state_history.append(context.state.to_dict())
        if context.next_state is not None:
            self._transition(context)
        else:
            self._end_workflow(context)
        return result

    def run_nonblock(self, context: Context) -> None:
        """Step the workflow until it blocks or ends."""
        self.start_workflow(context)
        while not context.ended and self.step_nonblock_ready(context):
            self.step_nonblock(context)

    def step_nonblock_ready(self, context: Context) -> bool:
        """Whether :meth:`step_nonblock` would make progress."""
        if context.ended:
            return False
        if not context.started:
            return True
        return self.current_state(context).ready(context)

    def wait_until(self, context: Context) -> datetime | None:
        """The instant the current state is waiting for, if any."""
        if context.ended or not context.started:
            return None
        return self.current_state(context).wait_until(context)

    def waiting(self, context: Context) -> bool:
        if context.ended or not context.started:
            return False
        return self.current_state(context).waiting(context)

    def runner_contexts(self, context: Context) -> Iterator[tuple[Runner, dict[str, Any]]]:
        """Yield ``(runner, runner_context)`` for every task in flight."""
        if context.started and not context.ended:
            yield from self.current_state(context).runner_contexts(context)

    def _transition(self, context: Context) -> None:
        previous = context.state
        state = StateInfo(name=previous.next_state, guid=str(uuid4()))

        if previous.next_state == previous.name and previous.error is not None and previous.retrier is not None:
            state.retry_count = previous.retry_count
            state.retrier = previous.retrier
            state.input = previous.input
            state.wait_until = previous.wait_until
        else:
            state.input = previous.output
        context.state = state

    def _end_workflow(self, context: Context) -> None:
        context.execution.end_time = context.state.finished_time or utcnow()
        logger.info(
            "Workflow [%s] execution [%s] ended with status [%s]",
            self.name,
            context.execution.id,
            context.status,
        )

    def to_mermaid(self) -> str:
        """Generate a MermaidJS graph representation of the workflow.

        Returns:
            MermaidJS graph definition as a string.

        Example:
            >>> print(definition.to_mermaid())
            graph TD
                Start["START: Start"]
                Check{"Check"}
                Done(["END: Done"])
                Start --> Check
                Check -->|"Choices[0]"| Done
        """
        lines = ["graph TD"]

        for state_name, state in self.states.items():
            prefix = ""
            if state_name == self.start_at:
                prefix = "START: "
            elif state.end:
                prefix = "END: "

            label = f"{prefix}{state_name}".replace('"', "'")
            shape_start, shape_end = '["', '"]'
            if state.state_type == StateType.CHOICE:
                shape_start, shape_end = '{"', '"}'
            elif state.state_type == StateType.WAIT:
                shape_start, shape_end = '[["', '"]]'
            elif state.state_type == StateType.MAP:
                shape_start, shape_end = '[/"', '"/]'
            elif state.end:
                shape_start, shape_end = '(["', '"])'

            lines.append(f"    {_node_id(state_name)}{shape_start}{label}{shape_end}")

        for state_name, state in self.states.items():
            for label, target in state.transitions():
                source, dest = _node_id(state_name), _node_id(target)
                if label == "Next":
                    lines.append(f"    {source} --> {dest}")
                elif label.startswith("Catch"):
                    lines.append(f"    {source} -.->|\"{label}\"| {dest}")
                else:
                    lines.append(f"    {source} -->|\"{label}\"| {dest}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"WorkflowDefinition({self.name!r})"


def _node_id(state_name: str) -> str:
    return re.sub(r"\W", "_", state_name)
