"""Workflow execution.

A :class:`Workflow` pairs a :class:`~litestar_asl.core.definition.WorkflowDefinition`
with the :class:`~litestar_asl.core.context.Context` of one execution.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path as FilePath
from typing import TYPE_CHECKING, Any

from litestar_asl.core.context import Context
from litestar_asl.core.definition import WorkflowDefinition
from litestar_asl.core.types import StepResult, WorkflowStatus
from litestar_asl.engine import scheduler
from litestar_asl.exceptions import InvalidWorkflowError

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_asl.runners.base import Runner, RunnerEvent, RunnerRegistry

__all__ = ["Workflow"]

logger = logging.getLogger(__name__)


class Workflow:
    """One execution of a workflow document.

    Stepping never blocks: :meth:`step_nonblock` returns ``BLOCKED`` when the
    current state is waiting on a timer or a task. Use :meth:`run` or
    :meth:`wait` to block until progress is possible.

    Example:
        >>> workflow = Workflow(
        ...     {"StartAt": "S", "States": {"S": {"Type": "Pass", "Result": {"x": 1}, "End": True}}},
        ...     input={},
        ... )
        >>> workflow.run().output
        {'x': 1}
        >>> workflow.status
        <WorkflowStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        payload: WorkflowDefinition | dict[str, Any] | str,
        input: Any = None,  # noqa: A002
        credentials: dict[str, Any] | str | None = None,
        runners: RunnerRegistry | None = None,
        name: str | None = None,
        execution_id: str | None = None,
        context: Context | None = None,
    ) -> None:
        """Build the definition and a fresh context.

        Args:
            payload: A workflow document (JSON text or object) or a parsed definition.
            input: The workflow input, as a value or JSON text.
            credentials: Secrets for Task ``Credentials`` templates.
            runners: Registry used to resolve Task resources.
            name: Name of the workflow.
            execution_id: Identifier for the execution. Generated when omitted.
            context: An existing context to resume instead of creating one.

        Raises:
            InvalidWorkflowError: If the document, input or credentials are malformed.
        """
        if isinstance(payload, WorkflowDefinition):
            self.definition = payload
        else:
            self.definition = WorkflowDefinition(payload, name=name, runners=runners)

        self.context = context or Context.create(
            _parse_json(input, "input"),
            execution_id=execution_id,
            credentials=_parse_json(credentials, "credentials"),
            state_machine={"Name": self.definition.name},
        )
        self.context.state_machine.setdefault("Id", self.context.execution.id)

    @classmethod
    def load(
        cls,
        path: str | FilePath,
        input: Any = None,  # noqa: A002
        credentials: dict[str, Any] | str | None = None,
        runners: RunnerRegistry | None = None,
    ) -> Workflow:
        """Create a workflow from a document on disk. The file stem names the workflow."""
        path = FilePath(path)
        return cls(path.read_text(), input, credentials, runners=runners, name=path.stem)

    @staticmethod
    def wait(
        workflows: Iterable[Workflow],
        timeout: float | None = None,
        on_ready: Callable[[Workflow], object] | None = None,
        **kwargs: Any,
    ) -> list[Workflow]:
        """Wait until any of ``workflows`` can step. See :func:`litestar_asl.engine.scheduler.wait`."""
        return scheduler.wait(workflows, timeout=timeout, on_ready=on_ready, **kwargs)

    @property
    def id(self) -> str:
        return self.context.execution.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def status(self) -> WorkflowStatus:
        return self.context.status

    @property
    def output(self) -> Any:
        """The workflow output once ended, otherwise None."""
        return self.context.output if self.context.ended else None

    @property
    def ended(self) -> bool:
        return self.context.ended

    def end(self) -> bool:
        return self.context.ended

    def start(self) -> Workflow:
        """Seed the first state. Does nothing if already started."""
        self.definition.start_workflow(self.context)
        return self

    def step_nonblock(self) -> StepResult:
        """Drive the current state through one non-blocking step.

        Raises:
            WorkflowAlreadyCompletedError: If the workflow has already ended.
        """
        return self.definition.step_nonblock(self.context)

    def run_nonblock(self) -> Workflow:
        """Step until the workflow blocks or ends."""
        self.definition.run_nonblock(self.context)
        return self

    def step_nonblock_ready(self) -> bool:
        return self.definition.step_nonblock_ready(self.context)

    def step_nonblock_wait(self, timeout: float | None = None) -> StepResult:
        """Wait up to ``timeout`` seconds for the workflow to be ready, then step once."""
        if not scheduler.wait([self], timeout=timeout):
            return StepResult.BLOCKED
        return self.step_nonblock()

    def run(self, timeout: float | None = None) -> Workflow:
        """Run until the workflow ends, blocking between steps.

        Args:
            timeout: Give up after this many seconds, leaving the workflow running.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        self.start()
        while True:
            self.run_nonblock()
            if self.ended:
                return self
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return self
            scheduler.wait([self], timeout=remaining)

    def wait_until(self) -> datetime | None:
        return self.definition.wait_until(self.context)

    def waiting(self) -> bool:
        return self.definition.waiting(self.context)

    def apply_event(self, runner: Runner, event: RunnerEvent) -> bool:
        """Merge a runner event into the matching runner context.

        Returns:
            True if one of this workflow's tasks produced the event.
        """
        key = runner.identify(event.runner_context)
        for owner, runner_context in self.definition.runner_contexts(self.context):
            if owner is runner and runner.identify(runner_context) == key:
                runner_context.update(event.runner_context)
                return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return self.context.to_dict()

    def __repr__(self) -> str:
        return f"Workflow({self.name!r}, id={self.id!r}, status={self.status.value!r})"


def _parse_json(value: Any, what: str) -> Any:
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        msg = f"Invalid {what} JSON: {e}"
        raise InvalidWorkflowError(msg) from e
