"""Base state implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from litestar_asl.core.context import utcnow
from litestar_asl.core.path import Path, ReferencePath
from litestar_asl.core.types import StateType, StepResult
from litestar_asl.exceptions import ExecutionError, InvalidWorkflowError

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.definition import WorkflowDefinition
    from litestar_asl.runners.base import Runner

__all__ = ["State"]

logger = logging.getLogger(__name__)


class State:
    """Base class for all ASL states.

    A state is built once from its document and is immutable afterwards; every
    piece of execution data lives in the :class:`~litestar_asl.core.context.Context`
    passed to its methods.
    """

    state_type: ClassVar[StateType]
    """The ``Type`` value this class implements."""

    end: bool = False
    """Whether the workflow ends after this state."""

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        """Initialize the state.

        Args:
            workflow: The definition the state belongs to.
            name: Path-qualified name, e.g. ``["States", "Work"]``.
            payload: The state document.
        """
        self.workflow = workflow
        self.name = name
        self.payload = payload
        self.comment: str | None = payload.get("Comment")

    @property
    def short_name(self) -> str:
        return self.name[-1]

    @property
    def long_name(self) -> str:
        return ".".join(self.name)

    def transitions(self) -> list[tuple[str, str]]:
        """Return ``(label, target)`` pairs for every state this one can move to."""
        return []

    def run_nonblock(self, context: Context) -> StepResult:
        """Advance the state as far as possible without blocking.

        Returns:
            ``BLOCKED`` when the state is not ready, otherwise ``COMPLETED`` once
            the finish hook has recorded the output and next state.
        """
        try:
            if not context.state_started:
                # A retried state does not re-enter until its backoff elapses.
                if self.waiting(context):
                    return StepResult.BLOCKED
                self.start(context)
            if self.running(context):
                return StepResult.BLOCKED
            self.finish(context)
        except ExecutionError as e:
            self.fail_state(context, e)

        self.mark_finished(context)
        return StepResult.COMPLETED

    def start(self, context: Context) -> None:
        """Record entry into the state. Subclasses add their start-up work."""
        context.state.entered_time = utcnow()
        logger.info("Running state: [%s] with input [%s]...", self.long_name, context.input)

    def finish(self, context: Context) -> None:
        """Compute the output and next state. Subclasses must implement this."""
        raise NotImplementedError

    def mark_finished(self, context: Context) -> None:
        state = context.state
        state.finished_time = utcnow()
        if state.entered_time is None:
            state.entered_time = state.finished_time
        state.duration = (state.finished_time - state.entered_time).total_seconds()

        level = logging.ERROR if context.failed and context.next_state is None else logging.INFO
        logger.log(
            level,
            "Running state: [%s] with input [%s]...Complete - next state: [%s] output: [%s]",
            self.long_name,
            context.input,
            context.next_state,
            context.output,
        )

    def fail_state(self, context: Context, error: ExecutionError) -> None:
        """End the workflow on a runtime error raised by the state itself."""
        context.state.error = error.error_code
        context.state.cause = str(error)
        context.next_state = None
        context.output = {"Error": error.error_code, "Cause": str(error)}

    def running(self, context: Context) -> bool:
        """Whether the started state still has work in progress."""
        return False

    def ready(self, context: Context) -> bool:
        """Whether :meth:`run_nonblock` would make progress."""
        if not context.state_started:
            return not self.waiting(context)
        return not self.running(context)

    def wait(self, context: Context, seconds: float | None = None, time: datetime | None = None) -> None:
        """Hold the state until ``seconds`` from now, or until ``time``."""
        context.state.wait_until = time if time is not None else utcnow() + timedelta(seconds=seconds or 0)

    def wait_until(self, context: Context) -> datetime | None:
        return context.state.wait_until

    def waiting(self, context: Context) -> bool:
        wait_until = context.state.wait_until
        return wait_until is not None and utcnow() < wait_until

    def runner_contexts(self, context: Context) -> Iterator[tuple[Runner, dict[str, Any]]]:
        """Yield the runner contexts of work in flight for this state."""
        return iter(())

    def missing_field_error(self, field_name: str) -> InvalidWorkflowError:
        return InvalidWorkflowError.missing_field(self.name, field_name)

    def invalid_field_error(self, field_name: str, value: Any = None, comment: str | None = None) -> InvalidWorkflowError:
        return InvalidWorkflowError.invalid_field(self.name, field_name, value, comment)

    def parse_path(self, field_name: str, default: str | None = "$", reference: bool = False) -> Path | None:
        """Parse an optional path field. An explicit ``null`` yields None."""
        value = self.payload.get(field_name, default)
        if value is None:
            return None
        if not Path.is_path(value):
            raise self.invalid_field_error(field_name, value, "must be a Path")
        try:
            return ReferencePath(value) if reference else Path(value)
        except InvalidWorkflowError as e:
            raise self.invalid_field_error(field_name, value, str(e)) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.long_name!r})"
