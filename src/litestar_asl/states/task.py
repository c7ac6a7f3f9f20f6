"""Task state."""

from __future__ import annotations

import json
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from litestar_asl.core.context import utcnow
from litestar_asl.core.types import ERROR_TASK_FAILED, ERROR_TIMEOUT, StateType
from litestar_asl.states.base import State
from litestar_asl.states.mixins import InputOutputMixin, NonTerminalMixin, RetryCatchMixin

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.definition import WorkflowDefinition
    from litestar_asl.core.payload_template import PayloadTemplate
    from litestar_asl.runners.base import Runner

__all__ = ["Task"]

_TIMED_OUT = "timed_out"


class Task(NonTerminalMixin, InputOutputMixin, RetryCatchMixin, State):
    """Runs the work behind ``Resource`` through the runner serving its scheme.

    The runner is started when the state starts and polled until it reports
    completion. Failures are routed through ``Retry`` and ``Catch``; the runner
    context is cleaned up whatever the outcome.
    """

    state_type = StateType.TASK

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.init_next()
        self.init_input_output()
        self.init_retry_catch()

        self.resource = payload.get("Resource")
        if self.resource is None:
            raise self.missing_field_error("Resource")
        if not isinstance(self.resource, str):
            raise self.invalid_field_error("Resource", self.resource, "must be a string")
        self.runner: Runner = workflow.runners.for_resource(self.resource)

        self.credentials: PayloadTemplate | None = self.parse_template("Credentials")
        self.timeout_seconds = self._positive_int("TimeoutSeconds")
        self.heartbeat_seconds = self._positive_int("HeartbeatSeconds")
        if self.timeout_seconds and self.heartbeat_seconds and self.heartbeat_seconds >= self.timeout_seconds:
            raise self.invalid_field_error("HeartbeatSeconds", self.heartbeat_seconds, 'must be less than "TimeoutSeconds"')

    def _positive_int(self, field_name: str) -> int | None:
        value = self.payload.get(field_name)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
            raise self.invalid_field_error(field_name, value, "must be a positive integer")
        return value

    def transitions(self) -> list[tuple[str, str]]:
        return super().transitions() + self.catch_transitions()

    def start(self, context: Context) -> None:
        super().start(context)
        env = self.process_input(context)
        secrets = self.credentials.value(context, context.credentials) if self.credentials is not None else None
        context.state.runner_context = self.runner.run_async(self.resource, env, secrets, context.to_dict())

    def running(self, context: Context) -> bool:
        runner_context = context.state.runner_context
        if runner_context is None or runner_context.get(_TIMED_OUT):
            return False
        self.runner.status(runner_context)
        if not self.runner.running(runner_context):
            return False
        if self._timed_out(context):
            runner_context[_TIMED_OUT] = True
            return False
        return True

    def finish(self, context: Context) -> None:
        runner_context = context.state.runner_context
        try:
            if runner_context.get(_TIMED_OUT):
                error = {"Error": ERROR_TIMEOUT, "Cause": f"Task did not finish within {self.timeout_seconds} seconds"}
                self.handle_error(context, error)
            elif self.runner.success(runner_context):
                context.output = self.process_output(context, parse_output(self.runner.output(runner_context)))
                context.next_state = self.next_state_name(context)
            else:
                self.handle_error(context, parse_error(self.runner.output(runner_context)))
        finally:
            self.runner.cleanup(runner_context)

    def wait_until(self, context: Context) -> datetime | None:
        """The retry delay before the state starts, then the ``TimeoutSeconds`` deadline."""
        if not context.state_started:
            return context.state.wait_until
        return self._deadline(context)

    def waiting(self, context: Context) -> bool:
        return not context.state_started and super().waiting(context)

    def runner_contexts(self, context: Context) -> Iterator[tuple[Runner, dict[str, Any]]]:
        if context.state.runner_context is not None and not context.state_finished:
            yield self.runner, context.state.runner_context

    def _deadline(self, context: Context) -> datetime | None:
        entered = context.state.entered_time
        if self.timeout_seconds is None or entered is None:
            return None
        return entered + timedelta(seconds=self.timeout_seconds)

    def _timed_out(self, context: Context) -> bool:
        deadline = self._deadline(context)
        return deadline is not None and utcnow() >= deadline


def parse_output(output: Any) -> Any:
    """Interpret runner output as JSON, falling back to its last line, then raw text."""
    if not isinstance(output, (str, bytes)):
        return output
    text = output.decode() if isinstance(output, bytes) else output
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    lines = [line for line in text.splitlines() if line.strip()]
    if lines:
        try:
            return json.loads(lines[-1])
        except json.JSONDecodeError:
            pass
    return text


def parse_error(output: Any) -> dict[str, Any]:
    """Build the ``{"Error", "Cause"}`` object for failed runner output."""
    parsed = parse_output(output)
    if isinstance(parsed, dict) and isinstance(parsed.get("Error"), str):
        return {key: parsed[key] for key in ("Error", "Cause") if parsed.get(key) is not None}
    if parsed is None or parsed == "":
        return {"Error": ERROR_TASK_FAILED}
    if isinstance(parsed, str):
        return {"Error": parsed.strip()}
    return {"Error": ERROR_TASK_FAILED, "Cause": json.dumps(parsed)}
