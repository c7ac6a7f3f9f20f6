"""Behaviour shared between state types.

The mixins expect to be combined with :class:`~litestar_asl.states.base.State`
and read their configuration from ``self.payload``.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from litestar_asl.core.intrinsic import json_type_name
from litestar_asl.core.payload_template import PayloadTemplate
from litestar_asl.core.retry import Catcher, Retrier, build_rules, find_match
from litestar_asl.exceptions import PathError

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.path import Path, ReferencePath

__all__ = ["InputOutputMixin", "NonTerminalMixin", "RetryCatchMixin"]

logger = logging.getLogger(__name__)

_CREDENTIALS_PATH = "$.Credentials"


class NonTerminalMixin:
    """``Next``/``End`` handling for states that may transition."""

    name: list[str]
    payload: dict[str, Any]
    next: str | None

    def init_next(self) -> None:
        self.next = self.payload.get("Next")
        self.end = bool(self.payload.get("End", False))

        if self.end and self.next is not None:
            raise self.invalid_field_error("Next", self.next, 'cannot be combined with "End"')
        if not self.end and self.next is None:
            raise self.missing_field_error("Next")
        if self.next is not None and not isinstance(self.next, str):
            raise self.invalid_field_error("Next", self.next, "must be a string")

    def transitions(self) -> list[tuple[str, str]]:
        return [("Next", self.next)] if self.next is not None else []

    def next_state_name(self, context: Context) -> str | None:
        return None if self.end or context.failed else self.next


class InputOutputMixin:
    """The ``InputPath`` → ``Parameters`` → result → ``ResultSelector`` →
    ``ResultPath`` → ``OutputPath`` pipeline.

    A path field set to ``null`` follows the usual ASL meaning: ``InputPath`` and
    ``OutputPath`` yield ``{}`` and ``ResultPath`` discards the result.
    """

    name: list[str]
    payload: dict[str, Any]
    input_path: Path | None
    output_path: Path | None
    result_path: ReferencePath | None = None
    parameters: PayloadTemplate | None = None
    result_selector: PayloadTemplate | None = None

    def init_input_output(self, parameters: bool = True, result: bool = True) -> None:
        self.input_path = self.parse_path("InputPath")
        self.output_path = self.parse_path("OutputPath")
        if parameters:
            self.parameters = self.parse_template("Parameters")
        if result:
            self.result_path = self.parse_path("ResultPath", reference=True)
            self.result_selector = self.parse_template("ResultSelector")

    def parse_template(self, field_name: str) -> PayloadTemplate | None:
        if self.payload.get(field_name) is None:
            return None
        return PayloadTemplate(self.payload[field_name], [*self.name, field_name])

    def apply_input_path(self, context: Context, input: Any) -> Any:  # noqa: A002
        return {} if self.input_path is None else self.input_path.value(context, input)

    def apply_output_path(self, context: Context, output: Any) -> Any:
        return {} if self.output_path is None else self.output_path.value(context, output)

    def process_input(self, context: Context) -> Any:
        """Apply ``InputPath`` and ``Parameters`` to the raw state input."""
        value = self.apply_input_path(context, context.input)
        if self.parameters is not None:
            value = self.parameters.value(context, value)
        return value

    def process_output(self, context: Context, results: Any) -> Any:
        """Merge a result into the raw state input and apply ``OutputPath``.

        A ``ResultPath`` under ``$.Credentials`` stores the result in the
        workflow credentials instead of the output.
        """
        if self.result_selector is not None and results is not None:
            results = self.result_selector.value(context, results)

        raw_input = copy.deepcopy(context.input)
        if self.result_path is None:
            output = raw_input
        elif self.result_path.payload.startswith(_CREDENTIALS_PATH):
            credentials = self.result_path.set({"Credentials": context.credentials}, results)["Credentials"]
            if not isinstance(credentials, dict):
                msg = f'ResultPath "{self.result_path.payload}" needs an object result, got {json_type_name(credentials)}'
                raise PathError(msg)
            context.credentials.update(credentials)
            output = raw_input
        else:
            output = self.result_path.set(raw_input, results)

        return self.apply_output_path(context, output)


class RetryCatchMixin:
    """``Retry`` and ``Catch`` handling for states that can fail."""

    name: list[str]
    payload: dict[str, Any]
    retry: list[Retrier]
    catch: list[Catcher]

    def init_retry_catch(self) -> None:
        self.retry = build_rules(Retrier, self.name, "Retry", self.payload.get("Retry"))
        self.catch = build_rules(Catcher, self.name, "Catch", self.payload.get("Catch"))

    def catch_transitions(self) -> list[tuple[str, str]]:
        return [(f"Catch {' '.join(catcher.error_equals)}", catcher.next) for catcher in self.catch]

    def handle_error(self, context: Context, error: dict[str, Any]) -> None:
        """Route a failure through Retry, then Catch, then fail the workflow."""
        if self.retry_state(context, error) or self.catch_error(context, error):
            return
        self.fail_workflow(context, error)

    def retry_state(self, context: Context, error: dict[str, Any]) -> bool:
        retrier = find_match(self.retry, error.get("Error"))
        if retrier is None:
            return False

        state = context.state
        if state.retry_count is None or state.retrier != retrier.error_equals:
            state.retry_count = 0
            state.retrier = retrier.error_equals
        state.retry_count += 1

        if state.retry_count > retrier.max_attempts:
            return False

        delay = retrier.sleep_duration(state.retry_count)
        self.wait(context, seconds=delay)
        context.next_state = context.state_name
        context.output = error
        state.error = error.get("Error")
        state.cause = error.get("Cause")
        logger.info(
            "Running state: [%s] with input [%s] got error [%s]...Retry %d - delay: %ss",
            self.long_name,
            context.input,
            error,
            state.retry_count,
            delay,
        )
        return True

    def catch_error(self, context: Context, error: dict[str, Any]) -> bool:
        catcher = find_match(self.catch, error.get("Error"))
        if catcher is None:
            return False

        context.next_state = catcher.next
        context.output = catcher.apply(copy.deepcopy(context.input), error)
        logger.info(
            "Running state: [%s] with input [%s]...CatchError - next state: [%s] output: [%s]",
            self.long_name,
            context.input,
            context.next_state,
            context.output,
        )
        return True

    def fail_workflow(self, context: Context, error: dict[str, Any]) -> None:
        context.next_state = None
        context.output = {key: error[key] for key in ("Error", "Cause") if error.get(key) is not None}
        context.state.error = error.get("Error")
        context.state.cause = error.get("Cause")
