"""Pass, Succeed and Fail states."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from litestar_asl.core.intrinsic import IntrinsicFunction
from litestar_asl.core.path import Path
from litestar_asl.core.types import StateType
from litestar_asl.states.base import State
from litestar_asl.states.mixins import InputOutputMixin, NonTerminalMixin

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.definition import WorkflowDefinition

__all__ = ["Fail", "Pass", "Succeed"]

FAIL_ERROR = "States.Fail"


class Pass(NonTerminalMixin, InputOutputMixin, State):
    """Passes its input to its output, optionally injecting a fixed ``Result``.

    Example:
        ``{"Type": "Pass", "Result": {"x": 1}, "ResultPath": "$.data", "Next": "Work"}``
    """

    state_type = StateType.PASS

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.init_next()
        self.init_input_output()
        self.result = payload.get("Result")

    def finish(self, context: Context) -> None:
        effective = self.apply_input_path(context, context.input)
        if "Result" in self.payload:
            result = copy.deepcopy(self.result)
        elif self.parameters is not None:
            result = self.parameters.value(context, effective)
        else:
            result = effective

        output = effective if self.result_path is None else self.result_path.set(effective, result)
        context.output = self.apply_output_path(context, output)
        context.next_state = self.next_state_name(context)


class Succeed(InputOutputMixin, State):
    """Ends the workflow successfully."""

    state_type = StateType.SUCCEED
    end = True

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.init_input_output(parameters=False, result=False)

    def finish(self, context: Context) -> None:
        context.output = self.apply_output_path(context, self.apply_input_path(context, context.input))
        context.next_state = None


class Fail(State):
    """Ends the workflow with an error.

    ``Error`` and ``Cause`` are literals; ``ErrorPath`` and ``CausePath`` are
    paths or intrinsic functions evaluated against the state input. A Fail state
    without an error name reports ``States.Fail``.
    """

    state_type = StateType.FAIL
    end = True

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.error, self.error_path = self._literal_or_path("Error")
        self.cause, self.cause_path = self._literal_or_path("Cause")

    def _literal_or_path(self, field_name: str) -> tuple[str | None, Path | IntrinsicFunction | None]:
        path_field = f"{field_name}Path"
        literal = self.payload.get(field_name)
        dynamic = self.payload.get(path_field)

        if literal is not None and dynamic is not None:
            raise self.invalid_field_error(path_field, dynamic, f'cannot be combined with "{field_name}"')
        if literal is not None and not isinstance(literal, str):
            raise self.invalid_field_error(field_name, literal, "must be a string")
        if dynamic is None:
            return literal, None
        if Path.is_path(dynamic):
            return None, Path(dynamic)
        if IntrinsicFunction.is_intrinsic_function(dynamic):
            return None, IntrinsicFunction(dynamic)
        raise self.invalid_field_error(path_field, dynamic, "must be a Path or an intrinsic function")

    def finish(self, context: Context) -> None:
        error = self.error if self.error_path is None else self.error_path.value(context, context.input)
        cause = self.cause if self.cause_path is None else self.cause_path.value(context, context.input)

        error = FAIL_ERROR if error is None else str(error)
        context.output = {"Error": error} if cause is None else {"Error": error, "Cause": str(cause)}
        context.state.error = error
        context.state.cause = None if cause is None else str(cause)
        context.next_state = None
