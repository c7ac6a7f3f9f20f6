"""Tests for the litestar-asl exception hierarchy."""

from __future__ import annotations

import pytest

from litestar_asl.exceptions import (
    ASLError,
    ExecutionError,
    ExecutionNotFoundError,
    IntrinsicFunctionArgumentError,
    IntrinsicFunctionSyntaxError,
    InvalidWorkflowError,
    NoChoiceMatchedError,
    PathError,
    TaskFailedError,
    WorkflowAlreadyCompletedError,
    WorkflowNotFoundError,
    field_error_text,
)


@pytest.mark.unit
class TestHierarchy:
    """Tests for exception inheritance."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            InvalidWorkflowError,
            IntrinsicFunctionSyntaxError,
            ExecutionError,
            PathError,
            NoChoiceMatchedError,
            IntrinsicFunctionArgumentError,
            TaskFailedError,
            WorkflowNotFoundError,
            ExecutionNotFoundError,
            WorkflowAlreadyCompletedError,
        ],
    )
    def test_all_inherit_from_base(self, exc_class: type[Exception]) -> None:
        """Every exception can be caught as ASLError."""
        assert issubclass(exc_class, ASLError)

    def test_runtime_errors(self) -> None:
        """Runtime failures share ExecutionError."""
        assert issubclass(PathError, ExecutionError)
        assert issubclass(NoChoiceMatchedError, ExecutionError)
        assert issubclass(IntrinsicFunctionArgumentError, ExecutionError)
        assert not issubclass(InvalidWorkflowError, ExecutionError)

    def test_syntax_error_is_definition_error(self) -> None:
        """Intrinsic syntax errors are definition errors."""
        assert issubclass(IntrinsicFunctionSyntaxError, InvalidWorkflowError)


@pytest.mark.unit
class TestMessages:
    """Tests for error codes and messages."""

    def test_execution_error_default_code(self) -> None:
        """ExecutionError defaults to States.Runtime."""
        assert ExecutionError("boom").error_code == "States.Runtime"
        assert PathError("missing").error_code == "States.Runtime"

    def test_no_choice_matched_code(self) -> None:
        """NoChoiceMatchedError reports States.NoChoiceMatched."""
        assert NoChoiceMatchedError("no match").error_code == "States.NoChoiceMatched"

    def test_missing_field(self) -> None:
        """Missing-field errors name the state path and field."""
        error = InvalidWorkflowError.missing_field(["States", "Work"], "Resource")
        assert str(error) == 'States.Work does not have required field "Resource"'

    def test_invalid_field(self) -> None:
        """Invalid-field errors summarise container values."""
        error = InvalidWorkflowError.invalid_field(["States", "Work"], "Retry", {"a": 1}, "must be an array")
        assert str(error) == 'States.Work field "Retry" value "Object" must be an array'
        assert field_error_text("Machine", "States", [1]) == 'Machine field "States" value "Array"'

    def test_intrinsic_argument_error(self) -> None:
        """Argument errors carry the function and position."""
        error = IntrinsicFunctionArgumentError("States.ArrayLength", 1, "string", "array")
        assert error.error_code == "States.IntrinsicFailure"
        assert str(error) == "wrong type for argument 1 to States.ArrayLength (given string, expected array)"
        arity = IntrinsicFunctionArgumentError("States.UUID", None, 1, 0)
        assert str(arity) == "wrong number of arguments to States.UUID (given 1, expected 0)"

    def test_task_failed_error(self) -> None:
        """TaskFailedError keeps its ASL error and cause."""
        error = TaskFailedError("Order.Rejected", "out of stock")
        assert (error.error, error.cause) == ("Order.Rejected", "out of stock")
        assert str(error) == "Order.Rejected: out of stock"
        assert TaskFailedError().error == "States.TaskFailed"

    def test_lookup_errors(self) -> None:
        """Lookup errors keep the missing name or id."""
        assert WorkflowNotFoundError("order").name == "order"
        assert "order" in str(WorkflowNotFoundError("order"))
        assert ExecutionNotFoundError("e-1").execution_id == "e-1"
        completed = WorkflowAlreadyCompletedError("e-1", "success")
        assert str(completed) == "Workflow 'e-1' is already success"
