"""Exception hierarchy for litestar-asl."""

from __future__ import annotations

from typing import Any

__all__ = (
    "ASLError",
    "ExecutionError",
    "ExecutionNotFoundError",
    "IntrinsicFunctionArgumentError",
    "IntrinsicFunctionSyntaxError",
    "InvalidWorkflowError",
    "NoChoiceMatchedError",
    "PathError",
    "TaskFailedError",
    "WorkflowAlreadyCompletedError",
    "WorkflowNotFoundError",
)


class ASLError(Exception):
    """Base exception for all litestar-asl errors.

    All exceptions raised by litestar-asl inherit from this class, so callers can
    catch every engine error with a single except clause.
    """


class InvalidWorkflowError(ASLError):
    """Raised when a workflow document cannot be turned into a definition.

    Definition errors are detected while parsing: malformed payloads, unknown
    state types, unresolvable ``Next``/``StartAt`` references, missing required
    fields, and invalid path or intrinsic function syntax. No part of the
    workflow runs once one of these has been raised.
    """

    @classmethod
    def missing_field(cls, name: list[str] | str, field_name: str) -> InvalidWorkflowError:
        """Build the error for a required field that is absent.

        Args:
            name: Path-qualified name of the offending state (or workflow).
            field_name: The missing field.

        Returns:
            The error instance.
        """
        return cls(f'{_join_name(name)} does not have required field "{field_name}"')

    @classmethod
    def invalid_field(
        cls,
        name: list[str] | str,
        field_name: str,
        field_value: Any = None,
        comment: str | None = None,
    ) -> InvalidWorkflowError:
        """Build the error for a field whose value is unusable.

        Args:
            name: Path-qualified name of the offending state (or workflow).
            field_name: The offending field.
            field_value: The value found, summarised when it is a container.
            comment: Explanation of what is wrong with the value.

        Returns:
            The error instance.
        """
        return cls(field_error_text(name, field_name, field_value, comment))


class IntrinsicFunctionSyntaxError(InvalidWorkflowError):
    """Raised when an intrinsic function expression cannot be parsed.

    Attributes:
        expression: The expression text.
        position: Zero-based character offset of the failure.
    """

    def __init__(self, expression: str, position: int, reason: str) -> None:
        """Initialize the exception with the parse position.

        Args:
            expression: The expression text.
            position: Zero-based character offset of the failure.
            reason: What the parser expected at that position.
        """
        self.expression = expression
        self.position = position
        super().__init__(f"Invalid intrinsic function [{expression}] at position {position}: {reason}")


class ExecutionError(ASLError):
    """Raised when a workflow fails at runtime.

    Runtime errors never escape the engine: they are converted into an
    ``{"Error": ..., "Cause": ...}`` output and the workflow ends in failure.

    Attributes:
        error_code: The ASL error name reported in the ``Error`` field.
    """

    def __init__(self, message: str, error_code: str = "States.Runtime") -> None:
        """Initialize the exception with an ASL error code.

        Args:
            message: Human-readable cause.
            error_code: The ASL error name.
        """
        self.error_code = error_code
        super().__init__(message)


class PathError(ExecutionError):
    """Raised when a path does not reference a value in the data it is applied to."""


class NoChoiceMatchedError(ExecutionError):
    """Raised when no Choice rule matched and the state has no ``Default``."""

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable cause.
        """
        super().__init__(message, "States.NoChoiceMatched")


class IntrinsicFunctionArgumentError(ExecutionError):
    """Raised when an intrinsic function receives unusable arguments.

    Attributes:
        function: Name of the function, e.g. ``States.ArrayPartition``.
        position: 1-based argument position, or None for arity errors.
        given: Description of what was passed.
        expected: Description of what was expected.
    """

    def __init__(
        self,
        function: str,
        position: int | None,
        given: Any,
        expected: Any,
        kind: str = "type",
    ) -> None:
        """Initialize the exception with argument details.

        Args:
            function: Name of the function.
            position: 1-based argument position, or None for arity errors.
            given: Description of what was passed.
            expected: Description of what was expected.
            kind: ``type`` or ``value`` for positional errors.
        """
        self.function = function
        self.position = position
        self.given = given
        self.expected = expected
        if position is None:
            msg = f"wrong number of arguments to {function} (given {given}, expected {expected})"
        else:
            msg = f"wrong {kind} for argument {position} to {function} (given {given}, expected {expected})"
        super().__init__(msg, "States.IntrinsicFailure")


class TaskFailedError(ASLError):
    """Raised by task callables to report a failure with an ASL error name.

    Attributes:
        error: The ASL error name, matched against ``ErrorEquals``.
        cause: Optional human-readable cause.
    """

    def __init__(self, error: str = "States.TaskFailed", cause: str | None = None) -> None:
        """Initialize the exception.

        Args:
            error: The ASL error name.
            cause: Optional human-readable cause.
        """
        self.error = error
        self.cause = cause
        msg = error if cause is None else f"{error}: {cause}"
        super().__init__(msg)


class WorkflowNotFoundError(ASLError):
    """Raised when a workflow definition is not registered.

    Attributes:
        name: The name of the workflow that was not found.
    """

    def __init__(self, name: str) -> None:
        """Initialize the exception with workflow details.

        Args:
            name: The name of the workflow that was not found.
        """
        self.name = name
        super().__init__(f"Workflow '{name}' not found")


class ExecutionNotFoundError(ASLError):
    """Raised when a workflow execution is not known to the engine.

    Attributes:
        execution_id: The ID of the execution that was not found.
    """

    def __init__(self, execution_id: str) -> None:
        """Initialize the exception with execution details.

        Args:
            execution_id: The ID of the execution that was not found.
        """
        self.execution_id = execution_id
        super().__init__(f"Execution '{execution_id}' not found")


class WorkflowAlreadyCompletedError(ASLError):
    """Raised when stepping a workflow that has already ended.

    Attributes:
        execution_id: The ID of the execution.
        status: The terminal status of the execution.
    """

    def __init__(self, execution_id: str, status: str) -> None:
        """Initialize the exception with workflow state details.

        Args:
            execution_id: The ID of the execution.
            status: The terminal status of the execution.
        """
        self.execution_id = execution_id
        self.status = status
        super().__init__(f"Workflow '{execution_id}' is already {status}")


def field_error_text(name: list[str] | str, field_name: str, field_value: Any = None, comment: str | None = None) -> str:
    """Format the message used for field-level definition and runtime errors."""
    if isinstance(field_value, dict):
        field_value = "Object"
    elif isinstance(field_value, list):
        field_value = "Array"

    text = f'{_join_name(name)} field "{field_name}"'
    if field_value is not None:
        text += f' value "{field_value}"'
    if comment:
        text += f" {comment}"
    return text


def _join_name(name: list[str] | str) -> str:
    return name if isinstance(name, str) else ".".join(name)
