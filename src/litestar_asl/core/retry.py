"""Retry and Catch rules.

Both rule types match an ASL error name against their ``ErrorEquals`` list.
Rules are always scanned in declared order and the first match wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from litestar_asl.core.path import ReferencePath
from litestar_asl.core.types import ERROR_ALL, ERROR_HEARTBEAT_TIMEOUT, ERROR_TIMEOUT
from litestar_asl.exceptions import InvalidWorkflowError

__all__ = ["Catcher", "ErrorMatcher", "Retrier", "build_rules", "find_match"]

_MatcherT = TypeVar("_MatcherT", bound="ErrorMatcher")


class ErrorMatcher:
    """Base class for rules selected by ``ErrorEquals``.

    Attributes:
        name: Path-qualified name of the rule, e.g. ``["States", "Work", "Retry", "0"]``.
        error_equals: The error names the rule applies to.
    """

    def __init__(self, name: list[str], payload: dict[str, Any]) -> None:
        if not isinstance(payload, dict):
            raise InvalidWorkflowError.invalid_field(name[:-2], name[-2], payload, "must contain only objects")
        self.name = name
        self.payload = payload

        error_equals = payload.get("ErrorEquals")
        if not isinstance(error_equals, list) or not error_equals:
            raise InvalidWorkflowError.missing_field(name, "ErrorEquals")
        if not all(isinstance(error, str) for error in error_equals):
            raise InvalidWorkflowError.invalid_field(name, "ErrorEquals", error_equals, "must contain only strings")
        self.error_equals: list[str] = list(error_equals)

    def match_error(self, error: str | None) -> bool:
        """Check whether this rule handles an error name.

        ``States.ALL`` matches everything and ``States.Timeout`` also matches
        ``States.HeartbeatTimeout``.
        """
        if ERROR_ALL in self.error_equals:
            return True
        if error == ERROR_HEARTBEAT_TIMEOUT and ERROR_TIMEOUT in self.error_equals:
            return True
        return error in self.error_equals


class Retrier(ErrorMatcher):
    """A ``Retry`` rule.

    Attributes:
        interval_seconds: Delay before the first retry.
        max_attempts: Number of retries allowed before the rule is exhausted.
        backoff_rate: Multiplier applied to the delay on each further retry.

    Example:
        >>> retrier = Retrier(["Retry", "0"], {"ErrorEquals": ["States.ALL"], "IntervalSeconds": 3})
        >>> [retrier.sleep_duration(attempt) for attempt in (1, 2, 3)]
        [3.0, 6.0, 12.0]
    """

    def __init__(self, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(name, payload)
        self.interval_seconds = self._number("IntervalSeconds", 1, minimum=0)
        self.max_attempts = int(self._number("MaxAttempts", 3, minimum=0))
        self.backoff_rate = self._number("BackoffRate", 2.0, minimum=1)

    def sleep_duration(self, attempt: int) -> float:
        """Return the delay before retry ``attempt`` (1 for the first retry)."""
        return float(self.interval_seconds * self.backoff_rate ** (attempt - 1))

    def _number(self, field_name: str, default: float, minimum: float) -> float:
        value = self.payload.get(field_name, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
            raise InvalidWorkflowError.invalid_field(self.name, field_name, value, f"must be a number >= {minimum}")
        return value


class Catcher(ErrorMatcher):
    """A ``Catch`` rule.

    Attributes:
        next: The state to transition to when the rule matches.
        result_path: Where the error object is placed in the original input.
    """

    def __init__(self, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(name, payload)
        next_state = payload.get("Next")
        if not isinstance(next_state, str):
            raise InvalidWorkflowError.missing_field(name, "Next")
        self.next: str = next_state
        result_path = payload.get("ResultPath", "$")
        self.result_path = None if result_path is None else ReferencePath(result_path)

    def apply(self, input: Any, error: dict[str, Any]) -> Any:  # noqa: A002
        """Place the error object into the original input."""
        if self.result_path is None:
            return input
        return self.result_path.set(input, error)


def find_match(rules: Iterable[_MatcherT], error: str | None) -> _MatcherT | None:
    """Return the first rule matching ``error``, or None."""
    return next((rule for rule in rules if rule.match_error(error)), None)


def build_rules(
    cls: type[_MatcherT],
    name: list[str],
    field_name: str,
    payload: Sequence[Any] | None,
) -> list[_MatcherT]:
    """Build the ordered ``Retry`` or ``Catch`` rules of a state."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise InvalidWorkflowError.invalid_field(name, field_name, payload, "must be an array")
    return [cls([*name, field_name, str(index)], item) for index, item in enumerate(payload)]
