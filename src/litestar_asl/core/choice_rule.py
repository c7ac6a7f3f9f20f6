"""Choice rules.

A Choice state holds an ordered list of rule trees. Boolean rules (``And``,
``Or``, ``Not``) combine data-test rules, which compare the value at
``Variable`` with a literal or with the value at another path.
"""

from __future__ import annotations

import operator
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from litestar_asl.core.path import Path
from litestar_asl.exceptions import InvalidWorkflowError, PathError

__all__ = ["And", "ChoiceRule", "Data", "Not", "Or", "parse_timestamp"]

_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?$")

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "Equals": operator.eq,
    "LessThan": operator.lt,
    "GreaterThan": operator.gt,
    "LessThanEquals": operator.le,
    "GreaterThanEquals": operator.ge,
}
_KINDS = ("String", "Numeric", "Boolean", "Timestamp")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning None when ``value`` is not one.

    Timestamps without an offset are taken as UTC.
    """
    if not isinstance(value, str) or not _TIMESTAMP_RE.match(value):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_TYPE_TESTS: dict[str, Callable[[Any], bool]] = {
    "IsNull": lambda value: value is None,
    "IsNumeric": _is_numeric,
    "IsString": lambda value: isinstance(value, str),
    "IsBoolean": lambda value: isinstance(value, bool),
    "IsTimestamp": lambda value: parse_timestamp(value) is not None,
}

_KIND_TESTS: dict[str, Callable[[Any], bool]] = {
    "String": lambda value: isinstance(value, str),
    "Numeric": _is_numeric,
    "Boolean": lambda value: isinstance(value, bool),
    "Timestamp": lambda value: parse_timestamp(value) is not None,
}


def _compare_keys() -> dict[str, tuple[str, str]]:
    keys: dict[str, tuple[str, str]] = {}
    for kind in _KINDS:
        for name in _COMPARISONS:
            if kind == "Boolean" and name != "Equals":
                continue
            keys[f"{kind}{name}"] = (kind, name)
            keys[f"{kind}{name}Path"] = (kind, name)
    keys["StringMatches"] = ("String", "Matches")
    return keys


_COMPARE_KEYS = _compare_keys()


class ChoiceRule(ABC):
    """Base class for choice rules.

    Attributes:
        name: Path-qualified name of the rule.
        payload: The rule document.
        next: Target state for a top-level rule, None for nested rules.
    """

    def __init__(self, name: list[str], payload: dict[str, Any]) -> None:
        self.name = name
        self.payload = payload
        self.next: str | None = payload.get("Next")

    @classmethod
    def build(cls, name: list[str], payload: Any, top_level: bool = True) -> ChoiceRule:
        """Build a rule tree from its document.

        Args:
            name: Path-qualified name of the rule.
            payload: The rule document.
            top_level: Whether the rule sits directly in ``Choices`` and needs a ``Next``.

        Raises:
            InvalidWorkflowError: If the rule is malformed.
        """
        if not isinstance(payload, dict):
            raise InvalidWorkflowError.invalid_field(name[:-1], name[-1], payload, "must be an object")
        if top_level and not isinstance(payload.get("Next"), str):
            raise InvalidWorkflowError.missing_field(name, "Next")

        if "And" in payload:
            return And(name, payload, cls._children(name, "And", payload["And"]))
        if "Or" in payload:
            return Or(name, payload, cls._children(name, "Or", payload["Or"]))
        if "Not" in payload:
            return Not(name, payload, [cls.build([*name, "Not"], payload["Not"], top_level=False)])
        return Data(name, payload)

    @classmethod
    def _children(cls, name: list[str], field_name: str, payloads: Any) -> list[ChoiceRule]:
        if not isinstance(payloads, list) or not payloads:
            raise InvalidWorkflowError.invalid_field(name, field_name, payloads, "must be a non-empty array")
        return [
            cls.build([*name, field_name, str(index)], payload, top_level=False) for index, payload in enumerate(payloads)
        ]

    @abstractmethod
    def is_true(self, context: Any, input: Any) -> bool:  # noqa: A002
        """Evaluate the rule against state input.

        Raises:
            PathError: If a compared variable is absent.
        """


class And(ChoiceRule):
    """True when every child rule is true."""

    def __init__(self, name: list[str], payload: dict[str, Any], children: list[ChoiceRule]) -> None:
        super().__init__(name, payload)
        self.children = children

    def is_true(self, context: Any, input: Any) -> bool:  # noqa: A002
        return all(child.is_true(context, input) for child in self.children)


class Or(ChoiceRule):
    """True when any child rule is true."""

    def __init__(self, name: list[str], payload: dict[str, Any], children: list[ChoiceRule]) -> None:
        super().__init__(name, payload)
        self.children = children

    def is_true(self, context: Any, input: Any) -> bool:  # noqa: A002
        return any(child.is_true(context, input) for child in self.children)


class Not(ChoiceRule):
    """Negates its single child rule."""

    def __init__(self, name: list[str], payload: dict[str, Any], children: list[ChoiceRule]) -> None:
        super().__init__(name, payload)
        self.children = children

    def is_true(self, context: Any, input: Any) -> bool:  # noqa: A002
        return not self.children[0].is_true(context, input)


class Data(ChoiceRule):
    """A data-test rule such as ``{"Variable": "$.n", "NumericGreaterThan": 3}``.

    Values of the wrong type never match: ``NumericEquals`` against a string is
    simply false.

    Attributes:
        variable: The path of the tested value.
        compare_key: The operator key, e.g. ``NumericLessThanPath`` or ``IsNull``.
        compare_value: The literal or :class:`Path` operand.
    """

    def __init__(self, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(name, payload)

        variable = payload.get("Variable")
        if variable is None:
            raise InvalidWorkflowError.missing_field(name, "Variable")
        if not Path.is_path(variable):
            raise InvalidWorkflowError.invalid_field(name, "Variable", variable, "must be a Path")
        self.variable = Path(variable)

        keys = [key for key in payload if key in _COMPARE_KEYS or key in _TYPE_TESTS or key == "IsPresent"]
        if len(keys) != 1:
            msg = f"{'.'.join(name)} must have exactly one data-test operator, found {keys or 'none'}"
            raise InvalidWorkflowError(msg)
        self.compare_key = keys[0]
        self.compare_value = self._parse_compare_value(payload[self.compare_key])

    def _parse_compare_value(self, value: Any) -> Any:
        key = self.compare_key
        if key == "IsPresent" or key in _TYPE_TESTS:
            if not isinstance(value, bool):
                raise InvalidWorkflowError.invalid_field(self.name, key, value, "must be a boolean")
            return value
        if key.endswith("Path"):
            if not Path.is_path(value):
                raise InvalidWorkflowError.invalid_field(self.name, key, value, "must be a Path")
            return Path(value)

        kind, _ = _COMPARE_KEYS[key]
        if not _KIND_TESTS[kind](value):
            raise InvalidWorkflowError.invalid_field(self.name, key, value, f"must be a {kind.lower()}")
        if key == "StringMatches":
            return _glob_to_regex(value)
        return value

    def is_true(self, context: Any, input: Any) -> bool:  # noqa: A002
        key = self.compare_key
        if key == "IsPresent":
            try:
                self.variable.value(context, input)
            except PathError:
                return not self.compare_value
            return bool(self.compare_value)

        if key in _TYPE_TESTS:
            try:
                lhs = self.variable.value(context, input)
            except PathError:
                return False
            return _TYPE_TESTS[key](lhs) == self.compare_value

        lhs = self.variable.value(context, input)
        rhs = self.compare_value.value(context, input) if isinstance(self.compare_value, Path) else self.compare_value
        kind, name = _COMPARE_KEYS[key]

        if name == "Matches":
            return isinstance(lhs, str) and rhs.fullmatch(lhs) is not None
        if not _KIND_TESTS[kind](lhs) or not _KIND_TESTS[kind](rhs):
            return False
        if kind == "Timestamp":
            lhs, rhs = parse_timestamp(lhs), parse_timestamp(rhs)
        return _COMPARISONS[name](lhs, rhs)


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "\\" and index + 1 < len(pattern):
            parts.append(re.escape(pattern[index + 1]))
            index += 2
            continue
        parts.append(".*" if char == "*" else re.escape(char))
        index += 1
    return re.compile("".join(parts), re.DOTALL)
