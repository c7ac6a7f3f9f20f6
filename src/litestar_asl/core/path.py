"""Path and reference path accessors.

A :class:`Path` reads values out of state input (``$...``) or out of the
context object (``$$...``). A :class:`ReferencePath` is the unambiguous,
writable subset used by ``ResultPath`` and friends.
"""

from __future__ import annotations

import copy
import re
from typing import TYPE_CHECKING, Any

from jsonpath_ng.ext import parse as jsonpath_parse

from litestar_asl.exceptions import InvalidWorkflowError, PathError

if TYPE_CHECKING:
    from jsonpath_ng import JSONPath

__all__ = ["Path", "ReferencePath", "context_data"]

_SEGMENT_RE = re.compile(
    r"""
    \.(?P<name>[^.\[\]]+)              # .name
    | \[\s*'(?P<squoted>[^']*)'\s*\]   # ['name']
    | \[\s*"(?P<dquoted>[^"]*)"\s*\]   # ["name"]
    | \[\s*(?P<index>-?\d+)\s*\]       # [0]
    """,
    re.VERBOSE,
)


def context_data(context: Any) -> Any:
    """Return the JSON view of a context for ``$$`` lookups."""
    to_dict = getattr(context, "to_dict", None)
    return to_dict() if callable(to_dict) else context


class Path:
    """A JSONPath expression evaluated against state input or the context object.

    Example:
        >>> Path("$.order.id").value({}, {"order": {"id": 7}})
        7
        >>> Path("$$.Execution.Id").value({"Execution": {"Id": "abc"}}, {})
        'abc'
    """

    def __init__(self, payload: str) -> None:
        """Parse a path expression.

        Args:
            payload: The path text. Must start with ``$``.

        Raises:
            InvalidWorkflowError: If the payload is not a syntactically valid path.
        """
        if not isinstance(payload, str):
            msg = f"Path [{payload}] must be a string"
            raise InvalidWorkflowError(msg)
        if not payload.startswith("$"):
            msg = f'Path [{payload}] must start with "$"'
            raise InvalidWorkflowError(msg)

        self.payload = payload
        self.context_path = payload.startswith("$$")
        self.expression = payload[1:] if self.context_path else payload
        self._jsonpath = self._compile(self.expression)

    @classmethod
    def is_path(cls, value: Any) -> bool:
        """Check whether a template value should be treated as a path."""
        return isinstance(value, str) and value.startswith("$")

    def value(self, context: Any, input: Any = None) -> Any:  # noqa: A002
        """Evaluate the path.

        Args:
            context: The execution context (or its dict form) for ``$$`` paths.
            input: The data ``$`` paths are evaluated against.

        Returns:
            The single matched value, or a list when more than one value matched.

        Raises:
            PathError: If nothing matched.
        """
        obj = context_data(context) if self.context_path else input
        if self._jsonpath is None:
            return obj

        matches = [match.value for match in self._jsonpath.find(obj)]
        if not matches:
            msg = f"Path [{self.payload}] references an invalid value"
            raise PathError(msg)
        if len(matches) == 1:
            return matches[0]
        return matches

    def _compile(self, expression: str) -> JSONPath | None:
        if expression == "$":
            return None
        try:
            return jsonpath_parse(expression)
        except Exception as e:
            msg = f"Path [{self.payload}] is invalid: {e}"
            raise InvalidWorkflowError(msg) from e

    def __str__(self) -> str:
        return self.payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.payload!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Path) and type(other) is type(self) and other.payload == self.payload

    def __hash__(self) -> int:
        return hash((type(self), self.payload))


class ReferencePath(Path):
    """An unambiguous path that can also be written to.

    Example:
        >>> ReferencePath("$.result.value").set({"a": 1}, 2)
        {'a': 1, 'result': {'value': 2}}
    """

    def __init__(self, payload: str) -> None:
        """Parse a reference path.

        Args:
            payload: The path text.

        Raises:
            InvalidWorkflowError: If the path is not a valid reference path.
        """
        super().__init__(payload)

        if re.search(r"[@,:?*]", payload) or ".." in payload or self.context_path:
            msg = f"Invalid Reference Path [{payload}]"
            raise InvalidWorkflowError(msg)

        self.path = self._segments(payload)

    def get(self, tree: Any) -> Any:
        """Read the addressed value.

        Raises:
            PathError: If a segment does not exist.
        """
        node = tree
        for segment in self.path:
            try:
                node = node[segment]
            except (KeyError, IndexError, TypeError) as e:
                msg = f"Path [{self.payload}] references an invalid value"
                raise PathError(msg) from e
        return node

    def set(self, tree: Any, value: Any) -> Any:
        """Return a copy of ``tree`` with ``value`` stored at this path.

        Intermediate objects are created when absent. Setting ``$`` replaces the
        whole tree.

        Raises:
            PathError: If a segment runs through a non-container value.
        """
        if not self.path:
            return value

        result = copy.deepcopy(tree) if tree is not None else {}
        if not isinstance(result, (dict, list)):
            msg = f"Path [{self.payload}] cannot be set on a {type(result).__name__}"
            raise PathError(msg)

        node = result
        *parents, last = self.path
        for segment in parents:
            node = self._child(node, segment)
        self._assign(node, last, value)
        return result

    def _child(self, node: Any, segment: str | int) -> Any:
        if isinstance(segment, int):
            if not isinstance(node, list) or not -len(node) <= segment < len(node):
                msg = f"Path [{self.payload}] references an invalid index {segment}"
                raise PathError(msg)
            if node[segment] is None:
                node[segment] = {}
            elif not isinstance(node[segment], (dict, list)):
                msg = f"Path [{self.payload}] cannot set through a {type(node[segment]).__name__} at {segment}"
                raise PathError(msg)
            return node[segment]

        if not isinstance(node, dict):
            msg = f"Path [{self.payload}] cannot set key {segment!r} on a {type(node).__name__}"
            raise PathError(msg)
        if node.get(segment) is None:
            node[segment] = {}
        elif not isinstance(node[segment], (dict, list)):
            msg = f"Path [{self.payload}] cannot set through a {type(node[segment]).__name__} at {segment!r}"
            raise PathError(msg)
        return node[segment]

    def _assign(self, node: Any, segment: str | int, value: Any) -> None:
        if isinstance(segment, int):
            if not isinstance(node, list) or not -len(node) <= segment < len(node):
                msg = f"Path [{self.payload}] references an invalid index {segment}"
                raise PathError(msg)
        elif not isinstance(node, dict):
            msg = f"Path [{self.payload}] cannot set key {segment!r} on a {type(node).__name__}"
            raise PathError(msg)
        node[segment] = value

    @staticmethod
    def _segments(payload: str) -> list[str | int]:
        rest = payload[1:]
        segments: list[str | int] = []
        pos = 0
        while pos < len(rest):
            match = _SEGMENT_RE.match(rest, pos)
            if match is None:
                msg = f"Invalid Reference Path [{payload}]"
                raise InvalidWorkflowError(msg)
            if match.group("index") is not None:
                segments.append(int(match.group("index")))
            else:
                segments.append(match.group("name") or match.group("squoted") or match.group("dquoted") or "")
            pos = match.end()
        return segments
