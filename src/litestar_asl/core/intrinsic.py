"""Intrinsic functions.

Intrinsic functions are ``States.*`` call expressions embedded in ``.$`` template
fields, e.g. ``"ids.$": "States.ArrayPartition($.ids, 4)"``. An expression is
parsed once into a small AST when the state is built and evaluated each time the
template is resolved.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import random
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from litestar_asl.core.path import Path
from litestar_asl.exceptions import IntrinsicFunctionArgumentError, IntrinsicFunctionSyntaxError

__all__ = ["FunctionCall", "IntrinsicFunction", "Literal", "PathArg", "json_type_name"]

_NAME_RE = re.compile(r"States\.[A-Za-z0-9]+")
_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_PATH_RE = re.compile(r"\$[^,)]*")

_ARRAY_RANGE_LIMIT = 1000
_HASH_ALGORITHMS = {
    "MD5": "md5",
    "SHA-1": "sha1",
    "SHA-256": "sha256",
    "SHA-384": "sha384",
    "SHA-512": "sha512",
}


def json_type_name(value: Any) -> str:
    """Name the JSON type of a Python value, as used in argument errors."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


@dataclass(frozen=True)
class Literal:
    """A literal argument: string, number, boolean or null."""

    value: Any

    def evaluate(self, context: Any, input: Any) -> Any:  # noqa: A002
        return self.value


@dataclass(frozen=True)
class PathArg:
    """A path argument, resolved against the input or context at call time."""

    path: Path

    def evaluate(self, context: Any, input: Any) -> Any:  # noqa: A002
        return self.path.value(context, input)


@dataclass(frozen=True)
class FunctionCall:
    """A ``States.Name(arg, ...)`` call."""

    name: str
    args: tuple[Literal | PathArg | FunctionCall, ...] = field(default_factory=tuple)

    def evaluate(self, context: Any, input: Any) -> Any:  # noqa: A002
        values = [arg.evaluate(context, input) for arg in self.args]
        function = _FUNCTIONS[self.name]
        return function(values)


class IntrinsicFunction:
    """A parsed intrinsic function expression.

    Example:
        >>> IntrinsicFunction("States.ArrayRange(1, 9, 2)").value({}, {})
        [1, 3, 5, 7, 9]
    """

    def __init__(self, payload: str) -> None:
        """Parse an intrinsic function expression.

        Args:
            payload: The expression text.

        Raises:
            IntrinsicFunctionSyntaxError: If the expression cannot be parsed.
        """
        self.payload = payload
        self.tree = _Parser(payload).parse()

    @classmethod
    def is_intrinsic_function(cls, value: Any) -> bool:
        """Check whether a template value should be treated as an intrinsic call."""
        return isinstance(value, str) and value.startswith("States.")

    def value(self, context: Any, input: Any = None) -> Any:  # noqa: A002
        """Evaluate the expression.

        Args:
            context: The execution context for ``$$`` path arguments.
            input: The data ``$`` path arguments are evaluated against.

        Returns:
            The function result.

        Raises:
            IntrinsicFunctionArgumentError: If a function rejects its arguments.
            PathError: If a path argument does not resolve.
        """
        return self.tree.evaluate(context, input)

    def __str__(self) -> str:
        return self.payload

    def __repr__(self) -> str:
        return f"IntrinsicFunction({self.payload!r})"


class _Parser:
    """Recursive-descent parser for intrinsic function expressions."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def parse(self) -> FunctionCall:
        self._skip_spaces()
        call = self._function_call()
        self._skip_spaces()
        if self.pos != len(self.text):
            self._error("unexpected trailing characters")
        return call

    def _function_call(self) -> FunctionCall:
        match = _NAME_RE.match(self.text, self.pos)
        if match is None:
            self._error("expected a States.* function name")
        name = match.group(0)
        if name not in _FUNCTIONS:
            self._error(f"unknown function {name}")
        self.pos = match.end()

        self._expect("(")
        self._skip_spaces()
        args: list[Literal | PathArg | FunctionCall] = []
        if not self._peek(")"):
            args.append(self._argument())
            self._skip_spaces()
            while self._peek(","):
                self.pos += 1
                self._skip_spaces()
                args.append(self._argument())
                self._skip_spaces()
        self._expect(")")
        return FunctionCall(name, tuple(args))

    def _argument(self) -> Literal | PathArg | FunctionCall:
        if self._peek("'"):
            return Literal(self._string())
        if self._peek("$"):
            match = _PATH_RE.match(self.text, self.pos)
            path_text = match.group(0).rstrip()
            start = self.pos
            self.pos += len(path_text)
            try:
                return PathArg(Path(path_text))
            except Exception as e:
                raise IntrinsicFunctionSyntaxError(self.text, start, str(e)) from e
        if self._peek("States."):
            return self._function_call()
        for keyword, value in (("true", True), ("false", False), ("null", None)):
            if self._peek(keyword):
                self.pos += len(keyword)
                return Literal(value)

        match = _NUMBER_RE.match(self.text, self.pos)
        if match is None:
            self._error("expected an argument")
        self.pos = match.end()
        number = match.group(0)
        return Literal(float(number) if re.search(r"[.eE]", number) else int(number))

    def _string(self) -> str:
        start = self.pos
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\":
                if self.pos + 1 >= len(self.text):
                    break
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char == "'":
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        raise IntrinsicFunctionSyntaxError(self.text, start, "unterminated string")

    def _peek(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def _expect(self, token: str) -> None:
        if not self._peek(token):
            self._error(f"expected {token!r}")
        self.pos += len(token)

    def _skip_spaces(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] == " ":
            self.pos += 1

    def _error(self, reason: str) -> None:
        raise IntrinsicFunctionSyntaxError(self.text, self.pos, reason)


@dataclass(frozen=True)
class _Arg:
    type: str
    optional: bool = False
    variadic: bool = False


_FUNCTIONS: dict[str, Callable[[list[Any]], Any]] = {}


def _intrinsic(name: str, *signature: _Arg) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Register an intrinsic function with its argument signature."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        def call(args: list[Any]) -> Any:
            _check_args(name, args, signature)
            return func(*args)

        _FUNCTIONS[name] = call
        return func

    return decorator


def _check_args(name: str, args: list[Any], signature: tuple[_Arg, ...]) -> None:
    variadic = bool(signature) and signature[-1].variadic
    required = sum(1 for arg in signature if not arg.optional and not arg.variadic)
    maximum = None if variadic else len(signature)

    if len(args) < required or (maximum is not None and len(args) > maximum):
        if maximum is None:
            expected: str | int = f"at least {required}"
        elif maximum == required:
            expected = required
        else:
            expected = f"{required}..{maximum}"
        raise IntrinsicFunctionArgumentError(name, None, len(args), expected)

    for index, value in enumerate(args):
        param = signature[min(index, len(signature) - 1)]
        if not _type_matches(value, param.type):
            raise IntrinsicFunctionArgumentError(name, index + 1, json_type_name(value), param.type)


def _type_matches(value: Any, expected: str) -> bool:
    if expected == "any":
        return True
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return json_type_name(value) == expected


def _json_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return bool(left == right)


def _value_error(name: str, position: int, given: Any, expected: str) -> IntrinsicFunctionArgumentError:
    return IntrinsicFunctionArgumentError(name, position, given, expected, kind="value")


@_intrinsic("States.Array", _Arg("any", variadic=True))
def _array(*values: Any) -> list[Any]:
    return list(values)


@_intrinsic("States.ArrayPartition", _Arg("array"), _Arg("integer"))
def _array_partition(array: list[Any], size: int) -> list[list[Any]]:
    if size <= 0:
        raise _value_error("States.ArrayPartition", 2, size, "a positive integer")
    return [array[i : i + size] for i in range(0, len(array), size)]


@_intrinsic("States.ArrayContains", _Arg("array"), _Arg("any"))
def _array_contains(array: list[Any], target: Any) -> bool:
    return any(_json_equal(item, target) for item in array)


@_intrinsic("States.ArrayRange", _Arg("integer"), _Arg("integer"), _Arg("integer"))
def _array_range(start: int, end: int, step: int) -> list[int]:
    if step == 0:
        raise _value_error("States.ArrayRange", 3, step, "a non-zero integer")
    stop = end + 1 if step > 0 else end - 1
    result = list(range(start, stop, step))
    if len(result) > _ARRAY_RANGE_LIMIT:
        raise _value_error("States.ArrayRange", 3, step, f"a range of at most {_ARRAY_RANGE_LIMIT} items")
    return result


@_intrinsic("States.ArrayGetItem", _Arg("array"), _Arg("integer"))
def _array_get_item(array: list[Any], index: int) -> Any:
    if index < 0:
        raise _value_error("States.ArrayGetItem", 2, index, "0 or a positive integer")
    return array[index] if index < len(array) else None


@_intrinsic("States.ArrayLength", _Arg("array"))
def _array_length(array: list[Any]) -> int:
    return len(array)


@_intrinsic("States.ArrayUnique", _Arg("array"))
def _array_unique(array: list[Any]) -> list[Any]:
    result: list[Any] = []
    for item in array:
        if not any(_json_equal(item, seen) for seen in result):
            result.append(item)
    return result


@_intrinsic("States.Base64Encode", _Arg("string"))
def _base64_encode(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


@_intrinsic("States.Base64Decode", _Arg("string"))
def _base64_decode(value: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise _value_error("States.Base64Decode", 1, value, f"valid base64 ({e})") from e


@_intrinsic("States.Hash", _Arg("any"), _Arg("string"))
def _hash(data: Any, algorithm: str) -> str:
    if data is None:
        raise _value_error("States.Hash", 1, "null", "non-null")
    if algorithm not in _HASH_ALGORITHMS:
        raise _value_error("States.Hash", 2, algorithm, f"one of {', '.join(_HASH_ALGORITHMS)}")
    text = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"))
    return hashlib.new(_HASH_ALGORITHMS[algorithm], text.encode()).hexdigest()


@_intrinsic("States.JsonToString", _Arg("any"))
def _json_to_string(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


@_intrinsic("States.StringToJson", _Arg("string"))
def _string_to_json(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise _value_error("States.StringToJson", 1, value, "a JSON document") from e


@_intrinsic("States.MathRandom", _Arg("integer"), _Arg("integer"), _Arg("integer", optional=True))
def _math_random(start: int, end: int, seed: int | None = None) -> int:
    if start >= end:
        raise _value_error("States.MathRandom", 2, end, f"an integer greater than {start}")
    return random.Random(seed).randint(start, end)  # noqa: S311


@_intrinsic("States.MathAdd", _Arg("integer"), _Arg("integer"))
def _math_add(left: int, right: int) -> int:
    return left + right


@_intrinsic("States.StringSplit", _Arg("string"), _Arg("string"))
def _string_split(value: str, delimiter: str) -> list[str]:
    if not delimiter:
        return [value] if value else []
    if len(delimiter) == 1:
        parts = value.split(delimiter)
    else:
        parts = re.split(f"[{re.escape(delimiter)}]+", value)
    return [part for part in parts if part]


@_intrinsic("States.Format", _Arg("string"), _Arg("any", variadic=True))
def _format(template: str, *values: Any) -> str:
    pieces = template.split("{}")
    if len(pieces) - 1 != len(values):
        raise IntrinsicFunctionArgumentError("States.Format", None, len(values) + 1, len(pieces))
    out = [pieces[0]]
    for value, piece in zip(values, pieces[1:]):
        out.append(value if isinstance(value, str) else json.dumps(value, separators=(",", ":")))
        out.append(piece)
    return "".join(out)


@_intrinsic("States.UUID")
def _uuid() -> str:
    return str(uuid.uuid4())
