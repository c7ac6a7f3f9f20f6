"""Payload templates.

Templates are the JSON objects used by ``Parameters``, ``ItemSelector``,
``ResultSelector`` and ``Credentials``. Keys ending in ``.$`` hold a path or an
intrinsic function call whose value replaces the entry under the stripped key.
"""

from __future__ import annotations

import copy
from typing import Any

from litestar_asl.core.intrinsic import IntrinsicFunction
from litestar_asl.core.path import Path
from litestar_asl.exceptions import InvalidWorkflowError

__all__ = ["PayloadTemplate"]

_SUFFIX = ".$"


class PayloadTemplate:
    """A parsed payload template.

    Example:
        >>> template = PayloadTemplate({"id.$": "$.order.id", "kind": "order"})
        >>> template.value({}, {"order": {"id": 7}})
        {'id': 7, 'kind': 'order'}
    """

    def __init__(self, payload: Any, name: list[str] | str = "PayloadTemplate") -> None:
        """Parse the template.

        Args:
            payload: The template document.
            name: Path-qualified name of the owner, used in error messages.

        Raises:
            InvalidWorkflowError: If a ``.$`` entry is not a path or intrinsic call,
                or a literal key collides with its ``.$`` counterpart.
        """
        self.payload = payload
        self.name = name
        self._template = self._parse(payload)

    def value(self, context: Any, input: Any = None) -> Any:  # noqa: A002
        """Resolve the template against the context and input.

        Returns:
            A fresh structure with ``.$`` keys stripped and their values resolved.
        """
        return self._interpolate(self._template, context, input)

    def _parse(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._parse(item) for item in value]
        if not isinstance(value, dict):
            return value

        parsed: dict[str, Any] = {}
        for key, item in value.items():
            if not key.endswith(_SUFFIX):
                parsed[key] = self._parse(item)
                continue

            plain_key = key[: -len(_SUFFIX)]
            if plain_key in value:
                raise InvalidWorkflowError.invalid_field(self.name, key, comment=f'conflicts with "{plain_key}"')
            parsed[key] = self._parse_dynamic(key, item)
        return parsed

    def _parse_dynamic(self, key: str, item: Any) -> Path | IntrinsicFunction:
        if Path.is_path(item):
            return Path(item)
        if IntrinsicFunction.is_intrinsic_function(item):
            return IntrinsicFunction(item)
        raise InvalidWorkflowError.invalid_field(self.name, key, item, "must be a path or an intrinsic function")

    def _interpolate(self, value: Any, context: Any, input: Any) -> Any:  # noqa: A002
        if isinstance(value, list):
            return [self._interpolate(item, context, input) for item in value]
        if isinstance(value, dict):
            result: dict[str, Any] = {}
            for key, item in value.items():
                if key.endswith(_SUFFIX):
                    result[key[: -len(_SUFFIX)]] = item.value(context, input)
                else:
                    result[key] = self._interpolate(item, context, input)
            return result
        return copy.deepcopy(value)

    def __repr__(self) -> str:
        return f"PayloadTemplate({self.payload!r})"
