"""Wait state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_asl.core.choice_rule import parse_timestamp
from litestar_asl.core.types import StateType
from litestar_asl.exceptions import ExecutionError, field_error_text
from litestar_asl.states.base import State
from litestar_asl.states.mixins import InputOutputMixin, NonTerminalMixin

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.definition import WorkflowDefinition

__all__ = ["Wait"]

_DURATION_FIELDS = ("Seconds", "SecondsPath", "Timestamp", "TimestampPath")


class Wait(NonTerminalMixin, InputOutputMixin, State):
    """Delays the workflow for a duration or until an instant.

    Exactly one of ``Seconds``, ``SecondsPath``, ``Timestamp`` and
    ``TimestampPath`` must be given. The input passes through unchanged apart
    from ``InputPath``/``OutputPath``.
    """

    state_type = StateType.WAIT

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.init_next()
        self.init_input_output(parameters=False, result=False)

        given = [field_name for field_name in _DURATION_FIELDS if field_name in payload]
        if len(given) != 1:
            fields = ", ".join(_DURATION_FIELDS)
            found = ", ".join(given) or "none"
            raise self.invalid_field_error("Seconds", comment=f"requires exactly one of {fields} (found {found})")

        self.seconds = payload.get("Seconds")
        self.timestamp = payload.get("Timestamp")
        self.seconds_path = self.parse_path("SecondsPath", default=None)
        self.timestamp_path = self.parse_path("TimestampPath", default=None)

        if self.seconds is not None and not _is_seconds(self.seconds):
            raise self.invalid_field_error("Seconds", self.seconds, "must be a non-negative integer")
        if self.timestamp is not None and parse_timestamp(self.timestamp) is None:
            raise self.invalid_field_error("Timestamp", self.timestamp, "must be an RFC 3339 timestamp")

    def start(self, context: Context) -> None:
        super().start(context)
        effective = self.apply_input_path(context, context.input)

        if self.seconds is not None:
            self.wait(context, seconds=self.seconds)
        elif self.seconds_path is not None:
            seconds = self.seconds_path.value(context, effective)
            if not _is_seconds(seconds):
                raise ExecutionError(field_error_text(self.name, "SecondsPath", seconds, "must be a non-negative integer"))
            self.wait(context, seconds=seconds)
        else:
            value = self.timestamp if self.timestamp_path is None else self.timestamp_path.value(context, effective)
            timestamp = parse_timestamp(value)
            if timestamp is None:
                raise ExecutionError(field_error_text(self.name, "TimestampPath", value, "must be an RFC 3339 timestamp"))
            self.wait(context, time=timestamp)

    def running(self, context: Context) -> bool:
        return self.waiting(context)

    def finish(self, context: Context) -> None:
        context.output = self.apply_output_path(context, self.apply_input_path(context, context.input))
        context.next_state = self.next_state_name(context)


def _is_seconds(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
