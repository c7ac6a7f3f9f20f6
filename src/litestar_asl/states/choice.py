"""Choice state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_asl.core.choice_rule import ChoiceRule
from litestar_asl.core.types import StateType
from litestar_asl.exceptions import NoChoiceMatchedError, field_error_text
from litestar_asl.states.base import State
from litestar_asl.states.mixins import InputOutputMixin

if TYPE_CHECKING:
    from litestar_asl.core.context import Context
    from litestar_asl.core.definition import WorkflowDefinition

__all__ = ["Choice"]


class Choice(InputOutputMixin, State):
    """Branches to the ``Next`` of the first rule that matches its input.

    Rules are evaluated in declared order against ``OutputPath(InputPath(input))``.
    When none matches, ``Default`` is taken; without a ``Default`` the workflow
    fails with ``States.NoChoiceMatched``.
    """

    state_type = StateType.CHOICE

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        super().__init__(workflow, name, payload)
        self.init_input_output(parameters=False, result=False)

        choices = payload.get("Choices")
        if choices is None:
            raise self.missing_field_error("Choices")
        if not isinstance(choices, list) or not choices:
            raise self.invalid_field_error("Choices", choices, "must be a non-empty array")
        self.choices = [ChoiceRule.build([*name, "Choices", str(index)], rule) for index, rule in enumerate(choices)]

        self.default: str | None = payload.get("Default")
        if self.default is not None and not isinstance(self.default, str):
            raise self.invalid_field_error("Default", self.default, "must be a string")

    def transitions(self) -> list[tuple[str, str]]:
        transitions = [(f"Choices[{index}]", rule.next) for index, rule in enumerate(self.choices) if rule.next]
        if self.default is not None:
            transitions.append(("Default", self.default))
        return transitions

    def finish(self, context: Context) -> None:
        output = self.apply_output_path(context, self.apply_input_path(context, context.input))
        rule = next((rule for rule in self.choices if rule.is_true(context, output)), None)
        next_state = rule.next if rule is not None else self.default

        if next_state is None:
            raise NoChoiceMatchedError(field_error_text(self.name, "Default", comment="not defined and no match found"))

        context.output = output
        context.next_state = next_state
