"""Map state."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

from litestar_asl.core.context import Context
from litestar_asl.core.path import context_data
from litestar_asl.core.types import ERROR_EXCEED_TOLERATED_FAILURE_THRESHOLD, ERROR_TASK_FAILED, StateType, StepResult
from litestar_asl.exceptions import ExecutionError, field_error_text
from litestar_asl.states.base import State
from litestar_asl.states.mixins import InputOutputMixin, NonTerminalMixin, RetryCatchMixin

if TYPE_CHECKING:
    from litestar_asl.core.definition import WorkflowDefinition
    from litestar_asl.core.payload_template import PayloadTemplate
    from litestar_asl.runners.base import Runner

__all__ = ["Map"]

logger = logging.getLogger(__name__)


class Map(NonTerminalMixin, InputOutputMixin, RetryCatchMixin, State):
    """Runs a nested workflow for every item of an array.

    ``ItemProcessor`` (or the older ``Iterator``) is a complete workflow
    definition. Each item gets its own :class:`~litestar_asl.core.context.Context`;
    iterations are stepped one transition at a time, least-advanced first, so no
    iteration runs ahead of the others. At most ``MaxConcurrency`` iterations are
    in flight at once (``0`` means no limit).

    The state succeeds when no iteration failed, or when the failures stay within
    ``ToleratedFailureCount`` or below ``ToleratedFailurePercentage``.
    """

    state_type = StateType.MAP

    def __init__(self, workflow: WorkflowDefinition, name: list[str], payload: dict[str, Any]) -> None:
        from litestar_asl.core.definition import WorkflowDefinition

        super().__init__(workflow, name, payload)
        self.init_next()
        self.init_input_output(parameters=False)
        self.init_retry_catch()

        processor_field = "ItemProcessor" if "ItemProcessor" in payload else "Iterator"
        processor = payload.get(processor_field)
        if processor is None:
            raise self.missing_field_error("ItemProcessor")
        if not isinstance(processor, dict):
            raise self.invalid_field_error(processor_field, processor, "must be an object")
        self.item_processor = WorkflowDefinition(
            processor, name=workflow.name, runners=workflow.runners, prefix=[*name, processor_field]
        )

        self.items_path = self.parse_path("ItemsPath", reference=True)
        if self.items_path is None:
            raise self.invalid_field_error("ItemsPath", comment="must not be null")
        selector_field = "ItemSelector" if "ItemSelector" in payload else "Parameters"
        self.item_selector: PayloadTemplate | None = self.parse_template(selector_field)

        self.max_concurrency = self._non_negative("MaxConcurrency", integer=True)
        self.tolerated_failure_count = self._non_negative("ToleratedFailureCount", integer=True)
        self.tolerated_failure_percentage = self._non_negative("ToleratedFailurePercentage", integer=False)
        if self.tolerated_failure_percentage is not None and self.tolerated_failure_percentage > 100:
            raise self.invalid_field_error(
                "ToleratedFailurePercentage", self.tolerated_failure_percentage, "must be between 0 and 100"
            )

    def _non_negative(self, field_name: str, integer: bool) -> Any:
        value = self.payload.get(field_name)
        if value is None:
            return None
        kinds = (int,) if integer else (int, float)
        if isinstance(value, bool) or not isinstance(value, kinds) or value < 0:
            kind = "integer" if integer else "number"
            raise self.invalid_field_error(field_name, value, f"must be a non-negative {kind}")
        return value

    def transitions(self) -> list[tuple[str, str]]:
        return super().transitions() + self.catch_transitions()

    def start(self, context: Context) -> None:
        super().start(context)
        effective = self.apply_input_path(context, context.input)
        items = self.items_path.value(context, effective)
        if not isinstance(items, list):
            raise ExecutionError(field_error_text(self.name, "ItemsPath", items, "must reference an array"))

        context.state.item_contexts = [
            Context.create(
                self._item_input(context, effective, index, item),
                execution_id=context.execution.id,
                credentials=context.credentials,
                state_machine=context.state_machine,
            )
            for index, item in enumerate(items)
        ]

    def _item_input(self, context: Context, effective: Any, index: int, item: Any) -> Any:
        if self.item_selector is None:
            return item
        item_context = {**context_data(context), "Map": {"Item": {"Index": index, "Value": item}}}
        return self.item_selector.value(item_context, effective)

    def run_nonblock(self, context: Context) -> StepResult:
        """Start the iterations, then advance one iteration by one step.

        Returns:
            ``BLOCKED`` until every iteration has ended, then ``COMPLETED``.
        """
        try:
            if not context.state_started:
                if self.waiting(context):
                    return StepResult.BLOCKED
                self.start(context)
            else:
                self._step_item(context)
            if not self.ended(context):
                return StepResult.BLOCKED
            self.finish(context)
        except ExecutionError as e:
            self.fail_state(context, e)

        self.mark_finished(context)
        return StepResult.COMPLETED

    def _step_item(self, context: Context) -> None:
        candidates = [
            (len(item.state_history), index, item)
            for index, item in enumerate(self._items(context))
            if self._eligible(context, item)
        ]
        if not candidates:
            return
        _, index, item = min(candidates, key=lambda candidate: candidate[:2])
        logger.debug("Stepping [%s] iteration %d", self.long_name, index)
        self.item_processor.step_nonblock(item)

    def _eligible(self, context: Context, item: Context) -> bool:
        if item.ended:
            return False
        if not item.started and self.concurrency_exceeded(context):
            return False
        return self.item_processor.step_nonblock_ready(item)

    def concurrency_exceeded(self, context: Context) -> bool:
        if not self.max_concurrency:
            return False
        return sum(1 for item in self._items(context) if item.running) >= self.max_concurrency

    def finish(self, context: Context) -> None:
        items = self._items(context)
        if self.success(context):
            context.output = self.process_output(context, [item.output for item in items])
            context.next_state = self.next_state_name(context)
        else:
            self.handle_error(context, self._error(items))

    def success(self, context: Context) -> bool:
        """Whether the iteration failures are within the tolerated thresholds."""
        items = self._items(context)
        failed = sum(1 for item in items if item.failed)
        total = len(items)

        if failed == 0 or total == 0:
            return True
        if self.tolerated_failure_count is not None and failed <= self.tolerated_failure_count:
            return True
        percentage = self.tolerated_failure_percentage
        return percentage is not None and (percentage >= 100 or 100 * failed / total < percentage)

    def _error(self, items: list[Context]) -> dict[str, Any]:
        failed = [item for item in items if item.failed]
        if self.tolerated_failure_count is not None or self.tolerated_failure_percentage is not None:
            return {
                "Error": ERROR_EXCEED_TOLERATED_FAILURE_THRESHOLD,
                "Cause": f"{len(failed)} of {len(items)} iterations failed",
            }
        output = failed[0].output if isinstance(failed[0].output, dict) else {}
        error = {"Error": output.get("Error") or failed[0].state.error or ERROR_TASK_FAILED}
        if output.get("Cause") is not None:
            error["Cause"] = output["Cause"]
        return error

    def ended(self, context: Context) -> bool:
        return all(item.ended for item in self._items(context))

    def running(self, context: Context) -> bool:
        return context.state_started and not self.ended(context)

    def ready(self, context: Context) -> bool:
        if not context.state_started:
            return not self.waiting(context)
        if self.ended(context):
            return True
        return any(self._eligible(context, item) for item in self._items(context))

    def wait_until(self, context: Context) -> datetime | None:
        if not context.state_started:
            return context.state.wait_until
        deadlines = [
            deadline
            for item in self._items(context)
            if not item.ended and (deadline := self.item_processor.wait_until(item)) is not None
        ]
        return min(deadlines, default=None)

    def waiting(self, context: Context) -> bool:
        if not context.state_started:
            return super().waiting(context)
        return any(self.item_processor.waiting(item) for item in self._items(context) if not item.ended)

    def runner_contexts(self, context: Context) -> Iterator[tuple[Runner, dict[str, Any]]]:
        for item in self._items(context):
            if not item.ended:
                yield from self.item_processor.runner_contexts(item)

    @staticmethod
    def _items(context: Context) -> list[Context]:
        return context.state.item_contexts or []
