"""State implementations for litestar-asl.

Every ``Type`` accepted in a workflow document maps to one class in
:data:`STATE_TYPES`; :func:`build_state` validates the type and builds the state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_asl.core.types import StateType
from litestar_asl.exceptions import InvalidWorkflowError
from litestar_asl.states.base import State
from litestar_asl.states.choice import Choice
from litestar_asl.states.flow import Fail, Pass, Succeed
from litestar_asl.states.map import Map
from litestar_asl.states.task import Task
from litestar_asl.states.wait import Wait

if TYPE_CHECKING:
    from litestar_asl.core.definition import WorkflowDefinition

__all__ = [
    "STATE_TYPES",
    "Choice",
    "Fail",
    "Map",
    "Pass",
    "State",
    "Succeed",
    "Task",
    "Wait",
    "build_state",
]

STATE_TYPES: dict[StateType, type[State]] = {
    cls.state_type: cls for cls in (Task, Choice, Wait, Pass, Succeed, Fail, Map)
}


def build_state(workflow: WorkflowDefinition, name: list[str], payload: Any) -> State:
    """Build the state described by ``payload``.

    Raises:
        InvalidWorkflowError: If the payload is not an object or its ``Type`` is unknown.
    """
    if not isinstance(payload, dict):
        raise InvalidWorkflowError.invalid_field(name[:-1], name[-1], payload, "must be an object")

    state_type = payload.get("Type")
    if state_type is None:
        raise InvalidWorkflowError.missing_field(name, "Type")
    try:
        cls = STATE_TYPES[StateType(state_type)]
    except ValueError as e:
        raise InvalidWorkflowError.invalid_field(name, "Type", state_type, "is not valid") from e
    return cls(workflow, name, payload)
