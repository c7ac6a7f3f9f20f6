"""Core building blocks for litestar-asl.

This module exposes the data model of an execution and the pieces a workflow
document is parsed into: paths, payload templates, intrinsic functions, choice
rules, retry and catch rules, and the workflow definition itself.
"""

from __future__ import annotations

from litestar_asl.core.choice_rule import ChoiceRule
from litestar_asl.core.context import Context, ExecutionInfo, StateInfo
from litestar_asl.core.definition import WorkflowDefinition
from litestar_asl.core.intrinsic import IntrinsicFunction
from litestar_asl.core.path import Path, ReferencePath
from litestar_asl.core.payload_template import PayloadTemplate
from litestar_asl.core.retry import Catcher, Retrier
from litestar_asl.core.types import StateType, StepResult, WorkflowStatus

__all__ = [
    "Catcher",
    "ChoiceRule",
    "Context",
    "ExecutionInfo",
    "IntrinsicFunction",
    "Path",
    "PayloadTemplate",
    "ReferencePath",
    "Retrier",
    "StateInfo",
    "StateType",
    "StepResult",
    "WorkflowDefinition",
    "WorkflowStatus",
]
