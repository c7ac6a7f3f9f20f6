"""Workflow execution.

This module provides the :class:`Workflow` execution object, batch waiting
across executions, and an in-memory engine for named workflows.
"""

from __future__ import annotations

from litestar_asl.engine.local import LocalExecutionEngine
from litestar_asl.engine.registry import WorkflowRegistry
from litestar_asl.engine.scheduler import wait
from litestar_asl.engine.workflow import Workflow

__all__ = [
    "LocalExecutionEngine",
    "Workflow",
    "WorkflowRegistry",
    "wait",
]
