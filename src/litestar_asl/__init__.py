"""litestar-asl - Amazon States Language workflows for Litestar.

This package interprets Amazon States Language workflow documents: JSON graphs
of Task, Choice, Wait, Pass, Succeed, Fail and Map states with data-flow
paths, payload templates, intrinsic functions, and Retry/Catch error handling.
Executions are stepped without blocking; Task work is handed to runners.

Key Features:
    - Non-blocking stepping with batch waiting across executions
    - Pluggable runners keyed by resource scheme (``local://`` built in)
    - Map iteration with concurrency limits and failure tolerance
    - Litestar plugin with a REST API for definitions and executions
    - MermaidJS rendering of workflow graphs

Example:
    >>> from litestar_asl import Workflow
    >>>
    >>> workflow = Workflow(
    ...     {"StartAt": "Hello", "States": {"Hello": {"Type": "Pass", "Result": "world", "End": True}}}
    ... )
    >>> workflow.run().output
    'world'
"""

from __future__ import annotations

import logging

from litestar_asl.__metadata__ import __project__, __version__
from litestar_asl.core import Context, StepResult, WorkflowDefinition, WorkflowStatus
from litestar_asl.engine import LocalExecutionEngine, Workflow, WorkflowRegistry, wait
from litestar_asl.exceptions import (
    ASLError,
    ExecutionError,
    ExecutionNotFoundError,
    InvalidWorkflowError,
    TaskFailedError,
    WorkflowAlreadyCompletedError,
    WorkflowNotFoundError,
)
from litestar_asl.plugin import ASLPlugin, ASLPluginConfig
from litestar_asl.runners import LocalRunner, Runner, RunnerRegistry

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = (
    "ASLError",
    "ASLPlugin",
    "ASLPluginConfig",
    "Context",
    "ExecutionError",
    "ExecutionNotFoundError",
    "InvalidWorkflowError",
    "LocalExecutionEngine",
    "LocalRunner",
    "Runner",
    "RunnerRegistry",
    "StepResult",
    "TaskFailedError",
    "Workflow",
    "WorkflowAlreadyCompletedError",
    "WorkflowDefinition",
    "WorkflowNotFoundError",
    "WorkflowRegistry",
    "WorkflowStatus",
    "__project__",
    "__version__",
    "wait",
)
