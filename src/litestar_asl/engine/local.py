"""Local in-memory execution engine.

This module provides a local, in-process execution engine that keeps every
execution in memory. It is suitable for development, testing, and
single-instance deployments.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from litestar_asl.engine import scheduler
from litestar_asl.engine.workflow import Workflow
from litestar_asl.exceptions import ExecutionNotFoundError, WorkflowAlreadyCompletedError

if TYPE_CHECKING:
    from litestar_asl.core.types import WorkflowStatus
    from litestar_asl.engine.registry import WorkflowRegistry

__all__ = ["LocalExecutionEngine"]

logger = logging.getLogger(__name__)


class LocalExecutionEngine:
    """In-memory execution engine for registered workflows.

    Executions are stepped until they block; nothing runs in the background.
    Call :meth:`step_execution` or :meth:`wait` to move blocked executions on.

    Attributes:
        registry: The workflow registry for looking up definitions.
        _executions: In-memory storage of executions keyed by id.
    """

    def __init__(self, registry: WorkflowRegistry) -> None:
        """Initialize the local execution engine.

        Args:
            registry: The workflow registry. Executions resolve Task resources
                through its runners.
        """
        self.registry = registry
        self._executions: dict[str, Workflow] = {}
        self._lock = threading.RLock()

    def start_execution(
        self,
        name: str,
        input: Any = None,  # noqa: A002
        credentials: dict[str, Any] | None = None,
    ) -> Workflow:
        """Start a new execution of a registered workflow.

        The execution is stepped until it blocks or ends before returning.

        Args:
            name: Name of the registered workflow.
            input: The workflow input.
            credentials: Secrets for Task ``Credentials`` templates.

        Returns:
            The started execution.

        Raises:
            WorkflowNotFoundError: If no workflow is registered under ``name``.

        Example:
            >>> engine = LocalExecutionEngine(registry)
            >>> execution = engine.start_execution("order", input={"id": 7})
            >>> execution.status
            <WorkflowStatus.SUCCESS: 'success'>
        """
        definition = self.registry.get_definition(name)
        workflow = Workflow(definition, input=input, credentials=credentials)
        with self._lock:
            self._executions[workflow.id] = workflow
            workflow.start().run_nonblock()
        logger.info("Started execution [%s] of workflow [%s]: %s", workflow.id, name, workflow.status)
        return workflow

    def get_execution(self, execution_id: str) -> Workflow:
        """Retrieve an execution by id.

        Raises:
            ExecutionNotFoundError: If the execution is unknown.
        """
        if execution_id not in self._executions:
            raise ExecutionNotFoundError(execution_id)
        return self._executions[execution_id]

    def step_execution(self, execution_id: str) -> Workflow:
        """Step an execution until it blocks or ends.

        Raises:
            ExecutionNotFoundError: If the execution is unknown.
            WorkflowAlreadyCompletedError: If the execution has already ended.
        """
        workflow = self.get_execution(execution_id)
        if workflow.ended:
            raise WorkflowAlreadyCompletedError(execution_id, workflow.status)
        with self._lock:
            workflow.run_nonblock()
        return workflow

    def list_executions(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        """List executions, optionally filtered by status."""
        executions = list(self._executions.values())
        if status is not None:
            executions = [workflow for workflow in executions if workflow.status == status]
        return executions

    def get_running_executions(self) -> list[Workflow]:
        return [workflow for workflow in self._executions.values() if not workflow.ended]

    def wait(self, timeout: float | None = None) -> list[Workflow]:
        """Drive every running execution until all end or ``timeout`` elapses.

        Returns:
            The executions that are still running.
        """
        running = self.get_running_executions()
        if running:
            scheduler.wait(running, timeout=timeout, on_ready=self._step)
        return self.get_running_executions()

    def _step(self, workflow: Workflow) -> None:
        with self._lock:
            workflow.run_nonblock()
