"""Workflow registry for managing named workflow definitions."""

from __future__ import annotations

import logging
from typing import Any

from litestar_asl.core.definition import WorkflowDefinition
from litestar_asl.exceptions import WorkflowNotFoundError
from litestar_asl.runners.base import RunnerRegistry

__all__ = ["WorkflowRegistry"]

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Registry for storing and retrieving workflow definitions by name.

    Attributes:
        runners: Registry used to resolve Task resources of registered definitions.
        _definitions: Map of workflow names to their parsed definitions.
    """

    def __init__(self, runners: RunnerRegistry | None = None) -> None:
        """Initialize an empty workflow registry.

        Args:
            runners: Registry shared by every registered definition. Defaults to
                a registry serving ``local://``.
        """
        self.runners = runners if runners is not None else RunnerRegistry.default()
        self._definitions: dict[str, WorkflowDefinition] = {}

    def register(self, name: str, payload: dict[str, Any] | str | WorkflowDefinition) -> WorkflowDefinition:
        """Parse a workflow document and store it under ``name``.

        A definition already registered under the same name is replaced.

        Args:
            name: The workflow name.
            payload: The workflow document, or an already-parsed definition.

        Returns:
            The stored definition.

        Raises:
            InvalidWorkflowError: If the document is malformed.

        Example:
            >>> registry = WorkflowRegistry()
            >>> registry.register("hello", {"StartAt": "S", "States": {"S": {"Type": "Succeed"}}})
            WorkflowDefinition('hello')
        """
        if isinstance(payload, WorkflowDefinition):
            definition = payload
        else:
            definition = WorkflowDefinition(payload, name=name, runners=self.runners)
        self._definitions[name] = definition
        logger.info("Registered workflow [%s]", name)
        return definition

    def get_definition(self, name: str) -> WorkflowDefinition:
        """Retrieve a workflow definition by name.

        Raises:
            WorkflowNotFoundError: If no workflow is registered under ``name``.
        """
        if name not in self._definitions:
            raise WorkflowNotFoundError(name)
        return self._definitions[name]

    def list_definitions(self) -> list[WorkflowDefinition]:
        """List all registered workflow definitions, in registration order."""
        return list(self._definitions.values())

    def unregister(self, name: str) -> None:
        """Remove a workflow from the registry. Unknown names are ignored."""
        self._definitions.pop(name, None)

    def has_workflow(self, name: str) -> bool:
        return name in self._definitions
