"""REST API controllers for workflow management.

This module provides two controller classes:
- DefinitionController: List and inspect registered workflow definitions
- ExecutionController: Start, monitor, and step executions
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from litestar import Controller, get, post
from litestar.exceptions import ClientException, HTTPException, NotFoundException
from litestar.params import Parameter
from litestar.status_codes import HTTP_201_CREATED, HTTP_409_CONFLICT

from litestar_asl.core.types import WorkflowStatus
from litestar_asl.engine.local import LocalExecutionEngine  # noqa: TC001 - needed for DI
from litestar_asl.engine.registry import WorkflowRegistry  # noqa: TC001 - needed for DI
from litestar_asl.exceptions import (
    ExecutionNotFoundError,
    InvalidWorkflowError,
    WorkflowAlreadyCompletedError,
    WorkflowNotFoundError,
)
from litestar_asl.web.dto import (
    DefinitionDTO,
    ExecutionDetailDTO,
    ExecutionDTO,
    GraphDTO,
    StartExecutionDTO,
    TransitionDTO,
)

if TYPE_CHECKING:
    from litestar_asl.core.definition import WorkflowDefinition
    from litestar_asl.engine.workflow import Workflow

__all__ = [
    "DefinitionController",
    "ExecutionController",
]


class DefinitionController(Controller):
    """API controller for workflow definitions.

    Tags: Workflow Definitions
    """

    path = "/definitions"
    tags: ClassVar[list[str]] = ["Workflow Definitions"]

    @get("/")
    async def list_definitions(self, workflow_registry: WorkflowRegistry) -> list[DefinitionDTO]:
        """List all registered workflow definitions.

        Args:
            workflow_registry: Injected workflow registry.

        Returns:
            List of workflow definition DTOs.
        """
        return [_definition_dto(definition) for definition in workflow_registry.list_definitions()]

    @get("/{name:str}")
    async def get_definition(self, name: str, workflow_registry: WorkflowRegistry) -> DefinitionDTO:
        """Get a specific workflow definition by name.

        Raises:
            NotFoundException: If workflow definition not found.
        """
        return _definition_dto(_lookup_definition(workflow_registry, name))

    @get("/{name:str}/graph")
    async def get_definition_graph(self, name: str, workflow_registry: WorkflowRegistry) -> GraphDTO:
        """Get the MermaidJS rendering of a workflow graph.

        Args:
            name: The workflow name.
            workflow_registry: Injected workflow registry.

        Returns:
            Graph DTO with the MermaidJS source.

        Raises:
            NotFoundException: If workflow definition not found.
        """
        definition = _lookup_definition(workflow_registry, name)
        return GraphDTO(name=name, mermaid_source=definition.to_mermaid())


class ExecutionController(Controller):
    """API controller for workflow executions.

    Executions run until they block; a blocked execution moves on when it is
    stepped again.

    Tags: Workflow Executions
    """

    path = "/executions"
    tags: ClassVar[list[str]] = ["Workflow Executions"]

    @post("/", status_code=HTTP_201_CREATED)
    async def start_execution(
        self,
        data: StartExecutionDTO,
        workflow_engine: LocalExecutionEngine,
    ) -> ExecutionDetailDTO:
        """Start a new execution of a registered workflow.

        Args:
            data: Execution start parameters.
            workflow_engine: Injected execution engine.

        Returns:
            Execution detail DTO, as it stands once the execution first blocks.

        Raises:
            NotFoundException: If workflow definition not found.
            ClientException: If the input or credentials are malformed.
        """
        try:
            workflow = workflow_engine.start_execution(
                data.definition_name,
                input=data.input,
                credentials=data.credentials,
            )
        except WorkflowNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        except InvalidWorkflowError as e:
            raise ClientException(detail=str(e)) from e
        return _execution_detail_dto(workflow)

    @get("/")
    async def list_executions(
        self,
        workflow_engine: LocalExecutionEngine,
        status: WorkflowStatus | None = Parameter(
            default=None,
            description="Filter by status",
        ),
        definition_name: str | None = Parameter(
            default=None,
            description="Filter by workflow name",
        ),
    ) -> list[ExecutionDTO]:
        """List executions with optional filtering.

        Args:
            workflow_engine: Injected execution engine.
            status: Optional status filter.
            definition_name: Optional workflow name filter.

        Returns:
            List of execution DTOs.
        """
        executions = workflow_engine.list_executions(status=status)
        if definition_name is not None:
            executions = [workflow for workflow in executions if workflow.name == definition_name]
        return [_execution_dto(workflow) for workflow in executions]

    @get("/{execution_id:str}")
    async def get_execution(self, execution_id: str, workflow_engine: LocalExecutionEngine) -> ExecutionDetailDTO:
        """Get detailed execution information.

        Raises:
            NotFoundException: If execution not found.
        """
        try:
            workflow = workflow_engine.get_execution(execution_id)
        except ExecutionNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return _execution_detail_dto(workflow)

    @post("/{execution_id:str}/step")
    async def step_execution(self, execution_id: str, workflow_engine: LocalExecutionEngine) -> ExecutionDetailDTO:
        """Step an execution until it blocks or ends.

        Args:
            execution_id: The execution ID.
            workflow_engine: Injected execution engine.

        Returns:
            Execution detail DTO after stepping.

        Raises:
            NotFoundException: If execution not found.
            HTTPException: 409 if the execution has already ended.
        """
        try:
            workflow = workflow_engine.step_execution(execution_id)
        except ExecutionNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        except WorkflowAlreadyCompletedError as e:
            raise HTTPException(status_code=HTTP_409_CONFLICT, detail=str(e)) from e
        return _execution_detail_dto(workflow)


def _lookup_definition(registry: WorkflowRegistry, name: str) -> WorkflowDefinition:
    try:
        return registry.get_definition(name)
    except WorkflowNotFoundError as e:
        raise NotFoundException(detail=str(e)) from e


def _definition_dto(definition: WorkflowDefinition) -> DefinitionDTO:
    return DefinitionDTO(
        name=definition.name,
        comment=definition.comment,
        start_at=definition.start_at,
        states={state_name: state.state_type.value for state_name, state in definition.states.items()},
        transitions=[
            TransitionDTO(source=state_name, target=target, label=label)
            for state_name, state in definition.states.items()
            for label, target in state.transitions()
        ],
        end_states=[state_name for state_name, state in definition.states.items() if state.end],
    )


def _execution_dto(workflow: Workflow) -> ExecutionDTO:
    context = workflow.context
    return ExecutionDTO(
        id=workflow.id,
        definition_name=workflow.name,
        status=workflow.status.value,
        current_state=context.state_name,
        started_at=context.execution.start_time,
        ended_at=context.execution.end_time,
        error=context.state.error if workflow.ended else None,
        cause=context.state.cause if workflow.ended else None,
    )


def _execution_detail_dto(workflow: Workflow) -> ExecutionDetailDTO:
    summary = _execution_dto(workflow)
    return ExecutionDetailDTO(
        **vars(summary),
        input=workflow.context.execution.input,
        output=workflow.output,
        state_history=list(workflow.context.state_history),
    )
