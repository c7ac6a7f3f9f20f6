"""Litestar plugin for ASL workflow integration.

The plugin owns one :class:`WorkflowRegistry` and one
:class:`LocalExecutionEngine` per application, registers configured workflow
documents during app initialisation and makes both objects injectable into
route handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from litestar_asl.engine.local import LocalExecutionEngine
from litestar_asl.engine.registry import WorkflowRegistry

if TYPE_CHECKING:
    from litestar import Router
    from litestar.config.app import AppConfig

    from litestar_asl.runners.base import RunnerRegistry

__all__ = ["ASLPlugin", "ASLPluginConfig"]

logger = logging.getLogger(__name__)


@dataclass
class ASLPluginConfig:
    """Configuration for the ASLPlugin.

    Attributes:
        registry: Registry to serve. A new one is built from ``runners`` when omitted.
        engine: Engine to serve. A new one is built over the registry when omitted.
        runners: Runners that resolve Task resources for a plugin-built registry.
            ``None`` gives the default registry serving ``local://``.
        definitions: Workflow documents (objects or JSON text) registered during
            app initialisation, keyed by workflow name.
        dependency_key_registry: Handler argument name the registry is injected as.
        dependency_key_engine: Handler argument name the engine is injected as.
        enable_api: Mount the definition and execution controllers.
        api_path_prefix: Path the controllers are mounted under.
        api_guards: Guards applied to every API route.
        api_tags: OpenAPI tags applied to every API route.
        include_api_in_schema: Publish the API routes in the OpenAPI schema.
    """

    registry: WorkflowRegistry | None = None
    engine: LocalExecutionEngine | None = None
    runners: RunnerRegistry | None = None
    definitions: dict[str, dict[str, Any] | str] = field(default_factory=dict)
    dependency_key_registry: str = "workflow_registry"
    dependency_key_engine: str = "workflow_engine"
    enable_api: bool = True
    api_path_prefix: str = "/workflows"
    api_guards: list[Any] = field(default_factory=list)
    api_tags: list[str] = field(default_factory=lambda: ["Workflows"])
    include_api_in_schema: bool = True


class ASLPlugin(InitPluginProtocol):
    """Serve ASL workflows from a Litestar application.

    Example:
        Registering a document and starting it from a handler::

            from litestar import Litestar, post
            from litestar_asl import ASLPlugin, ASLPluginConfig, LocalExecutionEngine

            hello = {"StartAt": "Hello", "States": {"Hello": {"Type": "Pass", "End": True}}}


            @post("/orders/{order_id:int}/process")
            async def process_order(order_id: int, workflow_engine: LocalExecutionEngine) -> dict:
                execution = workflow_engine.start_execution("hello", input={"id": order_id})
                return {"execution_id": execution.id, "status": execution.status}


            app = Litestar(
                route_handlers=[process_order],
                plugins=[ASLPlugin(config=ASLPluginConfig(definitions={"hello": hello}))],
            )
    """

    __slots__ = ("_config", "_engine", "_registry")

    def __init__(self, config: ASLPluginConfig | None = None) -> None:
        self._config = config or ASLPluginConfig()
        self._registry: WorkflowRegistry | None = None
        self._engine: LocalExecutionEngine | None = None

    @property
    def registry(self) -> WorkflowRegistry:
        """The registry in use.

        Raises:
            RuntimeError: Before the application has been initialised.
        """
        if self._registry is None:
            msg = "ASLPlugin has not been initialized. Access registry after app startup."
            raise RuntimeError(msg)
        return self._registry

    @property
    def engine(self) -> LocalExecutionEngine:
        """The engine in use.

        Raises:
            RuntimeError: Before the application has been initialised.
        """
        if self._engine is None:
            msg = "ASLPlugin has not been initialized. Access engine after app startup."
            raise RuntimeError(msg)
        return self._engine

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Build the registry and engine, register documents and wire DI.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.

        Raises:
            InvalidWorkflowError: If one of the configured documents is malformed.
        """
        config = self._config
        registry = config.registry or WorkflowRegistry(runners=config.runners)
        self._registry = registry
        self._engine = config.engine or LocalExecutionEngine(registry=registry)

        for name, document in config.definitions.items():
            registry.register(name, document)
        logger.debug("Registered %d workflow documents", len(config.definitions))

        app_config.dependencies[config.dependency_key_registry] = Provide(self._provide_registry, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_engine] = Provide(self._provide_engine, sync_to_thread=False)

        if config.enable_api:
            app_config.route_handlers.append(self._build_router())
        return app_config

    def _provide_registry(self) -> WorkflowRegistry:
        return self.registry

    def _provide_engine(self) -> LocalExecutionEngine:
        return self.engine

    def _build_router(self) -> Router:
        from litestar import Router

        from litestar_asl.web.controllers import DefinitionController, ExecutionController

        return Router(
            path=self._config.api_path_prefix,
            route_handlers=[DefinitionController, ExecutionController],
            guards=self._config.api_guards,
            tags=self._config.api_tags,
            include_in_schema=self._config.include_api_in_schema,
        )
