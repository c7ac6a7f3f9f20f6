"""REST API for litestar-asl.

The API is mounted by :class:`~litestar_asl.plugin.ASLPlugin` when
``enable_api`` is set (the default) and includes controllers for workflow
definitions and executions.

Example:
    Mounting the API under a custom prefix with a guard::

        from litestar import Litestar
        from litestar_asl import ASLPlugin, ASLPluginConfig

        config = ASLPluginConfig(
            api_path_prefix="/api/v1/workflows",
            api_guards=[require_auth_guard],
        )

        app = Litestar(plugins=[ASLPlugin(config=config)])
"""

from __future__ import annotations

from litestar_asl.web.controllers import DefinitionController, ExecutionController
from litestar_asl.web.dto import (
    DefinitionDTO,
    ExecutionDetailDTO,
    ExecutionDTO,
    GraphDTO,
    StartExecutionDTO,
    TransitionDTO,
)

__all__ = [
    "DefinitionController",
    "DefinitionDTO",
    "ExecutionController",
    "ExecutionDTO",
    "ExecutionDetailDTO",
    "GraphDTO",
    "StartExecutionDTO",
    "TransitionDTO",
]
