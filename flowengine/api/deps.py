"""API dependencies.

Process-wide singletons shared by the API routes: the node registry, the
execution logger for the configured backend and the execution engine.
Tests replace them through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from flowengine.core.config import settings
from flowengine.db.session import async_session
from flowengine.services.workflow.engine import WorkflowExecutionEngine
from flowengine.services.workflow.execution_logger import (
    ExecutionLogger,
    create_execution_logger,
)
from flowengine.services.workflow.nodes.registry import NodeRegistry, get_registry

# =============================================================================
# Service Dependencies
# =============================================================================


@lru_cache
def get_execution_logger() -> ExecutionLogger:
    """Get the execution logger selected by ``EXECUTION_LOG_BACKEND``."""
    return create_execution_logger(settings.EXECUTION_LOG_BACKEND, async_session)


@lru_cache
def get_engine() -> WorkflowExecutionEngine:
    """Get the engine shared by all requests.

    A single engine instance keeps track of running and recently finished
    runs started through the API, which the status, result and cancel
    routes rely on.
    """
    return WorkflowExecutionEngine(get_registry(), get_execution_logger())


RegistryDep = Annotated[NodeRegistry, Depends(get_registry)]
EngineDep = Annotated[WorkflowExecutionEngine, Depends(get_engine)]


__all__ = [
    "EngineDep",
    "RegistryDep",
    "get_engine",
    "get_execution_logger",
]
