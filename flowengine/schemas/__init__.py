"""Pydantic schemas for request/response validation and engine results.

Exports all schemas for convenient importing.
"""

from flowengine.schemas.base import BaseSchema
from flowengine.schemas.execution import (
    ExecuteWorkflowRequest,
    ExecutionCancelResponse,
    ExecutionLogEntry,
    ExecutionOptions,
    ExecutionResult,
    ExecutionStatusResponse,
    NodeExecutionSummary,
)
from flowengine.schemas.nodes import (
    NodeOperation,
    NodeParameter,
    NodeTypeDefinition,
    ParameterOption,
)
from flowengine.schemas.workflow import (
    ConnectionDefinition,
    NodeDefinition,
    WorkflowDefinition,
)

__all__ = [
    "BaseSchema",
    # Workflow definitions
    "ConnectionDefinition",
    "NodeDefinition",
    "WorkflowDefinition",
    # Node definitions
    "NodeOperation",
    "NodeParameter",
    "NodeTypeDefinition",
    "ParameterOption",
    # Execution
    "ExecuteWorkflowRequest",
    "ExecutionCancelResponse",
    "ExecutionLogEntry",
    "ExecutionOptions",
    "ExecutionResult",
    "ExecutionStatusResponse",
    "NodeExecutionSummary",
]
