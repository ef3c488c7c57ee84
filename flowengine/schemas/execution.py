"""Execution schemas.

Defines the engine's run options, the whole-run result with its per-node
summaries, audit log entries and the request/response bodies of the
execution API.
"""

from __future__ import annotations

from datetime import UTC, datetime  # noqa: TC003 - Required at runtime for Pydantic
from typing import Any

from pydantic import Field, field_validator

from flowengine.core.config import settings
from flowengine.models.enums import ExecutionStatus, LogLevel
from flowengine.schemas.base import BaseSchema
from flowengine.schemas.workflow import WorkflowDefinition

# =============================================================================
# Execution Options
# =============================================================================


class ExecutionOptions(BaseSchema):
    """Timing and failure policy for one run.

    Durations are in seconds.
    """

    continue_on_error: bool = Field(
        default=False,
        description="Keep scheduling independent nodes after a node fails",
    )
    timeout: float = Field(default=300.0, gt=0, description="Run-level timeout")
    max_retries: int = Field(default=0, ge=0, le=10)
    retry_delay: float = Field(default=5.0, ge=0, description="Fixed delay between attempts")
    enable_parallel_execution: bool = True
    node_timeout: float = Field(default=60.0, gt=0, description="Per-node timeout")
    output_node_id: str | None = Field(
        default=None,
        description="Node whose output becomes the run output",
    )

    @classmethod
    def from_settings(cls, **overrides: Any) -> ExecutionOptions:
        """Build options from application settings, then apply overrides."""
        values: dict[str, Any] = {
            "timeout": settings.EXECUTION_TIMEOUT_SECONDS,
            "node_timeout": settings.NODE_TIMEOUT_SECONDS,
            "max_retries": settings.EXECUTION_MAX_RETRIES,
            "retry_delay": settings.EXECUTION_RETRY_DELAY_SECONDS,
            "enable_parallel_execution": settings.EXECUTION_PARALLEL,
        }
        values.update(overrides)
        return cls(**values)


# =============================================================================
# Execution Results
# =============================================================================


class NodeExecutionSummary(BaseSchema):
    """Outcome of one attempted node."""

    node_id: str
    node_type: str
    node_name: str
    success: bool
    started_at: datetime
    completed_at: datetime
    duration_ms: float = Field(default=0.0, ge=0)
    error_message: str | None = None
    timed_out: bool = False
    cancelled: bool = False
    retry_count: int = Field(default=0, ge=0)
    output: dict[str, Any] = Field(default_factory=dict)
    conditional_output: str | None = None


class ExecutionResult(BaseSchema):
    """Outcome of a whole run.

    ``node_executions`` lists every node that was attempted, in completion
    order. A node that is absent was never started.
    """

    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    output_data: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    validation_errors: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float = Field(default=0.0, ge=0)
    node_executions: list[NodeExecutionSummary] = Field(default_factory=list)

    def get_node_execution(self, node_id: str) -> NodeExecutionSummary | None:
        return next((n for n in self.node_executions if n.node_id == node_id), None)

    @property
    def executed_node_ids(self) -> list[str]:
        return [n.node_id for n in self.node_executions]


# =============================================================================
# Execution Log
# =============================================================================


class ExecutionLogEntry(BaseSchema):
    """A single audit trail entry."""

    execution_id: str
    node_id: str | None = None
    level: LogLevel = LogLevel.INFO
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    details: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# API Bodies
# =============================================================================


class ExecuteWorkflowRequest(BaseSchema):
    """Request body for starting an execution."""

    workflow: WorkflowDefinition
    input_data: dict[str, Any] = Field(default_factory=dict)
    options: ExecutionOptions | None = None
    user_id: str | None = None

    @field_validator("workflow")
    @classmethod
    def require_nodes(cls, v: WorkflowDefinition) -> WorkflowDefinition:
        if not v.nodes:
            raise ValueError("workflow must contain at least one node")
        return v


class ExecutionStatusResponse(BaseSchema):
    execution_id: str
    status: ExecutionStatus


class ExecutionCancelResponse(BaseSchema):
    execution_id: str
    message: str = "Cancellation requested"


__all__ = [
    "ExecuteWorkflowRequest",
    "ExecutionCancelResponse",
    "ExecutionLogEntry",
    "ExecutionOptions",
    "ExecutionResult",
    "ExecutionStatusResponse",
    "NodeExecutionSummary",
]
