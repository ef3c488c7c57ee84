"""Graph validation and workflow execution exceptions.

This module defines the exceptions raised by the graph builder, the
topological sorter, the expression evaluator and the execution engine.
Node-level failures never surface as these exceptions past the node
executor; they are captured into ``NodeExecutionResult`` instead.
"""

from typing import Any

from flowengine.core.exceptions import AppError


class WorkflowError(AppError):
    """Base exception for the workflow execution core."""


# ============================================================================
# Graph Validation Exceptions
# ============================================================================


class GraphValidationError(WorkflowError):
    """Raised when a workflow graph is structurally invalid.

    Validation is exhaustive, so ``errors`` holds every violation found
    in a single pass rather than only the first one.

    Attributes:
        errors: Human-readable validation errors.
        error_code: Machine-readable error code for API responses.
        details: Additional error context as dictionary.
    """

    def __init__(
        self,
        errors: list[str],
        error_code: str = "GRAPH_INVALID",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.errors = list(errors)
        self.error_code = error_code
        self.details = details or {}
        super().__init__(
            "Workflow graph validation failed: " + "; ".join(self.errors)
        )


class GraphBuildError(GraphValidationError):
    """Raised when a graph cannot be constructed from its definition."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__([message], error_code="GRAPH_BUILD_FAILED", details=details)


class CycleDetectedError(GraphValidationError):
    """Raised when a cycle is detected in the graph.

    Attributes:
        cycles: Node id paths, each one closing back on its first node.
    """

    def __init__(self, cycles: list[list[str]]) -> None:
        self.cycles = cycles
        super().__init__(
            [f"Cycle detected: {' -> '.join(cycle)}" for cycle in cycles]
            or ["Cycle detected"],
            error_code="CYCLE_DETECTED",
            details={"cycles": cycles},
        )


# ============================================================================
# Workflow Execution Exceptions
# ============================================================================


class ExecutionError(WorkflowError):
    """Base exception for workflow execution errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NodeTimeoutError(ExecutionError):
    """Raised when a node execution exceeds its timeout.

    Attributes:
        node_id: ID of the node that timed out.
        timeout_seconds: Timeout duration in seconds.
    """

    def __init__(self, node_id: str, timeout_seconds: float) -> None:
        super().__init__(f"Node execution timed out after {timeout_seconds:g}s")
        self.node_id = node_id
        self.timeout_seconds = timeout_seconds


class NodeExecutionError(ExecutionError):
    """Raised when a node's own logic reports a failure.

    Attributes:
        node_id: ID of the node that failed.
        original_error: The original exception that caused the failure.
    """

    def __init__(
        self,
        node_id: str,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(f"Node {node_id} execution failed: {message}")
        self.node_id = node_id
        self.reason = message
        self.original_error = original_error


class ExecutionCancelledError(ExecutionError):
    """Raised when a workflow execution is cancelled by its caller.

    Attributes:
        execution_id: ID of the cancelled execution.
    """

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution {execution_id} was cancelled")
        self.execution_id = execution_id


class ExecutionNotFoundError(ExecutionError):
    """Raised when an execution id is not known to the engine."""

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution {execution_id} not found")
        self.execution_id = execution_id


class ExecutionNotRunningError(ExecutionError):
    """Raised when cancelling an execution that already finished.

    Attributes:
        execution_id: ID of the execution.
        status: The execution's terminal status.
    """

    def __init__(self, execution_id: str, status: str) -> None:
        super().__init__(f"Execution {execution_id} is not running (status: {status})")
        self.execution_id = execution_id
        self.status = status


class ContextWriteError(ExecutionError):
    """Raised when a node output would overwrite an existing context entry."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Output for node {node_id} has already been recorded")
        self.node_id = node_id


__all__ = [
    "ContextWriteError",
    "CycleDetectedError",
    "ExecutionCancelledError",
    "ExecutionError",
    "ExecutionNotFoundError",
    "ExecutionNotRunningError",
    "GraphBuildError",
    "GraphValidationError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "WorkflowError",
]
