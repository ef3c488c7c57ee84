"""Execution API Router.

Endpoints to run workflow definitions, inspect finished runs, cancel
running ones and read their audit trail.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, status

from flowengine.api.deps import (  # noqa: TC001 - Required at runtime for FastAPI
    EngineDep,
)
from flowengine.schemas.execution import (
    ExecuteWorkflowRequest,
    ExecutionCancelResponse,
    ExecutionLogEntry,
    ExecutionResult,
    ExecutionStatusResponse,
)
from flowengine.services.workflow.exceptions import (
    ExecutionError,
    ExecutionNotFoundError,
    ExecutionNotRunningError,
)

router = APIRouter()


# =============================================================================
# Path and Query Parameters
# =============================================================================


ExecutionIdPath = Annotated[
    str,
    Path(
        ...,
        description="Identifier of the workflow execution",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    ),
]

NodeIdQuery = Annotated[
    str | None,
    Query(description="Only return entries of this node"),
]


# =============================================================================
# Execution Endpoints
# =============================================================================


@router.post(
    "",
    response_model=ExecutionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Execute workflow",
    description="Run a workflow definition and return its result once it finishes.",
)
async def execute_workflow(
    engine: EngineDep,
    request: ExecuteWorkflowRequest,
) -> ExecutionResult:
    """Execute a workflow definition.

    Graph validation failures and node failures are reported in the
    result's status, not as HTTP errors.

    Args:
        engine: Execution engine.
        request: Workflow definition, input data and options.

    Returns:
        The execution result.

    Raises:
        HTTPException: 409 if the requested execution id is already in use.
    """
    try:
        return await engine.execute(
            request.workflow,
            input_data=request.input_data,
            options=request.options,
            user_id=request.user_id,
        )
    except ExecutionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e


@router.get(
    "/{execution_id}",
    response_model=ExecutionResult,
    summary="Get execution",
    description="Get the result of a finished execution.",
)
async def get_execution(engine: EngineDep, execution_id: ExecutionIdPath) -> ExecutionResult:
    """Get an execution result.

    Raises:
        HTTPException: 404 if the execution is unknown or still running.
    """
    result = engine.get_execution_result(execution_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution with ID {execution_id} not found",
        )
    return result


@router.get(
    "/{execution_id}/status",
    response_model=ExecutionStatusResponse,
    summary="Get execution status",
)
async def get_execution_status(
    engine: EngineDep,
    execution_id: ExecutionIdPath,
) -> ExecutionStatusResponse:
    try:
        execution_status = engine.get_execution_status(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    return ExecutionStatusResponse(execution_id=execution_id, status=execution_status)


@router.post(
    "/{execution_id}/cancel",
    response_model=ExecutionCancelResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel execution",
    description="Request cancellation of a running workflow execution.",
)
async def cancel_execution(
    engine: EngineDep,
    execution_id: ExecutionIdPath,
) -> ExecutionCancelResponse:
    """Cancel a running workflow execution.

    Raises:
        HTTPException: 404 if execution not found.
        HTTPException: 409 if execution is not running.
    """
    try:
        await engine.cancel(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except ExecutionNotRunningError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return ExecutionCancelResponse(execution_id=execution_id)


# =============================================================================
# Execution Log Endpoints
# =============================================================================


@router.get(
    "/{execution_id}/logs",
    response_model=list[ExecutionLogEntry],
    summary="Get execution logs",
    description="Get the audit trail of an execution, optionally for one node.",
)
async def get_execution_logs(
    engine: EngineDep,
    execution_id: ExecutionIdPath,
    node_id: NodeIdQuery = None,
) -> list[ExecutionLogEntry]:
    if node_id is not None:
        return await engine.execution_logger.get_node_logs(execution_id, node_id)
    return await engine.execution_logger.get_execution_logs(execution_id)
