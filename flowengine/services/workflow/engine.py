"""Workflow execution engine.

Runs a workflow definition to a terminal status:

    Pending -> Running -> {Completed, Failed, Cancelled, Timeout}

The engine builds and validates the graph, then repeatedly asks the
topological sorter for the nodes whose dependencies are satisfied and
runs them as a wave, concurrently through ``asyncio.TaskGroup`` or one by
one in topological order. Conditional edges whose branch label was not
emitted never become ready, so untaken branches are skipped.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from flowengine.core.config import settings
from flowengine.core.logging import LogContext, get_logger
from flowengine.models.enums import ExecutionStatus
from flowengine.schemas.execution import (
    ExecutionOptions,
    ExecutionResult,
    NodeExecutionSummary,
)
from flowengine.schemas.workflow import WorkflowDefinition
from flowengine.services.workflow.builder import GraphBuilder
from flowengine.services.workflow.context import ExecutionContext
from flowengine.services.workflow.exceptions import (
    ExecutionCancelledError,
    ExecutionError,
    ExecutionNotFoundError,
    ExecutionNotRunningError,
    GraphValidationError,
    NodeExecutionError,
)
from flowengine.services.workflow.execution_logger import ExecutionLogger
from flowengine.services.workflow.graph import Graph
from flowengine.services.workflow.node_executor import NodeExecutor
from flowengine.services.workflow.nodes.base import CANCELLED_MESSAGE
from flowengine.services.workflow.nodes.registry import NodeRegistry, get_registry
from flowengine.services.workflow.sorter import TopologicalSorter

logger = get_logger(__name__)


@dataclass
class _ExecutionState:
    """Bookkeeping for one run owned by the engine."""

    execution_id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[ExecutionResult] | None = None
    result: ExecutionResult | None = None


class WorkflowExecutionEngine:
    """DAG-based workflow execution engine.

    Attributes:
        registry: Registry resolving node kinds.
        execution_logger: Audit trail writer shared with the node executor.
        history_limit: Number of finished runs kept for status and result
            lookups. Older finished runs are forgotten first.

    Example:
        >>> engine = WorkflowExecutionEngine()
        >>> result = await engine.execute(workflow, {"symbol": "AAPL"})
        >>> result.status
        'completed'
    """

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        execution_logger: ExecutionLogger | None = None,
        history_limit: int | None = None,
    ) -> None:
        self.registry = registry or get_registry()
        self.execution_logger = execution_logger or ExecutionLogger()
        self.history_limit = max(
            settings.EXECUTION_HISTORY_LIMIT if history_limit is None else history_limit, 0
        )
        self._builder = GraphBuilder()
        self._sorter = TopologicalSorter()
        self._node_executor = NodeExecutor(self.registry, self.execution_logger)
        self._executions: dict[str, _ExecutionState] = {}

    async def execute(
        self,
        workflow: WorkflowDefinition,
        input_data: Mapping[str, Any] | None = None,
        options: ExecutionOptions | None = None,
        user_id: str | None = None,
        execution_id: str | None = None,
    ) -> ExecutionResult:
        """Execute a workflow and wait for its terminal result.

        Graph and node failures are reported through the returned result,
        never raised.

        Args:
            workflow: The workflow definition to run.
            input_data: Run input, available as ``{{input.*}}`` and passed
                to the entry node.
            options: Timing and failure policy. Defaults come from settings.
            user_id: Id of the user starting the run.
            execution_id: Id to use for the run. Generated when omitted.

        Returns:
            The run's result.

        Raises:
            ExecutionError: If ``execution_id`` is already in use.
        """
        execution_id = execution_id or str(uuid.uuid4())
        if execution_id in self._executions:
            raise ExecutionError(f"Execution {execution_id} already exists")

        state = _ExecutionState(execution_id=execution_id, workflow_id=workflow.id)
        self._executions[execution_id] = state
        state.task = asyncio.create_task(
            self._run(
                state,
                workflow,
                dict(input_data or {}),
                options or ExecutionOptions.from_settings(),
                user_id,
            ),
            name=f"workflow-execution-{execution_id}",
        )
        return await state.task

    async def cancel(self, execution_id: str) -> None:
        """Request cancellation of a running execution.

        Sets the run's cancel event, which nodes observe cooperatively,
        and cancels the run's task so in-flight nodes stop at their next
        await.

        Raises:
            ExecutionNotFoundError: If the execution is unknown.
            ExecutionNotRunningError: If the execution already finished.
        """
        state = self._get_state(execution_id)
        if ExecutionStatus(state.status).is_terminal:
            raise ExecutionNotRunningError(execution_id, str(state.status))
        if state.cancel_event.is_set():
            return

        logger.info(
            f"Cancellation requested for execution {execution_id}",
            extra={"context": {"execution_id": execution_id}},
        )
        state.cancel_event.set()
        if (
            state.status == ExecutionStatus.RUNNING
            and state.task is not None
            and not state.task.done()
        ):
            state.task.cancel()

    def get_execution_status(self, execution_id: str) -> ExecutionStatus:
        """Raises ExecutionNotFoundError for unknown executions."""
        return ExecutionStatus(self._get_state(execution_id).status)

    def get_execution_result(self, execution_id: str) -> ExecutionResult | None:
        """Return the result of a finished execution, None otherwise."""
        state = self._executions.get(execution_id)
        return state.result if state is not None else None

    def _get_state(self, execution_id: str) -> _ExecutionState:
        state = self._executions.get(execution_id)
        if state is None:
            raise ExecutionNotFoundError(execution_id)
        return state

    async def _run(
        self,
        state: _ExecutionState,
        workflow: WorkflowDefinition,
        input_data: dict[str, Any],
        options: ExecutionOptions,
        user_id: str | None,
    ) -> ExecutionResult:
        started_at = datetime.now(UTC)
        start = time.perf_counter()
        summaries: list[NodeExecutionSummary] = []
        context = ExecutionContext.create(
            execution_id=state.execution_id,
            workflow_id=workflow.id,
            input_data=input_data,
            workflow_name=workflow.name,
        )

        with LogContext(execution_id=state.execution_id, workflow_id=workflow.id):
            await self.execution_logger.log_execution_start(
                state.execution_id, workflow.id, input_data
            )

            try:
                graph = self._builder.build_graph(workflow.nodes, workflow.connections)
                validation_errors = self._builder.validate_graph(graph)
            except GraphValidationError as e:
                validation_errors = list(e.errors)

            if validation_errors:
                return await self._finish(
                    state,
                    context,
                    ExecutionStatus.FAILED,
                    started_at,
                    start,
                    summaries,
                    error_message="Workflow validation failed",
                    validation_errors=validation_errors,
                )

            state.status = ExecutionStatus.RUNNING
            error_message: str | None = None
            try:
                async with asyncio.timeout(options.timeout):
                    failed = await self._run_waves(
                        graph, context, options, state, summaries, user_id
                    )
                status = ExecutionStatus.COMPLETED
                if failed:
                    error_message = f"Nodes failed: {', '.join(failed)}"
            except TimeoutError:
                status = ExecutionStatus.TIMEOUT
                error_message = f"Execution timed out after {options.timeout:g}s"
            except ExecutionCancelledError:
                status = ExecutionStatus.CANCELLED
                error_message = CANCELLED_MESSAGE
            except NodeExecutionError as e:
                status = ExecutionStatus.FAILED
                error_message = str(e)
            except asyncio.CancelledError:
                if not state.cancel_event.is_set():
                    # Cancelled from outside the engine
                    state.status = ExecutionStatus.CANCELLED
                    raise
                task = asyncio.current_task()
                if task is not None:
                    task.uncancel()
                status = ExecutionStatus.CANCELLED
                error_message = CANCELLED_MESSAGE
            except Exception as e:
                logger.exception(
                    f"Execution {state.execution_id} failed unexpectedly",
                    extra={"context": {"execution_id": state.execution_id}},
                )
                await self.execution_logger.log_error(
                    state.execution_id, "Unexpected execution error", exception=e
                )
                status = ExecutionStatus.FAILED
                error_message = f"Execution failed: {e}"

            output_node_id = options.output_node_id or workflow.output_node_id
            return await self._finish(
                state,
                context,
                status,
                started_at,
                start,
                summaries,
                error_message=error_message,
                output_node_id=output_node_id,
            )

    async def _run_waves(
        self,
        graph: Graph,
        context: ExecutionContext,
        options: ExecutionOptions,
        state: _ExecutionState,
        summaries: list[NodeExecutionSummary],
        user_id: str | None,
    ) -> list[str]:
        """Run ready nodes wave by wave until none are left.

        Returns:
            Ids of nodes that failed under ``continue_on_error``.

        Raises:
            ExecutionCancelledError: If the run was cancelled.
            NodeExecutionError: On the first node failure, unless
                ``continue_on_error`` is set.
        """
        completed: set[str] = set()
        failed: list[str] = []

        async def run_node(node_id: str) -> NodeExecutionSummary:
            summary = await self._node_executor.execute_node(
                graph,
                graph.get_node(node_id),
                context,
                options,
                cancel_event=state.cancel_event,
                user_id=user_id,
            )
            summaries.append(summary)
            return summary

        while True:
            if state.cancel_event.is_set():
                raise ExecutionCancelledError(state.execution_id)

            ready = self._sorter.get_executable_nodes(graph, completed, context.snapshot())
            if not ready:
                return failed

            wave: list[NodeExecutionSummary] = []
            if options.enable_parallel_execution and len(ready) > 1:
                async with asyncio.TaskGroup() as tg:
                    tasks = [tg.create_task(run_node(node_id)) for node_id in ready]
                wave = [task.result() for task in tasks]
            else:
                for node_id in ready:
                    summary = await run_node(node_id)
                    wave.append(summary)
                    if summary.cancelled:
                        break
                    if not summary.success and not options.continue_on_error:
                        break

            completed.update(summary.node_id for summary in wave)

            if any(summary.cancelled for summary in wave):
                raise ExecutionCancelledError(state.execution_id)

            wave_failures = [summary for summary in wave if not summary.success]
            if wave_failures:
                if not options.continue_on_error:
                    first = wave_failures[0]
                    raise NodeExecutionError(first.node_id, first.error_message or "failed")
                failed.extend(summary.node_id for summary in wave_failures)

    async def _finish(
        self,
        state: _ExecutionState,
        context: ExecutionContext,
        status: ExecutionStatus,
        started_at: datetime,
        start: float,
        summaries: list[NodeExecutionSummary],
        error_message: str | None = None,
        validation_errors: list[str] | None = None,
        output_node_id: str | None = None,
    ) -> ExecutionResult:
        if output_node_id:
            output_data: dict[str, Any] = context.get_node_output(output_node_id)
        else:
            output_data = context.get_all_outputs()

        result = ExecutionResult(
            execution_id=state.execution_id,
            workflow_id=state.workflow_id,
            status=status,
            output_data=output_data,
            error_message=error_message,
            validation_errors=validation_errors or [],
            started_at=started_at,
            completed_at=datetime.now(UTC),
            duration_ms=(time.perf_counter() - start) * 1000,
            node_executions=list(summaries),
        )
        state.status = status
        state.result = result
        self._remember_finished(state)
        await self.execution_logger.log_execution_complete(result)
        return result

    def _remember_finished(self, state: _ExecutionState) -> None:
        """Move ``state`` behind older runs and forget the oldest finished ones."""
        self._executions.pop(state.execution_id, None)
        self._executions[state.execution_id] = state

        finished = [
            execution_id
            for execution_id, tracked in self._executions.items()
            if ExecutionStatus(tracked.status).is_terminal
        ]
        for execution_id in finished[: max(len(finished) - self.history_limit, 0)]:
            del self._executions[execution_id]


__all__ = ["WorkflowExecutionEngine"]
