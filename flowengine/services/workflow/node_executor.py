"""Single node execution.

``NodeExecutor`` runs one graph node to a terminal outcome: it resolves
the node kind, assembles the node's input, enforces the per-node timeout,
retries failed attempts, records the result in the execution context and
writes the audit trail. No node-level exception escapes ``execute_node``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from flowengine.core.logging import get_logger
from flowengine.schemas.execution import ExecutionOptions, NodeExecutionSummary
from flowengine.services.workflow.context import ExecutionContext
from flowengine.services.workflow.exceptions import NodeTimeoutError
from flowengine.services.workflow.execution_logger import ExecutionLogger
from flowengine.services.workflow.graph import Graph, Node
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult
from flowengine.services.workflow.nodes.errors import NodeNotFoundError
from flowengine.services.workflow.nodes.registry import NodeRegistry
from flowengine.services.workflow.sorter import CONDITIONAL_OUTPUT_KEY

logger = get_logger(__name__)

# Node configuration keys, durations in milliseconds
TIMEOUT_KEY = "timeout"
MAX_RETRIES_KEY = "maxRetries"
RETRY_DELAY_KEY = "retryDelay"

MIN_NODE_TIMEOUT_MS = 1000


def _config_number(configuration: Mapping[str, Any], key: str) -> float | None:
    value = configuration.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class NodeExecutor:
    """Executes individual workflow nodes.

    Attributes:
        registry: Registry resolving node type tags to node classes.
        execution_logger: Audit trail writer, optional.
    """

    def __init__(
        self,
        registry: NodeRegistry,
        execution_logger: ExecutionLogger | None = None,
    ) -> None:
        self.registry = registry
        self.execution_logger = execution_logger

    def resolve_timeout(self, node: Node, options: ExecutionOptions) -> float:
        """Per-node timeout in seconds.

        The node's ``timeout`` configuration (milliseconds, at least one
        second) wins over ``options.node_timeout``.
        """
        timeout_ms = _config_number(node.configuration, TIMEOUT_KEY)
        if timeout_ms is None or timeout_ms <= 0:
            return options.node_timeout
        return max(timeout_ms, MIN_NODE_TIMEOUT_MS) / 1000

    def resolve_retry_policy(self, node: Node, options: ExecutionOptions) -> tuple[int, float]:
        """Return ``(max_retries, retry_delay_seconds)`` for a node."""
        max_retries = _config_number(node.configuration, MAX_RETRIES_KEY)
        retry_delay_ms = _config_number(node.configuration, RETRY_DELAY_KEY)
        return (
            max(int(max_retries), 0) if max_retries is not None else options.max_retries,
            max(retry_delay_ms, 0) / 1000 if retry_delay_ms is not None else options.retry_delay,
        )

    async def execute_node(
        self,
        graph: Graph,
        node: Node,
        context: ExecutionContext,
        options: ExecutionOptions,
        cancel_event: asyncio.Event | None = None,
        user_id: str | None = None,
    ) -> NodeExecutionSummary:
        """Run ``node`` and record its outcome.

        Args:
            graph: Graph the node belongs to, used to assemble its input.
            node: The node to run.
            context: Execution context of the run.
            options: Run options supplying timeout and retry fallbacks.
            cancel_event: Cooperative cancellation signal of the run.
            user_id: Id of the user who started the run.

        Returns:
            Summary of the node's final attempt.
        """
        started_at = datetime.now(UTC)
        start = time.perf_counter()
        retry_count = 0
        timed_out = False

        try:
            instance = self.registry.create(node.type)
        except NodeNotFoundError as e:
            result = NodeExecutionResult.error(str(e), exception=e)
        else:
            input_data = context.get_input_for_node(graph, node.id)
            timeout = self.resolve_timeout(node, options)
            max_retries, retry_delay = self.resolve_retry_policy(node, options)

            while True:
                node_context = NodeContext(
                    execution_id=context.execution_id,
                    workflow_id=context.workflow_id,
                    node_id=node.id,
                    node_name=node.name or node.id,
                    parameters=dict(node.parameters),
                    input_data=input_data,
                    workflow_context=context.snapshot(),
                    user_id=user_id,
                    cancel_event=cancel_event,
                    variable_setter=context.set_variable,
                )
                result, timed_out = await self._run_attempt(instance, node, node_context, timeout)
                if result.success or result.cancelled or retry_count >= max_retries:
                    break

                retry_count += 1
                await self._log_retry(context.execution_id, node, result, retry_count, max_retries)
                if await self._wait_retry_delay(retry_delay, cancel_event):
                    result = NodeExecutionResult.cancelled_result()
                    timed_out = False
                    break

        conditional_output = self._extract_conditional_output(result)
        if result.success and conditional_output is None and CONDITIONAL_OUTPUT_KEY in result.output:
            result = NodeExecutionResult.error(
                f"Node emitted an invalid conditional output: "
                f"{result.output[CONDITIONAL_OUTPUT_KEY]!r}"
            )

        await context.set_node_result(node.id, result, conditional_output)

        summary = NodeExecutionSummary(
            node_id=node.id,
            node_type=node.type,
            node_name=node.name or node.id,
            success=result.success,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            duration_ms=(time.perf_counter() - start) * 1000,
            error_message=result.error_message,
            timed_out=timed_out,
            cancelled=result.cancelled,
            retry_count=retry_count,
            output=dict(result.output),
            conditional_output=conditional_output,
        )
        if self.execution_logger is not None:
            await self.execution_logger.log_node_execution(context.execution_id, summary)
        return summary

    async def _run_attempt(
        self,
        instance: BaseNode,
        node: Node,
        node_context: NodeContext,
        timeout: float,
    ) -> tuple[NodeExecutionResult, bool]:
        """Run one attempt under the node timeout.

        Returns:
            The attempt's result and whether it timed out.
        """
        try:
            async with asyncio.timeout(timeout):
                return await instance.execute(node_context), False
        except TimeoutError:
            error = NodeTimeoutError(node_id=node.id, timeout_seconds=timeout)
            logger.warning(
                f"Node {node.id} timed out after {timeout:g}s",
                extra={
                    "context": {
                        "execution_id": node_context.execution_id,
                        "node_id": node.id,
                        "timeout_seconds": timeout,
                    }
                },
            )
            return NodeExecutionResult.error(str(error), exception=error), True

    @staticmethod
    def _extract_conditional_output(result: NodeExecutionResult) -> str | None:
        """Return the single branch label a successful node emitted, if any."""
        if not result.success:
            return None
        label = result.output.get(CONDITIONAL_OUTPUT_KEY)
        if isinstance(label, str) and label:
            return label
        return None

    @staticmethod
    async def _wait_retry_delay(delay: float, cancel_event: asyncio.Event | None) -> bool:
        """Sleep before the next attempt.

        Returns:
            True if the run was cancelled while waiting.
        """
        if cancel_event is None:
            await asyncio.sleep(delay)
            return False
        if cancel_event.is_set():
            return True
        try:
            async with asyncio.timeout(delay):
                await cancel_event.wait()
        except TimeoutError:
            return False
        return True

    async def _log_retry(
        self,
        execution_id: str,
        node: Node,
        result: NodeExecutionResult,
        attempt: int,
        max_retries: int,
    ) -> None:
        if self.execution_logger is None:
            return
        await self.execution_logger.log_info(
            execution_id,
            f"Retrying node '{node.name or node.id}' ({attempt}/{max_retries}): "
            f"{result.error_message}",
            node_id=node.id,
            details={"attempt": attempt, "max_retries": max_retries},
        )


__all__ = ["NodeExecutor"]
