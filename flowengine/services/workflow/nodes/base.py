"""Base node abstract class.

Every node kind derives from ``BaseNode`` and implements
``execute_internal``. The base class owns the lifecycle that is the same
for every kind:

1. Check cancellation before starting
2. Validate required parameters (all missing names in one error)
3. Evaluate ``{{...}}`` expressions against the workflow context
4. Run the kind-specific logic
5. Normalize errors into a failed ``NodeExecutionResult``

Cooperative cancellation (the run's cancel event) becomes a cancelled
result. Task cancellation (``asyncio.CancelledError``) is control flow for
the timeouts above the node and is re-raised untouched.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from flowengine.core.logging import get_logger
from flowengine.models.enums import NodeCategory
from flowengine.schemas.nodes import NodeOperation, NodeTypeDefinition
from flowengine.services.workflow.exceptions import ExecutionCancelledError
from flowengine.services.workflow.expressions import evaluate_parameters
from flowengine.services.workflow.nodes.errors import NodeParameterError

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Execution cancelled"


@dataclass
class NodeExecutionResult:
    """Normalized outcome of one node execution.

    A failed result never carries partial output: ``output`` is empty and
    the error fields are set.

    Attributes:
        success: Whether the node completed its work.
        output: Output map, addressable downstream as ``{{node_id.key}}``.
        error_message: Failure description when ``success`` is False.
        exception: The original exception, if one was raised.
        metadata: Free-form metadata (timings, status codes).
        cancelled: The failure was caused by cancellation.
    """

    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    exception: BaseException | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False

    @classmethod
    def ok(
        cls,
        output: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> NodeExecutionResult:
        return cls(success=True, output=dict(output or {}), metadata=dict(metadata or {}))

    @classmethod
    def error(
        cls,
        message: str,
        exception: BaseException | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> NodeExecutionResult:
        return cls(
            success=False,
            error_message=message,
            exception=exception,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def cancelled_result(cls, exception: BaseException | None = None) -> NodeExecutionResult:
        return cls(
            success=False,
            error_message=CANCELLED_MESSAGE,
            exception=exception,
            cancelled=True,
        )


@dataclass
class NodeContext:
    """Everything a node may read while it runs.

    ``workflow_context`` is a read-only snapshot; nodes that need to
    publish workflow variables do so through ``set_variable``, which the
    node executor binds to the run's context.
    """

    execution_id: str
    workflow_id: str
    node_id: str
    node_name: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    input_data: dict[str, Any] = field(default_factory=dict)
    workflow_context: Mapping[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    cancel_event: asyncio.Event | None = None
    variable_setter: Callable[[str, Any], Awaitable[None]] | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise ExecutionCancelledError(self.execution_id)

    async def set_variable(self, name: str, value: Any) -> None:
        if self.variable_setter is not None:
            await self.variable_setter(name, value)


class BaseNode(ABC):
    """Abstract base class for all node kinds.

    Subclasses set the class attributes below and implement
    ``execute_internal``.

    Example:
        class EchoNode(BaseNode):
            type = "echo"
            display_name = "Echo"
            category = NodeCategory.PROCESSING

            async def execute_internal(self, context, parameters):
                return NodeExecutionResult.ok(context.input_data)
    """

    type: ClassVar[str]
    display_name: ClassVar[str]
    category: ClassVar[NodeCategory]
    description: ClassVar[str] = ""
    operations: ClassVar[list[NodeOperation]] = []

    @classmethod
    def get_definition(cls) -> NodeTypeDefinition:
        return NodeTypeDefinition(
            type=cls.type,
            display_name=cls.display_name,
            category=cls.category,
            description=cls.description,
            operations=list(cls.operations),
        )

    async def execute(self, context: NodeContext) -> NodeExecutionResult:
        """Run the node lifecycle. Never raises for node-level failures.

        Args:
            context: Runtime context of this node execution.

        Returns:
            The normalized execution result.
        """
        definition = self.get_definition()
        try:
            context.raise_if_cancelled()

            parameters = {
                parameter.name: parameter.default
                for parameter in definition.parameters
                if parameter.default is not None
            }
            missing = [
                name
                for name in definition.required_parameters
                if context.parameters.get(name) is None and name not in parameters
            ]
            if missing:
                raise NodeParameterError(node_type=self.type, missing=missing)

            parameters.update(
                evaluate_parameters(context.parameters, context.workflow_context)
            )

            result = await self.execute_internal(context, parameters)
            if not result.success:
                result.output = {}
            return result

        except ExecutionCancelledError as e:
            return NodeExecutionResult.cancelled_result(e)
        except Exception as e:
            logger.warning(
                f"Node {context.node_id} failed: {e}",
                extra={
                    "context": {
                        "execution_id": context.execution_id,
                        "node_id": context.node_id,
                        "node_type": self.type,
                        "error_type": type(e).__name__,
                    }
                },
            )
            return NodeExecutionResult.error(str(e), exception=e)

    @abstractmethod
    async def execute_internal(
        self,
        context: NodeContext,
        parameters: dict[str, Any],
    ) -> NodeExecutionResult:
        """Execute the kind-specific logic.

        Args:
            context: Runtime context of this node execution.
            parameters: Parameters with expressions resolved and defaults
                applied.

        Returns:
            The node's result. Exceptions are converted by ``execute``.
        """


__all__ = [
    "CANCELLED_MESSAGE",
    "BaseNode",
    "NodeContext",
    "NodeExecutionResult",
]
