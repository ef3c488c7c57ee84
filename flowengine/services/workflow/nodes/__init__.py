"""Node runtime: the node abstraction, the registry and the built-in kinds."""

from flowengine.services.workflow.nodes.base import (
    BaseNode,
    NodeContext,
    NodeExecutionResult,
)
from flowengine.services.workflow.nodes.condition import IfConditionNode
from flowengine.services.workflow.nodes.errors import (
    NodeError,
    NodeNotFoundError,
    NodeParameterError,
    NodeRegistrationError,
)
from flowengine.services.workflow.nodes.http_request import HttpRequestNode
from flowengine.services.workflow.nodes.registry import (
    NodeRegistry,
    create_default_registry,
    get_registry,
)
from flowengine.services.workflow.nodes.trigger import ManualTriggerNode
from flowengine.services.workflow.nodes.variables import SetVariableNode

__all__ = [
    "BaseNode",
    "HttpRequestNode",
    "IfConditionNode",
    "ManualTriggerNode",
    "NodeContext",
    "NodeError",
    "NodeExecutionResult",
    "NodeNotFoundError",
    "NodeParameterError",
    "NodeRegistrationError",
    "NodeRegistry",
    "SetVariableNode",
    "create_default_registry",
    "get_registry",
]
