"""Node registry.

Maps node type tags to node classes. Registration is explicit: the
built-in kinds are registered by ``create_default_registry`` at process
bootstrap and tests build their own registries with whatever kinds they
need.
"""

from flowengine.schemas.nodes import NodeTypeDefinition
from flowengine.services.workflow.nodes.base import BaseNode
from flowengine.services.workflow.nodes.errors import (
    NodeNotFoundError,
    NodeRegistrationError,
)


class NodeRegistry:
    """Registry for node kind lookup and instantiation.

    Example:
        registry = NodeRegistry()
        registry.register(HttpRequestNode)
        node = registry.create("http_request")
        result = await node.execute(node_context)
    """

    def __init__(self) -> None:
        self._nodes: dict[str, type[BaseNode]] = {}

    def register(self, node_class: type[BaseNode], *, replace: bool = False) -> None:
        """Register a node class under its ``type`` tag.

        Args:
            node_class: A concrete ``BaseNode`` subclass.
            replace: Allow overwriting an existing registration.

        Raises:
            NodeRegistrationError: If the class is not a concrete node kind
                or the type tag is already taken.
        """
        node_type = getattr(node_class, "type", None)
        if not isinstance(node_class, type) or not issubclass(node_class, BaseNode):
            raise NodeRegistrationError(f"{node_class!r} is not a BaseNode subclass")
        if not node_type:
            raise NodeRegistrationError(f"{node_class.__name__} does not declare a type")
        if node_type in self._nodes and not replace:
            raise NodeRegistrationError(f"Node type already registered: {node_type}")
        self._nodes[node_type] = node_class

    def unregister(self, node_type: str) -> None:
        self._nodes.pop(node_type, None)

    def is_registered(self, node_type: str) -> bool:
        return node_type in self._nodes

    def get(self, node_type: str) -> type[BaseNode]:
        """Get the node class for a type tag.

        Raises:
            NodeNotFoundError: If no node kind is registered for the tag.
        """
        if node_type not in self._nodes:
            raise NodeNotFoundError(node_type)
        return self._nodes[node_type]

    def create(self, node_type: str) -> BaseNode:
        """Instantiate the node kind registered for ``node_type``.

        Raises:
            NodeNotFoundError: If no node kind is registered for the tag.
        """
        return self.get(node_type)()

    def get_definition(self, node_type: str) -> NodeTypeDefinition:
        return self.get(node_type).get_definition()

    def list_definitions(self) -> list[NodeTypeDefinition]:
        return [cls.get_definition() for cls in self._nodes.values()]

    def list_registered(self) -> list[str]:
        return list(self._nodes)

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


def create_default_registry() -> NodeRegistry:
    """Build a registry with every built-in node kind registered."""
    # Import here to avoid circular dependencies
    from flowengine.services.workflow.nodes.condition import IfConditionNode
    from flowengine.services.workflow.nodes.http_request import HttpRequestNode
    from flowengine.services.workflow.nodes.trigger import ManualTriggerNode
    from flowengine.services.workflow.nodes.variables import SetVariableNode

    registry = NodeRegistry()
    for node_class in (ManualTriggerNode, SetVariableNode, IfConditionNode, HttpRequestNode):
        registry.register(node_class)
    return registry


# Module-level singleton for convenience
_registry: NodeRegistry | None = None


def get_registry() -> NodeRegistry:
    """Get the process-wide node registry (creates on first call)."""
    global _registry
    if _registry is None:
        _registry = create_default_registry()
    return _registry


__all__ = ["NodeRegistry", "create_default_registry", "get_registry"]
