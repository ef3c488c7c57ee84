"""Node runtime error classes.

Only registry errors escape to callers. Parameter and logic errors raised
inside a node are converted into a failed ``NodeExecutionResult`` by the
base node lifecycle.
"""

from dataclasses import dataclass

from flowengine.core.exceptions import AppError


class NodeError(AppError):
    """Base exception for node runtime errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NodeNotFoundError(NodeError):
    """Raised when no node kind is registered for a type tag."""

    def __init__(self, node_type: str):
        super().__init__(f"Unknown node type: {node_type}")
        self.node_type = node_type


class NodeRegistrationError(NodeError):
    """Raised when a node kind cannot be registered."""


@dataclass
class NodeParameterError(NodeError):
    """Raised when required parameters are missing.

    Attributes:
        node_type: Type tag of the node being executed
        missing: Names of every missing required parameter
    """

    node_type: str
    missing: list[str]

    def __post_init__(self) -> None:
        super().__init__(
            f"Missing required parameters for {self.node_type}: {', '.join(self.missing)}"
        )

    def __str__(self) -> str:
        return self.message


__all__ = [
    "NodeError",
    "NodeNotFoundError",
    "NodeParameterError",
    "NodeRegistrationError",
]
