"""Domain enum definitions for the flow engine.

This module defines the enum types shared by the execution engine, the
schemas and the persistence layer.
"""

from enum import Enum


class NodeCategory(str, Enum):
    """Capability set a node kind belongs to.

    Trigger nodes start a run and ignore their inputs. Action nodes talk
    to the outside world. Processing nodes transform or route data.
    """

    TRIGGER = "trigger"
    ACTION = "action"
    PROCESSING = "processing"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class ParameterType(str, Enum):
    """Declared value type of a node parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    JSON = "json"
    COLLECTION = "collection"

    def __str__(self) -> str:
        return self.value


class ExecutionStatus(str, Enum):
    """Workflow execution state.

    ``PENDING -> RUNNING -> {COMPLETED, FAILED, CANCELLED, TIMEOUT}``.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self not in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)


class LogLevel(str, Enum):
    """Severity of an execution audit log entry."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "ExecutionStatus",
    "LogLevel",
    "NodeCategory",
    "ParameterType",
]
