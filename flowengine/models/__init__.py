"""SQLAlchemy models."""

from flowengine.models.base import GUID, Base, JSONType, UUIDMixin
from flowengine.models.enums import (
    ExecutionStatus,
    LogLevel,
    NodeCategory,
    ParameterType,
)
from flowengine.models.execution import ExecutionLogRecord

__all__ = [
    "GUID",
    "Base",
    "ExecutionLogRecord",
    "ExecutionStatus",
    "JSONType",
    "LogLevel",
    "NodeCategory",
    "ParameterType",
    "UUIDMixin",
]
