"""Execution log persistence model.

Stores the audit trail written by the execution logger when the database
log backend is selected.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from flowengine.models.base import Base, JSONType, UUIDMixin
from flowengine.models.enums import LogLevel


class ExecutionLogRecord(UUIDMixin, Base):
    """A single execution log entry.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        execution_id: Id of the run the entry belongs to
        node_id: Node the entry refers to (nullable, for run-level entries)
        level: Log level (debug, info, warning, error)
        message: Log message text
        details: Additional structured data
        timestamp: When the entry was written
    """

    __tablename__ = "execution_logs"
    __table_args__ = (Index("ix_execution_logs_execution_node", "execution_id", "node_id"),)

    execution_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    node_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    level: Mapped[str] = mapped_column(String(20), nullable=False, default=LogLevel.INFO.value)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ExecutionLogRecord(execution_id={self.execution_id}, "
            f"level={self.level}, message='{self.message[:50]}')>"
        )


__all__ = ["ExecutionLogRecord"]
