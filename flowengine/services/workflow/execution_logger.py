"""Execution audit log.

``ExecutionLogger`` records run and node lifecycle events into a pluggable
store and mirrors every entry to the standard logger with structured
context. Two stores are provided: an in-process one for tests and
single-process deployments, and one backed by the ``execution_logs``
table.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import delete, select

from flowengine.core.exceptions import ConfigurationError
from flowengine.core.logging import get_logger
from flowengine.models.enums import LogLevel
from flowengine.models.execution import ExecutionLogRecord
from flowengine.schemas.execution import ExecutionLogEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from flowengine.schemas.execution import ExecutionResult, NodeExecutionSummary


logger = get_logger(__name__)

_LEVELS = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARNING: 30,
    LogLevel.ERROR: 40,
}


class LogStore(Protocol):
    """Storage backend for execution log entries."""

    async def add(self, entry: ExecutionLogEntry) -> None: ...

    async def query(
        self, execution_id: str, node_id: str | None = None
    ) -> list[ExecutionLogEntry]: ...

    async def delete_before(self, cutoff: datetime) -> int: ...


class InMemoryLogStore:
    """Keeps log entries in process memory."""

    def __init__(self) -> None:
        self._entries: list[ExecutionLogEntry] = []
        self._lock = asyncio.Lock()

    async def add(self, entry: ExecutionLogEntry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def query(
        self, execution_id: str, node_id: str | None = None
    ) -> list[ExecutionLogEntry]:
        async with self._lock:
            return [
                entry
                for entry in self._entries
                if entry.execution_id == execution_id
                and (node_id is None or entry.node_id == node_id)
            ]

    async def delete_before(self, cutoff: datetime) -> int:
        async with self._lock:
            kept = [entry for entry in self._entries if entry.timestamp >= cutoff]
            removed = len(self._entries) - len(kept)
            self._entries = kept
            return removed


class SqlAlchemyLogStore:
    """Persists log entries to the ``execution_logs`` table.

    Each operation opens its own session from ``session_factory`` and
    commits before returning.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, entry: ExecutionLogEntry) -> None:
        async with self._session_factory() as session:
            session.add(
                ExecutionLogRecord(
                    execution_id=entry.execution_id,
                    node_id=entry.node_id,
                    level=str(entry.level),
                    message=entry.message,
                    details=entry.details,
                    timestamp=entry.timestamp,
                )
            )
            await session.commit()

    async def query(
        self, execution_id: str, node_id: str | None = None
    ) -> list[ExecutionLogEntry]:
        stmt = select(ExecutionLogRecord).where(
            ExecutionLogRecord.execution_id == execution_id
        )
        if node_id is not None:
            stmt = stmt.where(ExecutionLogRecord.node_id == node_id)
        stmt = stmt.order_by(ExecutionLogRecord.timestamp)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()

        return [
            ExecutionLogEntry(
                execution_id=record.execution_id,
                node_id=record.node_id,
                level=record.level,
                message=record.message,
                timestamp=record.timestamp,
                details=record.details or {},
            )
            for record in records
        ]

    async def delete_before(self, cutoff: datetime) -> int:
        stmt = delete(ExecutionLogRecord).where(ExecutionLogRecord.timestamp < cutoff)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0


class ExecutionLogger:
    """Writes the audit trail of workflow runs.

    Store failures while writing are logged and swallowed, so a broken
    store never changes the outcome of a run.

    Attributes:
        store: Backend receiving every entry.

    Example:
        >>> execution_logger = ExecutionLogger(InMemoryLogStore())
        >>> await execution_logger.log_info(execution_id, "Starting")
        >>> await execution_logger.get_execution_logs(execution_id)
    """

    def __init__(self, store: LogStore | None = None) -> None:
        self.store: LogStore = store or InMemoryLogStore()

    async def _write(
        self,
        execution_id: str,
        level: LogLevel,
        message: str,
        node_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> ExecutionLogEntry:
        entry = ExecutionLogEntry(
            execution_id=execution_id,
            node_id=node_id,
            level=level,
            message=message,
            details=dict(details or {}),
        )
        context: dict[str, Any] = {"execution_id": execution_id, **entry.details}
        if node_id is not None:
            context["node_id"] = node_id

        try:
            await self.store.add(entry)
        except Exception:
            # The entry still reaches the standard logger below
            logger.exception(
                f"Failed to store execution log entry: {message}",
                extra={"context": {"execution_id": execution_id, "node_id": node_id}},
            )

        logger.log(_LEVELS[level], message, extra={"context": context})
        return entry

    async def log_execution_start(
        self,
        execution_id: str,
        workflow_id: str,
        input_data: Mapping[str, Any] | None = None,
    ) -> None:
        await self._write(
            execution_id,
            LogLevel.INFO,
            f"Workflow {workflow_id} execution started",
            details={"workflow_id": workflow_id, "input_keys": sorted(input_data or {})},
        )

    async def log_execution_complete(self, result: ExecutionResult) -> None:
        status = str(result.status)
        level = LogLevel.INFO if status == "completed" else LogLevel.ERROR
        message = f"Workflow {result.workflow_id} execution {status}"
        if result.error_message:
            message = f"{message}: {result.error_message}"
        await self._write(
            result.execution_id,
            level,
            message,
            details={
                "workflow_id": result.workflow_id,
                "status": status,
                "duration_ms": round(result.duration_ms, 2),
                "node_count": len(result.node_executions),
            },
        )

    async def log_node_execution(
        self,
        execution_id: str,
        summary: NodeExecutionSummary,
    ) -> None:
        details: dict[str, Any] = {
            "node_type": summary.node_type,
            "success": summary.success,
            "duration_ms": round(summary.duration_ms, 2),
            "retry_count": summary.retry_count,
        }
        if summary.conditional_output is not None:
            details["conditional_output"] = summary.conditional_output

        if summary.success:
            level = LogLevel.WARNING if summary.retry_count else LogLevel.INFO
            message = f"Node '{summary.node_name}' completed"
        else:
            level = LogLevel.ERROR
            message = f"Node '{summary.node_name}' failed: {summary.error_message}"
            details["timed_out"] = summary.timed_out
            details["cancelled"] = summary.cancelled
        await self._write(execution_id, level, message, node_id=summary.node_id, details=details)

    async def log_error(
        self,
        execution_id: str,
        message: str,
        node_id: str | None = None,
        exception: BaseException | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if exception is not None:
            details["error_type"] = type(exception).__name__
            details["error"] = str(exception)
        await self._write(execution_id, LogLevel.ERROR, message, node_id=node_id, details=details)

    async def log_info(
        self,
        execution_id: str,
        message: str,
        node_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        await self._write(execution_id, LogLevel.INFO, message, node_id=node_id, details=details)

    async def get_execution_logs(self, execution_id: str) -> list[ExecutionLogEntry]:
        return await self.store.query(execution_id)

    async def get_node_logs(self, execution_id: str, node_id: str) -> list[ExecutionLogEntry]:
        return await self.store.query(execution_id, node_id=node_id)

    async def delete_old_logs(self, older_than: timedelta) -> int:
        """Delete entries older than ``older_than``.

        Returns:
            Number of deleted entries.
        """
        cutoff = datetime.now(UTC) - older_than
        removed = await self.store.delete_before(cutoff)
        logger.info(
            f"Deleted {removed} execution log entries",
            extra={"context": {"cutoff": cutoff.isoformat(), "removed": removed}},
        )
        return removed


def create_execution_logger(
    backend: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> ExecutionLogger:
    """Build an execution logger for the configured backend.

    Args:
        backend: ``"memory"`` or ``"database"``.
        session_factory: Session factory for the database backend.

    Raises:
        ConfigurationError: If the backend is unknown, or the database
            backend is requested without a session factory.
    """
    if backend == "memory":
        return ExecutionLogger(InMemoryLogStore())
    if backend == "database":
        if session_factory is None:
            raise ConfigurationError("execution_log", "database backend requires a session factory")
        return ExecutionLogger(SqlAlchemyLogStore(session_factory))
    raise ConfigurationError("execution_log", f"unknown backend '{backend}'")


__all__ = [
    "ExecutionLogger",
    "InMemoryLogStore",
    "LogStore",
    "SqlAlchemyLogStore",
    "create_execution_logger",
]
