"""ExecutionContext for workflow execution.

The execution context is the single shared, mutable store of a run. It
holds run metadata, the input data, workflow variables and one entry per
completed node. Nodes read it through expressions; only the engine's
node executor writes to it, and only under the node's own key.

Layout::

    {
        "executionId": "...",
        "workflowId": "...",
        "workflowName": "...",
        "startedAt": "2025-01-12T10:30:45+00:00",
        "input": {...},
        "variables": {...},
        "<node id>": {<node output>},
        "$node": {"<node id>": {"success": True, "data": {...}, ...}},
    }
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from flowengine.services.workflow.exceptions import ContextWriteError
from flowengine.services.workflow.graph import DEFAULT_PORT

if TYPE_CHECKING:
    from flowengine.services.workflow.graph import Graph
    from flowengine.services.workflow.nodes.base import NodeExecutionResult

EXECUTION_ID_KEY = "executionId"
WORKFLOW_ID_KEY = "workflowId"
WORKFLOW_NAME_KEY = "workflowName"
STARTED_AT_KEY = "startedAt"
INPUT_KEY = "input"
VARIABLES_KEY = "variables"
NODE_RECORDS_KEY = "$node"

RESERVED_KEYS = frozenset(
    {
        EXECUTION_ID_KEY,
        WORKFLOW_ID_KEY,
        WORKFLOW_NAME_KEY,
        STARTED_AT_KEY,
        INPUT_KEY,
        VARIABLES_KEY,
        NODE_RECORDS_KEY,
    }
)


class ExecutionContext:
    """Concurrency-safe context for passing data between nodes.

    Writes are partitioned by node id and each node key is write-once, so
    concurrent nodes never contend on the same entry. The ``asyncio.Lock``
    only protects the underlying dictionaries while several nodes of the
    same wave record their results.

    Attributes:
        execution_id: Id of the run owning this context.
        workflow_id: Id of the workflow being executed.
    """

    def __init__(
        self,
        execution_id: str,
        workflow_id: str,
        input_data: Mapping[str, Any] | None = None,
        workflow_name: str = "",
        started_at: datetime | None = None,
    ) -> None:
        self.execution_id = execution_id
        self.workflow_id = workflow_id
        self.started_at = started_at or datetime.now(UTC)
        self._data: dict[str, Any] = {
            EXECUTION_ID_KEY: execution_id,
            WORKFLOW_ID_KEY: workflow_id,
            WORKFLOW_NAME_KEY: workflow_name,
            STARTED_AT_KEY: self.started_at.isoformat(),
            INPUT_KEY: dict(input_data or {}),
            VARIABLES_KEY: {},
            NODE_RECORDS_KEY: {},
        }
        self._lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        execution_id: str,
        workflow_id: str,
        input_data: Mapping[str, Any] | None = None,
        workflow_name: str = "",
    ) -> ExecutionContext:
        """Create a fresh context for a new run."""
        return cls(
            execution_id=execution_id,
            workflow_id=workflow_id,
            input_data=input_data,
            workflow_name=workflow_name,
        )

    @property
    def input_data(self) -> dict[str, Any]:
        return self._data[INPUT_KEY]

    @property
    def completed_node_ids(self) -> list[str]:
        """Ids of nodes with a recorded result, in completion order."""
        return list(self._data[NODE_RECORDS_KEY])

    def snapshot(self) -> dict[str, Any]:
        """Return a read view of the context for expression evaluation.

        Node entries are write-once, so only the top-level mapping and the
        mutable ``variables`` map are copied.
        """
        view = dict(self._data)
        view[VARIABLES_KEY] = dict(self._data[VARIABLES_KEY])
        view[NODE_RECORDS_KEY] = dict(self._data[NODE_RECORDS_KEY])
        return view

    def has_node_result(self, node_id: str) -> bool:
        return node_id in self._data[NODE_RECORDS_KEY]

    def get_node_output(self, node_id: str) -> dict[str, Any]:
        """Return the recorded output of ``node_id``, or an empty map."""
        output = self._data.get(node_id) if node_id not in RESERVED_KEYS else None
        return dict(output) if isinstance(output, Mapping) else {}

    def get_node_record(self, node_id: str) -> dict[str, Any] | None:
        record = self._data[NODE_RECORDS_KEY].get(node_id)
        return dict(record) if record is not None else None

    async def set_node_result(
        self,
        node_id: str,
        result: NodeExecutionResult,
        conditional_output: str | None = None,
    ) -> None:
        """Record a node's result under its own key.

        Args:
            node_id: Id of the node that produced the result.
            result: The node's normalized execution result.
            conditional_output: Branch label the node emitted, if any.

        Raises:
            ContextWriteError: If the node already has a recorded result,
                or ``node_id`` collides with a reserved context key.
        """
        record: dict[str, Any] = {
            "success": result.success,
            "data": dict(result.output),
            "executedAt": datetime.now(UTC).isoformat(),
        }
        if result.error_message:
            record["error"] = result.error_message
        if result.metadata:
            record["metadata"] = dict(result.metadata)

        output = dict(result.output)
        if conditional_output is not None:
            record["conditionalOutput"] = conditional_output
            output["conditionalOutput"] = conditional_output

        async with self._lock:
            if node_id in RESERVED_KEYS or self.has_node_result(node_id):
                raise ContextWriteError(node_id)
            self._data[node_id] = output
            self._data[NODE_RECORDS_KEY][node_id] = record

    async def set_variable(self, name: str, value: Any) -> None:
        async with self._lock:
            self._data[VARIABLES_KEY][name] = value

    async def get_variable(self, name: str) -> Any:
        async with self._lock:
            return self._data[VARIABLES_KEY].get(name)

    def get_input_for_node(self, graph: Graph, node_id: str) -> dict[str, Any]:
        """Assemble the input map of ``node_id`` from its predecessors.

        The entry node receives the run's input data. For other nodes,
        each incoming edge contributes the source's output: a ``default``
        target input merges the output map into the input, a named target
        input stores it under that name. A named source output selects that
        key of the source output when present.

        Returns:
            The node's input data. Later edges win on key collisions.
        """
        incoming = graph.get_incoming_edges(node_id)
        if not incoming:
            return dict(self.input_data)

        input_data: dict[str, Any] = {}
        for edge in incoming:
            output = self.get_node_output(edge.source)
            output.pop("conditionalOutput", None)
            value: Any = output
            if edge.source_output != DEFAULT_PORT and edge.source_output in output:
                value = output[edge.source_output]

            if edge.target_input == DEFAULT_PORT:
                if isinstance(value, Mapping):
                    input_data.update(value)
                else:
                    input_data[edge.source_output] = value
            else:
                input_data[edge.target_input] = value
        return input_data

    def get_all_outputs(self) -> dict[str, dict[str, Any]]:
        """Map every recorded node id to its output data."""
        return {
            node_id: dict(record["data"])
            for node_id, record in self._data[NODE_RECORDS_KEY].items()
        }


__all__ = [
    "EXECUTION_ID_KEY",
    "INPUT_KEY",
    "NODE_RECORDS_KEY",
    "RESERVED_KEYS",
    "VARIABLES_KEY",
    "WORKFLOW_ID_KEY",
    "ExecutionContext",
]
