"""Workflow graph builder and structural validator.

Turns an external node/connection definition into a ``Graph`` and checks
the structural invariants the engine relies on before any node runs:
the graph is non-empty, acyclic, has exactly one entry node, every node
is reachable from that entry node, and no input port is written twice.

Validation is exhaustive. Every violation is collected so callers get a
complete error report in one pass.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from flowengine.core.logging import get_logger
from flowengine.services.workflow.algorithms import GraphAlgorithms
from flowengine.services.workflow.context import RESERVED_KEYS
from flowengine.services.workflow.exceptions import GraphBuildError, GraphValidationError
from flowengine.services.workflow.graph import DEFAULT_PORT, Edge, Graph, Node

logger = get_logger(__name__)

NodeSpec = BaseModel | Mapping[str, Any]
ConnectionSpec = BaseModel | Mapping[str, Any]


def _as_mapping(spec: NodeSpec | ConnectionSpec) -> Mapping[str, Any]:
    if isinstance(spec, BaseModel):
        return spec.model_dump()
    return spec


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, accepting snake_case and camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


class GraphBuilder:
    """Builds and validates workflow graphs.

    The builder is stateless; building the same definition twice yields
    structurally equal graphs.

    Example:
        >>> builder = GraphBuilder()
        >>> graph = builder.build_graph(
        ...     [{"id": "start", "type": "manual_trigger"},
        ...      {"id": "set", "type": "set_variable"}],
        ...     [{"source_node_id": "start", "target_node_id": "set"}],
        ... )
        >>> builder.validate_graph(graph)
        []
    """

    def build_graph(
        self,
        nodes: Iterable[NodeSpec],
        connections: Iterable[ConnectionSpec],
    ) -> Graph:
        """Build a graph from node and connection definitions.

        Args:
            nodes: Node definitions (pydantic models or mappings) with
                ``id``, ``type`` and optional ``name``, ``parameters`` and
                ``configuration``.
            connections: Connection definitions with source/target ids and
                optional source-output and target-input port labels.

        Returns:
            The constructed graph. It is not yet validated.

        Raises:
            GraphBuildError: If there are no nodes, a node id is repeated,
                or a connection references an unknown node id.
        """
        graph = Graph()

        for spec in nodes:
            data = _as_mapping(spec)
            node_id = _pick(data, "id")
            if not node_id:
                raise GraphBuildError("Node definition is missing an id")
            node_id = str(node_id)
            if node_id in RESERVED_KEYS:
                raise GraphBuildError(
                    f"Node id is reserved: {node_id}", details={"node_id": node_id}
                )
            if node_id in graph:
                raise GraphBuildError(
                    f"Duplicate node id: {node_id}", details={"node_id": node_id}
                )
            graph.add_node(
                Node(
                    id=node_id,
                    type=str(_pick(data, "type", default="")),
                    name=str(_pick(data, "name", default=node_id)),
                    parameters=dict(_pick(data, "parameters", default={})),
                    configuration=dict(_pick(data, "configuration", default={})),
                )
            )

        if len(graph) == 0:
            raise GraphBuildError("Workflow must contain at least one node")

        for spec in connections:
            data = _as_mapping(spec)
            source = str(_pick(data, "source_node_id", "sourceNodeId", "source", default=""))
            target = str(_pick(data, "target_node_id", "targetNodeId", "target", default=""))
            missing = [node_id for node_id in (source, target) if node_id not in graph]
            if missing:
                raise GraphBuildError(
                    f"Connection references unknown node: {', '.join(missing)}",
                    details={"source": source, "target": target, "missing": missing},
                )
            graph.add_edge(
                Edge(
                    source=source,
                    target=target,
                    source_output=str(
                        _pick(data, "source_output", "sourceOutput", default=DEFAULT_PORT)
                    ),
                    target_input=str(
                        _pick(data, "target_input", "targetInput", default=DEFAULT_PORT)
                    ),
                )
            )

        logger.debug(
            "Workflow graph built",
            extra={"context": {"nodes": graph.node_count, "edges": graph.edge_count}},
        )
        return graph

    def validate_graph(self, graph: Graph) -> list[str]:
        """Collect every structural violation in ``graph``.

        Checks, in order: non-empty, acyclic, exactly one entry node,
        every node reachable from the entry node, no duplicate writes to
        the same input port.

        Args:
            graph: The graph to validate.

        Returns:
            Validation error messages. Empty when the graph is valid.
        """
        if len(graph) == 0:
            return ["Workflow must contain at least one node"]

        errors: list[str] = []

        for cycle in GraphAlgorithms.find_cycles(graph):
            errors.append(f"Cycle detected: {' -> '.join(cycle)}")

        entry_nodes = graph.get_entry_nodes()
        if not entry_nodes:
            errors.append("No entry node found (a node without incoming connections)")
        elif len(entry_nodes) > 1:
            errors.append(f"Multiple entry nodes found: {', '.join(entry_nodes)}")

        # Reachability is only meaningful from a unique entry point
        if len(entry_nodes) == 1:
            for node_id in GraphAlgorithms.find_unreachable_from(graph, entry_nodes[0]):
                errors.append(f"Node {node_id} is not reachable from entry node {entry_nodes[0]}")

        for edge in GraphAlgorithms.find_duplicate_input_writes(graph):
            errors.append(
                f"Node {edge.source} has multiple connections to input "
                f"'{edge.target_input}' of node {edge.target}"
            )

        if errors:
            logger.info(
                "Workflow graph validation failed",
                extra={"context": {"error_count": len(errors), "errors": errors}},
            )
        return errors

    def ensure_valid(self, graph: Graph) -> None:
        """Raise if ``graph`` has any structural violation.

        Raises:
            GraphValidationError: Carrying every violation found.
        """
        errors = self.validate_graph(graph)
        if errors:
            raise GraphValidationError(errors)


__all__ = ["GraphBuilder"]
