"""Directed graph model for workflow execution.

This module provides the in-memory representation of a workflow: nodes
keyed by id plus forward and reverse adjacency lists of ported edges.
A graph is built once per execution request and discarded afterwards.

Time Complexity:
- Node/Edge addition: O(1)
- Successor/predecessor lookup: O(degree)

Space Complexity: O(V + E)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PORT = "default"


@dataclass(frozen=True)
class Node:
    """A single unit of work in a workflow graph.

    Attributes:
        id: Identifier, unique within the graph.
        type: Type tag selecting the node kind from the registry.
        name: Display name.
        parameters: Raw parameters, possibly containing ``{{...}}`` expressions.
        configuration: Static configuration (timeout, maxRetries, retryDelay).
    """

    id: str
    type: str
    name: str = ""
    parameters: dict[str, Any] = field(default_factory=dict, compare=False)
    configuration: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Edge:
    """A directed, ported link from one node's output to another's input."""

    source: str
    target: str
    source_output: str = DEFAULT_PORT
    target_input: str = DEFAULT_PORT

    @property
    def is_conditional(self) -> bool:
        """An edge leaving a named output only fires for that branch label."""
        return self.source_output != DEFAULT_PORT


class Graph:
    """Directed workflow graph with ported edges.

    Maintains both forward and reverse adjacency so that predecessor and
    successor queries are equally cheap.

    Example:
        >>> graph = Graph()
        >>> graph.add_node(Node(id="start", type="manual_trigger"))
        >>> graph.add_node(Node(id="set", type="set_variable"))
        >>> graph.add_edge(Edge("start", "set"))
        >>> graph.get_successors("start")
        ['set']
    """

    __slots__ = ("_edges", "_incoming", "_nodes", "_outgoing")

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._outgoing: defaultdict[str, list[Edge]] = defaultdict(list)
        self._incoming: defaultdict[str, list[Edge]] = defaultdict(list)
        self._edges: list[Edge] = []

    @property
    def nodes(self) -> dict[str, Node]:
        """Nodes keyed by id, in insertion order."""
        return self._nodes

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def add_node(self, node: Node) -> None:
        """Add a node, replacing any node with the same id."""
        self._nodes[node.id] = node

    def add_edge(self, edge: Edge) -> None:
        """Add a directed edge.

        Endpoint existence is checked by the builder; the graph itself
        only records the adjacency.

        Args:
            edge: The edge to add.
        """
        self._outgoing[edge.source].append(edge)
        self._incoming[edge.target].append(edge)
        self._edges.append(edge)

    def get_node(self, node_id: str) -> Node:
        """Return the node with ``node_id``.

        Raises:
            KeyError: If the node does not exist.
        """
        return self._nodes[node_id]

    def get_outgoing_edges(self, node_id: str) -> list[Edge]:
        return list(self._outgoing.get(node_id, []))

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        return list(self._incoming.get(node_id, []))

    def get_successors(self, node_id: str) -> list[str]:
        """Get the targets of all outgoing edges, without duplicates."""
        return list(dict.fromkeys(e.target for e in self._outgoing.get(node_id, [])))

    def get_predecessors(self, node_id: str) -> list[str]:
        """Get the sources of all incoming edges, without duplicates."""
        return list(dict.fromkeys(e.source for e in self._incoming.get(node_id, [])))

    def get_in_degree(self, node_id: str) -> int:
        return len(self._incoming.get(node_id, []))

    def get_out_degree(self, node_id: str) -> int:
        return len(self._outgoing.get(node_id, []))

    def get_entry_nodes(self) -> list[str]:
        """Get ids of all nodes with no incoming edges."""
        return [node_id for node_id in self._nodes if self.get_in_degree(node_id) == 0]

    def structure(self) -> tuple[frozenset[str], frozenset[Edge]]:
        """Return a hashable view of the node and edge sets."""
        return frozenset(self._nodes), frozenset(self._edges)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return self.structure() == other.structure() and all(
            self._nodes[node_id] == other._nodes[node_id] for node_id in self._nodes
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Graph(nodes={self.node_count}, edges={self.edge_count})"


__all__ = ["DEFAULT_PORT", "Edge", "Graph", "Node"]
