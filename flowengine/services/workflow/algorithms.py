"""Graph algorithms for workflow validation and ordering.

This module provides the graph algorithms shared by the builder and the
topological sorter:
- Cycle detection using DFS with path tracking (all cycles, not just one)
- Reachability analysis using iterative DFS
- Kahn's algorithm for linear order and dependency levels
- Duplicate input-port detection

Time Complexity:
- Cycle detection: O(V + E)
- Reachability: O(V + E)
- Topological sort / levels: O(V + E)

Space Complexity: O(V + E) for all algorithms.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowengine.services.workflow.graph import Edge, Graph


class GraphAlgorithms:
    """Collection of graph algorithms used for workflow validation.

    All methods are static and operate on the ``Graph`` model. They never
    mutate the graph.

    Example:
        >>> cycles = GraphAlgorithms.find_cycles(graph)
        >>> if cycles:
        ...     print(f"Cycle found: {cycles[0]}")
    """

    @staticmethod
    def find_cycles(graph: Graph) -> list[list[str]]:
        """Find every cycle reachable by a DFS back edge.

        Each back edge found during the traversal yields one cycle path,
        so overlapping cycles are all reported.

        Args:
            graph: The graph to check for cycles.

        Returns:
            List of cycle paths, each ending with its starting node
            (``[a, b, c, a]``). Empty list if the graph is acyclic.
        """
        visited: set[str] = set()
        on_stack: set[str] = set()
        path: list[str] = []
        cycles: list[list[str]] = []

        # Iterative DFS so long chains do not hit the recursion limit
        for root in graph.node_ids:
            if root in visited:
                continue
            stack: list[tuple[str, int]] = [(root, 0)]
            visited.add(root)
            on_stack.add(root)
            path.append(root)

            while stack:
                node, index = stack[-1]
                successors = graph.get_successors(node)
                if index < len(successors):
                    stack[-1] = (node, index + 1)
                    neighbor = successors[index]
                    if neighbor in on_stack:
                        start = path.index(neighbor)
                        cycles.append([*path[start:], neighbor])
                    elif neighbor not in visited:
                        visited.add(neighbor)
                        on_stack.add(neighbor)
                        path.append(neighbor)
                        stack.append((neighbor, 0))
                else:
                    stack.pop()
                    on_stack.discard(node)
                    path.pop()

        return cycles

    @staticmethod
    def has_cycle(graph: Graph) -> bool:
        return bool(GraphAlgorithms.find_cycles(graph))

    @staticmethod
    def find_reachable_from(graph: Graph, start: str) -> set[str]:
        """Collect every node reachable from ``start`` by depth-first traversal.

        Args:
            graph: The graph to traverse.
            start: The node to start from.

        Returns:
            Set of reachable node ids, including ``start``.
        """
        reachable: set[str] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            if node in reachable:
                continue
            reachable.add(node)
            stack.extend(
                successor
                for successor in graph.get_successors(node)
                if successor not in reachable
            )
        return reachable

    @staticmethod
    def find_unreachable_from(graph: Graph, start: str) -> list[str]:
        """Return ids of nodes not reachable from ``start``, in graph order."""
        reachable = GraphAlgorithms.find_reachable_from(graph, start)
        return [node_id for node_id in graph.node_ids if node_id not in reachable]

    @staticmethod
    def find_duplicate_input_writes(graph: Graph) -> list[Edge]:
        """Find edges that repeat a source-to-input link already present.

        Two edges from the same source to the same input port of the same
        target make the write to that port ambiguous. Edges from different
        sources may share an input port; their outputs are merged.

        Returns:
            The first edge of every ambiguous (source, target, input) group.
        """
        counts = Counter(
            (edge.source, edge.target, edge.target_input) for edge in graph.edges
        )
        duplicates: list[Edge] = []
        seen: set[tuple[str, str, str]] = set()
        for edge in graph.edges:
            key = (edge.source, edge.target, edge.target_input)
            if counts[key] > 1 and key not in seen:
                seen.add(key)
                duplicates.append(edge)
        return duplicates

    @staticmethod
    def kahn_order(graph: Graph) -> tuple[list[str], dict[str, int]]:
        """Run Kahn's algorithm once, producing both order and levels.

        Nodes left over when the queue empties are members of (or
        downstream of) a cycle and are absent from the result.

        Returns:
            Tuple of (linear order, level per ordered node). A node's level
            is 0 for nodes without predecessors, otherwise one more than the
            highest level among its predecessors.
        """
        in_degree = {node_id: graph.get_in_degree(node_id) for node_id in graph.node_ids}
        levels: dict[str, int] = {}
        queue: deque[str] = deque()
        for node_id, degree in in_degree.items():
            if degree == 0:
                levels[node_id] = 0
                queue.append(node_id)

        order: list[str] = []
        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            for edge in graph.get_outgoing_edges(node_id):
                target = edge.target
                levels[target] = max(levels.get(target, 0), levels[node_id] + 1)
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        return order, {node_id: levels[node_id] for node_id in order}


__all__ = ["GraphAlgorithms"]
