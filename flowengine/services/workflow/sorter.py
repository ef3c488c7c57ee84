"""Topological ordering of workflow graphs.

Provides the three orderings the engine needs:
- ``sort``: a linear execution order (Kahn's algorithm)
- ``get_parallel_groups``: dependency levels whose members can run together
- ``get_executable_nodes``: the incremental ready set given completed nodes
  and the branch labels they emitted
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Mapping
from typing import Any

from flowengine.services.workflow.algorithms import GraphAlgorithms
from flowengine.services.workflow.exceptions import CycleDetectedError
from flowengine.services.workflow.graph import Graph

CONDITIONAL_OUTPUT_KEY = "conditionalOutput"


class TopologicalSorter:
    """Computes execution orders over a validated workflow graph.

    Example:
        >>> sorter = TopologicalSorter()
        >>> sorter.sort(graph)
        ['start', 'set', 'http']
        >>> sorter.get_parallel_groups(graph)
        [['start'], ['set'], ['http']]
    """

    def sort(self, graph: Graph) -> list[str]:
        """Return a linear order in which every edge points forward.

        Raises:
            CycleDetectedError: If the graph contains a cycle, or if Kahn's
                algorithm could not order every node.
        """
        cycles = GraphAlgorithms.find_cycles(graph)
        if cycles:
            raise CycleDetectedError(cycles)

        order, _ = GraphAlgorithms.kahn_order(graph)
        if len(order) != len(graph):
            remaining = [node_id for node_id in graph.node_ids if node_id not in order]
            raise CycleDetectedError([remaining])
        return order

    def get_parallel_groups(self, graph: Graph) -> list[list[str]]:
        """Group nodes by dependency level, lowest level first.

        Nodes in the same group have no path between them and may run
        concurrently. Within a group, nodes keep topological order.

        Raises:
            CycleDetectedError: If the graph contains a cycle.
        """
        order = self.sort(graph)
        _, levels = GraphAlgorithms.kahn_order(graph)

        groups: defaultdict[int, list[str]] = defaultdict(list)
        for node_id in order:
            groups[levels[node_id]].append(node_id)
        return [groups[level] for level in sorted(groups)]

    def get_executable_nodes(
        self,
        graph: Graph,
        completed_nodes: Collection[str],
        context: Mapping[str, Any],
    ) -> list[str]:
        """Return the nodes that are ready to run now.

        A node is executable when it has not completed and every incoming
        edge's source has completed. For a conditional edge (source output
        other than ``"default"``) the source's recorded
        ``conditionalOutput`` in ``context`` must also equal the edge's
        output label. Nodes without incoming edges are executable until
        they complete.

        Args:
            graph: The workflow graph.
            completed_nodes: Ids of nodes that reached a terminal state.
            context: Workflow context snapshot; node entries are keyed by id.

        Returns:
            Ready node ids in a stable topological order.
        """
        order, _ = GraphAlgorithms.kahn_order(graph)
        executable: list[str] = []
        for node_id in order:
            if node_id in completed_nodes:
                continue
            if all(
                edge.source in completed_nodes
                and (
                    not edge.is_conditional
                    or self._branch_taken(context, edge.source, edge.source_output)
                )
                for edge in graph.get_incoming_edges(node_id)
            ):
                executable.append(node_id)
        return executable

    @staticmethod
    def _branch_taken(context: Mapping[str, Any], source_id: str, label: str) -> bool:
        entry = context.get(source_id)
        if not isinstance(entry, Mapping):
            return False
        emitted = entry.get(CONDITIONAL_OUTPUT_KEY)
        return emitted is not None and str(emitted) == label


__all__ = ["CONDITIONAL_OUTPUT_KEY", "TopologicalSorter"]
