"""Subgraph construction with node filtering and edge contraction.

A SubgraphBuilder starts from a full IndexedGraph, drops nodes rejected by a
node filter (along with every edge touching them), then merges the endpoints
of selected edges. ``complete()`` materializes the reduced graph together with
a SubgraphMap relating reduced indices to the original ones.

Contraction keeps the edge's "to" endpoint and folds the "from" endpoint into
it through a caller-supplied merge function:

    merged = merge(edge_payload, discarded_payload, kept_payload)

Example:
    builder = SubgraphBuilder(g, node_filter=lambda i, bus: i in live)
    builder.edge_contraction_filter(lambda i, br: br.is_closed_switch, merge_buses)
    reduced, mapping = builder.complete()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .rx_graph import IndexedGraph

logger = logging.getLogger(__name__)

NodeFilter = Callable[[int, Any], bool]
EdgeFilter = Callable[[int, Any], bool]
MergeFn = Callable[[Any, Any, Any], Any]


@dataclass
class SubgraphMap:
    """Index correspondence between an original graph and a reduced one.

    Nodes map many-to-one (contracted groups), edges map one-to-one. An
    original node or edge absent from the reduced graph maps to None.

    Attributes:
        to_subgraph_node: Original node index -> reduced node index or None
        to_supergraph_nodes: Reduced node index -> list of original nodes
        to_subgraph_edge: Original edge index -> reduced edge index or None
        to_supergraph_edge: Reduced edge index -> original edge index
    """
    to_subgraph_node: List[Optional[int]]
    to_supergraph_nodes: List[List[int]]
    to_subgraph_edge: List[Optional[int]]
    to_supergraph_edge: List[int]

    def sub_node(self, super_index: int) -> Optional[int]:
        return self.to_subgraph_node[super_index]

    def super_nodes(self, sub_index: int) -> List[int]:
        return self.to_supergraph_nodes[sub_index]

    def sub_edge(self, super_index: int) -> Optional[int]:
        return self.to_subgraph_edge[super_index]

    def super_edge(self, sub_index: int) -> int:
        return self.to_supergraph_edge[sub_index]

    def is_live(self, super_index: int) -> bool:
        """True if the original node survives in the reduced graph."""
        return self.to_subgraph_node[super_index] is not None


class SubgraphBuilder:
    """Incrementally filter and contract a graph, then build the result.

    Args:
        graph: Original graph (never mutated)
        node_filter: ``node_filter(index, payload)``; False drops the node
        node_transform: Optional payload transform applied before merging
        edge_transform: Optional edge payload transform
    """

    def __init__(
        self,
        graph: IndexedGraph,
        node_filter: Optional[NodeFilter] = None,
        node_transform: Optional[Callable[[Any], Any]] = None,
        edge_transform: Optional[Callable[[Any], Any]] = None,
    ):
        self._graph = graph
        n = graph.number_of_nodes()

        self._node_data: List[Any] = [
            node_transform(p) if node_transform else p for p in graph.nodes()
        ]
        self._edge_data: List[Any] = []
        self._endpoints: List[Tuple[int, int]] = []
        for u, v, payload in graph.edges():
            self._edge_data.append(edge_transform(payload) if edge_transform else payload)
            self._endpoints.append((u, v))

        keep = [
            node_filter(i, p) if node_filter else True
            for i, p in enumerate(self._node_data)
        ]
        # Representative of each node's merged group; only meaningful when kept
        self._owner: List[int] = list(range(n))
        self._members: List[List[int]] = [[i] if keep[i] else [] for i in range(n)]
        self._edge_alive: List[bool] = [
            keep[u] and keep[v] for u, v in self._endpoints
        ]

    def _find(self, node: int) -> int:
        root = node
        while self._owner[root] != root:
            root = self._owner[root]
        # Path compression
        while self._owner[node] != root:
            self._owner[node], node = root, self._owner[node]
        return root

    def contract_edge(self, edge: int, merge: MergeFn) -> None:
        """Merge the endpoints of ``edge``; no-op if the edge is not alive.

        An edge whose endpoints already share a group is removed without
        calling ``merge``.
        """
        if not self._edge_alive[edge]:
            return
        self._edge_alive[edge] = False

        from_node, to_node = self._endpoints[edge]
        discard = self._find(from_node)
        keep = self._find(to_node)
        if discard == keep:
            return

        self._node_data[keep] = merge(
            self._edge_data[edge], self._node_data[discard], self._node_data[keep]
        )
        self._members[keep].extend(self._members[discard])
        self._members[discard] = []
        self._owner[discard] = keep

    def edge_contraction_filter(self, edge_filter: EdgeFilter, merge: MergeFn) -> int:
        """Contract every alive edge accepted by ``edge_filter``.

        Returns:
            Number of edges examined for contraction
        """
        selected = [
            i for i, alive in enumerate(self._edge_alive)
            if alive and edge_filter(i, self._edge_data[i])
        ]
        for edge in selected:
            self.contract_edge(edge, merge)
        return len(selected)

    def complete(self) -> Tuple[IndexedGraph, SubgraphMap]:
        """Materialize the reduced graph and its index map.

        Reduced nodes are ordered by their surviving representative's
        original index. Edges keep their original relative order; edges that
        collapsed into a self-loop are dropped.
        """
        n = len(self._node_data)
        sub = IndexedGraph()
        to_sub_node: List[Optional[int]] = [None] * n
        to_super_nodes: List[List[int]] = []

        for idx in range(n):
            members = self._members[idx]
            if not members:
                continue
            sub_idx = sub.add_node(self._node_data[idx])
            to_super_nodes.append(sorted(members))
            for m in members:
                to_sub_node[m] = sub_idx

        to_sub_edge: List[Optional[int]] = [None] * len(self._edge_data)
        to_super_edge: List[int] = []
        dropped_loops = 0
        for idx, payload in enumerate(self._edge_data):
            if not self._edge_alive[idx]:
                continue
            u, v = self._endpoints[idx]
            su, sv = to_sub_node[u], to_sub_node[v]
            if su == sv:
                dropped_loops += 1
                continue
            to_sub_edge[idx] = sub.add_edge(su, sv, payload)
            to_super_edge.append(idx)

        logger.debug(
            "Subgraph complete: %d/%d nodes, %d/%d edges (%d self-loops dropped)",
            sub.number_of_nodes(), n, sub.number_of_edges(), len(self._edge_data),
            dropped_loops,
        )

        return sub, SubgraphMap(
            to_subgraph_node=to_sub_node,
            to_supergraph_nodes=to_super_nodes,
            to_subgraph_edge=to_sub_edge,
            to_supergraph_edge=to_super_edge,
        )
