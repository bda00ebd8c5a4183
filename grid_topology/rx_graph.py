"""Indexed multigraph wrapper over rustworkx PyGraph.

The network model addresses buses and branches by dense integer index and
carries arbitrary payloads on both. This module wraps an undirected
``rx.PyGraph(multigraph=True)`` so that:

- Node and edge indices are contiguous (nodes and edges are never removed;
  reduced graphs are built fresh by the contraction engine)
- Edge endpoints keep the orientation they were inserted with (rustworkx
  stores source/target even for undirected graphs), so adjacency can be
  reported with a FROM/TO direction tag
- Payloads can be transformed while preserving structure (``map_payloads``)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import (
    Callable, Generic, Iterator, List, Optional, Tuple, TypeVar,
)

import rustworkx as rx

N = TypeVar('N')
E = TypeVar('E')
N2 = TypeVar('N2')
E2 = TypeVar('E2')


class Direction(Enum):
    """Orientation of an edge relative to the node whose adjacency is listed."""
    FROM = 'from'  # edge leaves this node
    TO = 'to'      # edge enters this node


@dataclass(frozen=True)
class Adjacency:
    """One adjacency record of a node.

    Attributes:
        edge: Index of the incident edge
        neighbor: Index of the node at the other end
        direction: FROM if the edge was inserted starting at this node
    """
    edge: int
    neighbor: int
    direction: Direction


class IndexedGraph(Generic[N, E]):
    """Undirected multigraph with dense integer indices and payloads.

    Example:
        g = IndexedGraph()
        a = g.add_node('bus-a')
        b = g.add_node('bus-b')
        e = g.add_edge(a, b, 'line-ab')
        for adj in g.adjacency(a):
            print(adj.edge, adj.neighbor, adj.direction)
    """

    def __init__(self):
        """Initialize empty graph."""
        self._graph: rx.PyGraph = rx.PyGraph(multigraph=True)

    # =========================================================================
    # Construction
    # =========================================================================

    def add_node(self, payload: N) -> int:
        """Add a node and return its index."""
        return self._graph.add_node(payload)

    def add_edge(self, from_node: int, to_node: int, payload: E) -> int:
        """Add an edge between two existing nodes.

        Args:
            from_node: Index of the originating node
            to_node: Index of the terminating node
            payload: Edge payload

        Returns:
            Index of the new edge

        Raises:
            KeyError: If either endpoint is not in the graph
        """
        self._check_node(from_node)
        self._check_node(to_node)

        return self._graph.add_edge(from_node, to_node, payload)

    # =========================================================================
    # Lookup
    # =========================================================================

    def node(self, idx: int) -> N:
        """Return the payload of node ``idx``."""
        self._check_node(idx)
        return self._graph[idx]

    def edge(self, idx: int) -> E:
        """Return the payload of edge ``idx``."""
        self._check_edge(idx)
        return self._graph.get_edge_data_by_index(idx)

    def endpoints(self, idx: int) -> Tuple[int, int]:
        """Return ``(from_node, to_node)`` of edge ``idx``."""
        self._check_edge(idx)
        return tuple(self._graph.get_edge_endpoints_by_index(idx))

    def adjacency(self, idx: int) -> List[Adjacency]:
        """Return adjacency records of node ``idx`` in edge index order.

        A self-loop is listed once, tagged FROM.
        """
        self._check_node(idx)
        records = []
        for edge in sorted(set(self._graph.incident_edges(idx))):
            u, v = self._graph.get_edge_endpoints_by_index(edge)
            if u == idx:
                records.append(Adjacency(edge, v, Direction.FROM))
            else:
                records.append(Adjacency(edge, u, Direction.TO))
        return records

    def neighbors(self, idx: int) -> List[int]:
        """Return neighbor indices of node ``idx`` (one per incident edge)."""
        return [adj.neighbor for adj in self.adjacency(idx)]

    def number_of_nodes(self) -> int:
        return self._graph.num_nodes()

    def number_of_edges(self) -> int:
        return self._graph.num_edges()

    def __len__(self) -> int:
        return self._graph.num_nodes()

    def node_indices(self) -> range:
        return range(self._graph.num_nodes())

    def edge_indices(self) -> range:
        return range(self._graph.num_edges())

    def nodes(self) -> Iterator[N]:
        """Iterate node payloads in index order."""
        for idx in self.node_indices():
            yield self._graph[idx]

    def edges(self) -> Iterator[Tuple[int, int, E]]:
        """Iterate ``(from_node, to_node, payload)`` in edge index order."""
        for idx in self.edge_indices():
            u, v = self._graph.get_edge_endpoints_by_index(idx)
            yield u, v, self._graph.get_edge_data_by_index(idx)

    # =========================================================================
    # Transforms
    # =========================================================================

    def map_payloads(
        self,
        node_fn: Optional[Callable[[N], N2]] = None,
        edge_fn: Optional[Callable[[E], E2]] = None,
    ) -> 'IndexedGraph[N2, E2]':
        """Return a structurally identical graph with transformed payloads.

        Node and edge indices are preserved. A missing function copies the
        payload unchanged.
        """
        out: IndexedGraph = IndexedGraph()
        for payload in self.nodes():
            out.add_node(node_fn(payload) if node_fn else payload)
        for u, v, payload in self.edges():
            out.add_edge(u, v, edge_fn(payload) if edge_fn else payload)
        return out

    @property
    def rx_graph(self) -> rx.PyGraph:
        """Direct access to the underlying rustworkx graph."""
        return self._graph

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_node(self, idx: int) -> None:
        if not 0 <= idx < self._graph.num_nodes():
            raise KeyError(f"Node {idx} not in graph")

    def _check_edge(self, idx: int) -> None:
        if not 0 <= idx < self._graph.num_edges():
            raise KeyError(f"Edge {idx} not in graph")

    def __repr__(self) -> str:
        return (f"IndexedGraph(nodes={self.number_of_nodes()}, "
                f"edges={self.number_of_edges()})")
