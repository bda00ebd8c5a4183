"""Unit tests for IndexedGraph.

Tests index assignment, adjacency direction tags, payload lookup and
structure-preserving payload transforms.
"""

import unittest

import rustworkx as rx

from grid_topology.rx_graph import Adjacency, Direction, IndexedGraph


class TestIndexedGraphConstruction(unittest.TestCase):
    """Test node and edge insertion."""

    def test_dense_indices(self):
        """Nodes and edges get consecutive indices from zero."""
        g = IndexedGraph()
        self.assertEqual([g.add_node(name) for name in 'abc'], [0, 1, 2])
        self.assertEqual(g.add_edge(0, 1, 'ab'), 0)
        self.assertEqual(g.add_edge(1, 2, 'bc'), 1)
        self.assertEqual(g.number_of_nodes(), 3)
        self.assertEqual(g.number_of_edges(), 2)
        self.assertEqual(len(g), 3)

    def test_payload_lookup(self):
        g = IndexedGraph()
        a = g.add_node('bus-a')
        b = g.add_node('bus-b')
        e = g.add_edge(a, b, 'line-ab')

        self.assertEqual(g.node(a), 'bus-a')
        self.assertEqual(g.edge(e), 'line-ab')
        self.assertEqual(g.endpoints(e), (a, b))

    def test_add_edge_unknown_node(self):
        """Adding an edge to a missing node raises KeyError."""
        g = IndexedGraph()
        g.add_node('a')
        with self.assertRaises(KeyError):
            g.add_edge(0, 5, 'bad')
        self.assertEqual(g.number_of_edges(), 0)

    def test_lookup_out_of_range(self):
        g = IndexedGraph()
        g.add_node('a')
        with self.assertRaises(KeyError):
            g.node(3)
        with self.assertRaises(KeyError):
            g.edge(0)

    def test_parallel_edges_kept(self):
        """Parallel edges between the same pair stay distinct."""
        g = IndexedGraph()
        g.add_node('a')
        g.add_node('b')
        g.add_edge(0, 1, 'first')
        g.add_edge(0, 1, 'second')

        self.assertEqual(g.number_of_edges(), 2)
        self.assertEqual(g.neighbors(0), [1, 1])
        self.assertIsInstance(g.rx_graph, rx.PyGraph)
        self.assertEqual(g.rx_graph.num_edges(), 2)


class TestIndexedGraphAdjacency(unittest.TestCase):
    """Test adjacency records."""

    def setUp(self):
        self.g = IndexedGraph()
        for name in 'abc':
            self.g.add_node(name)
        self.g.add_edge(0, 1, 'ab')
        self.g.add_edge(2, 0, 'ca')

    def test_direction_tags(self):
        """Adjacency lists carry FROM for outgoing and TO for incoming edges."""
        self.assertEqual(self.g.adjacency(0), [
            Adjacency(0, 1, Direction.FROM),
            Adjacency(1, 2, Direction.TO),
        ])
        self.assertEqual(self.g.adjacency(1), [Adjacency(0, 0, Direction.TO)])
        self.assertEqual(self.g.adjacency(2), [Adjacency(1, 0, Direction.FROM)])

    def test_self_loop_listed_once(self):
        self.g.add_edge(1, 1, 'loop')
        loops = [adj for adj in self.g.adjacency(1) if adj.edge == 2]
        self.assertEqual(loops, [Adjacency(2, 1, Direction.FROM)])

    def test_edges_iteration_order(self):
        self.assertEqual(list(self.g.edges()), [(0, 1, 'ab'), (2, 0, 'ca')])
        self.assertEqual(list(self.g.nodes()), ['a', 'b', 'c'])

    def test_topology_read_from_rustworkx(self):
        """Endpoints and adjacency agree with the underlying PyGraph."""
        self.g.add_edge(1, 0, 'ba')
        rx_graph = self.g.rx_graph
        for e in self.g.edge_indices():
            self.assertEqual(self.g.endpoints(e), tuple(rx_graph.get_edge_endpoints_by_index(e)))
        self.assertEqual([adj.edge for adj in self.g.adjacency(0)],
                         sorted(rx_graph.incident_edges(0)))
        self.assertEqual(self.g.adjacency(1), [
            Adjacency(0, 0, Direction.TO),
            Adjacency(2, 0, Direction.FROM),
        ])


class TestMapPayloads(unittest.TestCase):
    """Test payload transforms."""

    def test_structure_preserved(self):
        g = IndexedGraph()
        for i in range(4):
            g.add_node(i)
        g.add_edge(0, 1, 1.0)
        g.add_edge(1, 2, 2.0)
        g.add_edge(3, 1, 3.0)

        mapped = g.map_payloads(lambda n: f"n{n}", lambda w: w * 10)

        self.assertEqual(list(mapped.nodes()), ['n0', 'n1', 'n2', 'n3'])
        self.assertEqual(list(mapped.edges()), [(0, 1, 10.0), (1, 2, 20.0), (3, 1, 30.0)])
        self.assertEqual(mapped.adjacency(1), g.adjacency(1))
        # Original untouched
        self.assertEqual(g.node(0), 0)

    def test_missing_functions_copy(self):
        g = IndexedGraph()
        g.add_node('x')
        g.add_node('y')
        g.add_edge(0, 1, 'xy')

        copy = g.map_payloads()
        self.assertEqual(list(copy.edges()), [(0, 1, 'xy')])
        self.assertIsNot(copy.rx_graph, g.rx_graph)


if __name__ == '__main__':
    unittest.main()
