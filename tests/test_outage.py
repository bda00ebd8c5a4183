"""Unit tests for outage target generation."""

import unittest

from grid_topology.network import SwitchDelta, SwitchState
from grid_topology.outage import GenerateOutageError, generate_outage, operable_deltas
from tests.fixtures import create_substation_network

O = SwitchState.OPEN
C = SwitchState.CLOSED
D = SwitchState.DONT_CARE


class TestGenerateOutage(unittest.TestCase):

    def setUp(self):
        self.net = create_substation_network()

    def test_line_outage_region(self):
        """Taking Cir1 out isolates the switch-bounded group around it."""
        outage = generate_outage(self.net, ['Cir1'])

        self.assertEqual(outage.in_outage, [False, True, True, False, True, False])
        self.assertEqual(outage.boundary_edges, [0, 1, 2, 3])
        self.assertEqual(outage.inside_edges, [4, 5])
        self.assertEqual(outage.target_state, [O, O, O, O, D, D])
        self.assertEqual(outage.deltas, [
            SwitchDelta(0, O), SwitchDelta(1, O), SwitchDelta(2, O),
        ])
        self.assertEqual(outage.describe(self.net),
                         ['CB1 -> OPEN', 'Dis1 -> OPEN', 'CB2 -> OPEN'])

    def test_switch_outage_covers_both_sides(self):
        """A switch outage isolates the groups at both terminals."""
        outage = generate_outage(self.net, ['CB1'])

        self.assertTrue(outage.in_outage[0])
        self.assertTrue(outage.in_outage[1])
        # CB1 itself lies inside the region
        self.assertIn(0, outage.inside_edges)
        self.assertIs(outage.target_state[0], D)

    def test_already_open_boundary_gives_no_delta(self):
        outage = generate_outage(self.net, ['Dis1'])
        # Dis2 bounds the region but is open in the baseline
        self.assertIn(3, outage.boundary_edges)
        self.assertIs(outage.target_state[3], O)
        self.assertNotIn(3, [d.edge for d in outage.deltas])
        # CB2 joins two buses of the region
        self.assertIs(outage.target_state[2], D)
        self.assertIs(outage.target_state[0], O)
        self.assertIs(self.net.start_state[0], C)

    def test_unknown_names(self):
        with self.assertRaises(GenerateOutageError) as ctx:
            generate_outage(self.net, ['Cir1', 'CB99', 'Foo'])
        self.assertEqual(ctx.exception.names_failed, ['CB99', 'Foo'])

    def test_operable_deltas_skip_dont_care(self):
        outage = generate_outage(self.net, ['CB1'])
        deltas = operable_deltas(self.net, outage)
        self.assertTrue(deltas)
        for d in deltas:
            self.assertTrue(self.net.is_switch(d.edge))
            self.assertIsNot(d.new_state, D)


if __name__ == '__main__':
    unittest.main()
