"""Unit tests for network reduction and the steady-state relaxation."""

import unittest

import numpy as np

from grid_topology.network import Bus, BusType, Line, PowerNetwork, SwitchState
from powerflow.steady_state import (
    DivergenceError,
    NonConvergenceError,
    SteadyStateConfig,
    SteadyStateError,
    SteadyStateSolver,
    build_admittance_matrix,
    bus_injections,
    reduce_network,
    steady_state_pf,
)
from tests.fixtures import (
    LINE_Z,
    create_divergent_network,
    create_parallel_breaker_network,
    create_substation_network,
    create_three_bus_network,
    states_of,
)


def power_mismatch(result):
    """|S - V conj(Y V)| per reduced bus."""
    graph = result.reduced.graph
    Y = build_admittance_matrix(graph)
    S = bus_injections(graph)
    V = result.reduced_voltages
    return np.abs(S - V * np.conj(Y @ V))


class TestReduceNetwork(unittest.TestCase):
    """Test liveness filtering and bus-tie contraction."""

    def test_closed_switches_contracted(self):
        net = create_substation_network()
        reduced = reduce_network(net, net.start_state)

        # bus0+bus1 via CB1, bus2+bus3+bus4 via Dis1/CB2, bus5 dead
        self.assertEqual(reduced.num_buses, 2)
        self.assertEqual(reduced.mapping.super_nodes(reduced.slack), [0, 1])
        self.assertIsNone(reduced.mapping.sub_node(5))
        self.assertEqual(reduced.mapping.sub_node(2), reduced.mapping.sub_node(4))
        # Cir2 collapses into a self-loop and is dropped; Cir1 survives
        self.assertEqual(reduced.graph.number_of_edges(), 1)
        self.assertIsNone(reduced.mapping.sub_edge(5))
        self.assertEqual(reduced.mapping.sub_edge(4), 0)
        merged = reduced.graph.node(reduced.mapping.sub_node(3))
        self.assertAlmostEqual(merged.load, 0.4 + 0.1j)

    def test_open_breaker_deenergizes(self):
        net = create_substation_network()
        states = states_of(net, (0, SwitchState.OPEN))
        reduced = reduce_network(net, states)
        self.assertEqual(reduced.num_buses, 1)
        self.assertEqual(reduced.slack, 0)

    def test_keep_switch_survives(self):
        net = create_substation_network()
        reduced = reduce_network(net, net.start_state, keep_switch=0)
        sub_edge = reduced.mapping.sub_edge(0)
        self.assertIsNotNone(sub_edge)
        self.assertTrue(reduced.graph.edge(sub_edge).is_switch)
        self.assertNotEqual(reduced.mapping.sub_node(0), reduced.mapping.sub_node(1))

    def test_keep_switch_open_energizes_far_side(self):
        """An open switch under study still carries liveness to its far side."""
        net = create_substation_network()
        reduced = reduce_network(net, net.start_state, keep_switch=3)
        self.assertIsNotNone(reduced.mapping.sub_node(5))

    def test_state_length_checked(self):
        net = create_substation_network()
        with self.assertRaises(ValueError):
            reduce_network(net, [SwitchState.CLOSED])


class TestAdmittanceMatrix(unittest.TestCase):

    def test_three_bus_matrix(self):
        net = create_three_bus_network(charging=0.04)
        Y = build_admittance_matrix(net.graph).toarray()
        y = 1.0 / LINE_Z

        np.testing.assert_allclose(Y, Y.T)
        np.testing.assert_allclose(np.diag(Y), [2 * y + 0.04j] * 3)
        np.testing.assert_allclose(Y[0, 1], -y)

    def test_switches_ignored(self):
        net = create_parallel_breaker_network()
        Y = build_admittance_matrix(net.graph)
        self.assertEqual(Y.shape, (2, 2))
        self.assertEqual(Y.nnz, 0)


class TestSteadyStateSolver(unittest.TestCase):
    """Test the Jacobi relaxation."""

    def test_power_balance(self):
        """Converged voltages satisfy S = V conj(YV) at PQ buses."""
        net = create_three_bus_network()
        result = SteadyStateSolver().solve(net, net.start_state)

        mismatch = power_mismatch(result)
        pq = [i for i in range(result.reduced.num_buses) if i != result.reduced.slack]
        self.assertLess(np.max(mismatch[pq]), 2e-2)
        self.assertEqual(result.voltages[net.slack], 1.0 + 0.0j)
        self.assertGreater(result.iterations, 1)

    def test_radial_reference_voltages(self):
        """Resistive feeder whose exact solution is V = (1, 0.975, 0.95)."""
        # 1 pu through 0.025 then 0.5 pu through 0.05: each section drops 0.025
        buses = [
            Bus(1, BusType.SLACK, generation=0.9625 + 0j),
            Bus(2, BusType.PQ, load=0.4875 + 0j),
            Bus(3, BusType.PQ, load=0.475 + 0j),
        ]
        branches = [
            (0, 1, Line('R12', 40.0 + 0j)),
            (1, 2, Line('R23', 20.0 + 0j)),
        ]
        net = PowerNetwork(buses, branches, name='radial')
        result = steady_state_pf(net, net.start_state, SteadyStateConfig(tolerance=1e-12))

        np.testing.assert_allclose(result.voltages.real, [1.0, 0.975, 0.95], atol=1e-6)
        np.testing.assert_allclose(result.voltages.imag, [0.0, 0.0, 0.0], atol=1e-9)

    def test_tight_tolerance(self):
        net = create_three_bus_network()
        loose = steady_state_pf(net, net.start_state)
        tight = steady_state_pf(net, net.start_state, SteadyStateConfig(tolerance=1e-10))

        mismatch = power_mismatch(tight)
        self.assertLess(np.max(mismatch[1:]), 1e-6)
        np.testing.assert_allclose(loose.voltages, tight.voltages, atol=1e-3)
        # Loads pull PQ voltages below the slack set point
        self.assertTrue(np.all(tight.voltage_magnitudes[1:] < 1.0))

    def test_no_load_flat_profile(self):
        net = create_three_bus_network(charging=0.0, loads=(0j, 0j))
        result = steady_state_pf(net, net.start_state)
        np.testing.assert_allclose(result.voltages, np.ones(3), atol=1e-12)
        self.assertEqual(result.iterations, 1)

    def test_zero_diagonal_diverges(self):
        net = create_divergent_network()
        with self.assertRaises(DivergenceError) as ctx:
            steady_state_pf(net, net.start_state)
        self.assertIsInstance(ctx.exception, SteadyStateError)
        self.assertGreaterEqual(ctx.exception.iterations, 1)

    def test_negated_line_changes_or_fails(self):
        """Flipping a line's admittance sign gives a different solution or an error."""
        reference = steady_state_pf(
            create_three_bus_network(), (SwitchState.DONT_CARE,) * 3)
        flipped = create_three_bus_network(flip_line=True)
        try:
            result = steady_state_pf(flipped, flipped.start_state)
        except SteadyStateError:
            return
        self.assertFalse(np.allclose(result.voltages, reference.voltages, atol=1e-3))

    def test_iteration_cap(self):
        net = create_three_bus_network()
        config = SteadyStateConfig(tolerance=1e-14, max_iterations=3)
        with self.assertRaises(NonConvergenceError) as ctx:
            steady_state_pf(net, net.start_state, config)
        self.assertEqual(ctx.exception.iterations, 3)

    def test_dead_buses_reported(self):
        net = create_substation_network()
        states = states_of(net, (0, SwitchState.OPEN))
        result = steady_state_pf(net, states)

        self.assertEqual(result.dead_buses, [1, 2, 3, 4, 5])
        self.assertTrue(np.isnan(result.voltages[3]))
        self.assertTrue(result.live[0])

    def test_contracted_buses_share_voltage(self):
        net = create_substation_network()
        result = steady_state_pf(net, net.start_state)
        self.assertEqual(result.voltages[2], result.voltages[3])
        self.assertEqual(result.voltages[0], result.voltages[1])
        self.assertLess(abs(result.voltages[3]), 1.0)

    def test_slack_voltage_setpoint(self):
        net = create_three_bus_network()
        config = SteadyStateConfig(slack_voltage=1.05 + 0j)
        result = steady_state_pf(net, net.start_state, config)
        self.assertEqual(result.voltages[0], 1.05 + 0j)


if __name__ == '__main__':
    unittest.main()
