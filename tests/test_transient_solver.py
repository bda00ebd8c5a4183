"""Unit tests for switching transient simulation.

Uses a generator bus feeding a load bus through one breaker, with a soft
switch contact and explicit bus capacitance so the adaptive integrators keep
large steps.
"""

import unittest

import numpy as np

from grid_topology.network import SwitchDelta, SwitchState
from transient.integrators import IntegrationStats
from transient.transient_solver import (
    IntegrationMethod,
    TransientConfig,
    TransientError,
    TransientSimulator,
    simulate_switching,
)
from tests.fixtures import (
    create_generator_breaker_network,
    create_parallel_breaker_network,
    create_substation_network,
    fast_transient_config,
)

OPEN_CB1 = SwitchDelta(0, SwitchState.OPEN)
CLOSE_CB1 = SwitchDelta(0, SwitchState.CLOSED)


class TestTransientConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = TransientConfig()
        self.assertAlmostEqual(cfg.t_end, 0.08)
        self.assertAlmostEqual(cfg.switch_time, 0.04)
        self.assertIs(cfg.method, IntegrationMethod.DOP853)

    def test_switch_time_outside_interval(self):
        with self.assertRaises(ValueError):
            TransientConfig(switch_time=0.1)
        with self.assertRaises(ValueError):
            TransientConfig(switch_time=0.0)


class TestOpeningTransient(unittest.TestCase):
    """Opening the breaker that feeds the load bus."""

    @classmethod
    def setUpClass(cls):
        cls.net = create_generator_breaker_network()
        cls.config = fast_transient_config()
        cls.result = TransientSimulator(cls.config).simulate(
            cls.net, list(cls.net.start_state), OPEN_CB1)

    def test_reaches_end(self):
        self.assertAlmostEqual(self.result.t[0], 0.0)
        self.assertEqual(self.result.t[-1], self.config.t_end)
        self.assertTrue(np.all(np.isfinite(self.result.y)))
        self.assertEqual(self.result.y.shape, (len(self.result.t), self.result.model.num_states))

    def test_single_switch_sample(self):
        """The switching instant appears exactly once in the trace."""
        hits = np.flatnonzero(np.isclose(self.result.t, self.config.switch_time, atol=1e-12))
        self.assertEqual(len(hits), 1)
        self.assertTrue(np.all(np.diff(self.result.t) > 0))

    def test_load_bus_decays_after_opening(self):
        v_load = self.result.bus_voltage(1)
        t = self.result.t
        before = np.max(np.abs(v_load[t <= self.config.switch_time]))
        late = np.max(np.abs(v_load[t >= self.config.t_end - 0.01]))

        self.assertGreater(before, 0.2)
        self.assertLess(late, 0.25 * before)

    def test_stats_cover_both_segments(self):
        stats = self.result.stats
        self.assertIsInstance(stats, IntegrationStats)
        self.assertGreater(stats.accepted_steps, 2)
        self.assertGreater(stats.num_eval, stats.accepted_steps)

    def test_peak_voltage(self):
        peak_after = self.result.peak_voltage(after_switch=True)
        peak_all = self.result.peak_voltage(after_switch=False)
        self.assertGreater(peak_after, 0.0)
        self.assertGreaterEqual(peak_all, peak_after)
        self.assertEqual(self.result.switch_time, self.config.switch_time)


class TestClosingTransient(unittest.TestCase):
    """Closing onto a de-energized load bus."""

    def test_load_bus_energized_after_closing(self):
        net = create_generator_breaker_network(breaker_open=True)
        states = [SwitchState.CLOSED]
        result = simulate_switching(net, states, CLOSE_CB1, fast_transient_config())

        v_load = result.bus_voltage(1)
        t = result.t
        self.assertLess(np.max(np.abs(v_load[t < result.switch_time])), 1e-9)
        self.assertGreater(np.max(np.abs(v_load[t > result.switch_time])), 0.1)

    def test_methods_agree(self):
        """DOPRI5 and RK4 reproduce the DOP853 end state."""
        net = create_generator_breaker_network()
        states = list(net.start_state)
        reference = simulate_switching(net, states, OPEN_CB1, fast_transient_config(
            rtol=1e-6, atol=1e-6))

        for method in (IntegrationMethod.DOPRI5, IntegrationMethod.RK4):
            with self.subTest(method=method.value):
                config = fast_transient_config(rtol=1e-6, atol=1e-6)
                config.method = method
                result = simulate_switching(net, states, OPEN_CB1, config)
                np.testing.assert_allclose(result.y[-1], reference.y[-1], atol=1e-3)


class TestTransientErrors(unittest.TestCase):

    def setUp(self):
        self.sim = TransientSimulator(fast_transient_config())

    def test_line_delta_rejected(self):
        net = create_substation_network()
        with self.assertRaises(TransientError):
            self.sim.simulate(net, list(net.start_state),
                              SwitchDelta(net.edge_by_name('Cir1'), SwitchState.OPEN))

    def test_dont_care_rejected(self):
        net = create_generator_breaker_network()
        with self.assertRaises(TransientError):
            self.sim.simulate(net, list(net.start_state),
                              SwitchDelta(0, SwitchState.DONT_CARE))

    def test_deenergized_switch_has_no_transient(self):
        """A switch behind an open breaker has no transient."""
        net = create_substation_network()
        states = list(net.start_state)
        states[0] = SwitchState.OPEN
        states[2] = SwitchState.OPEN
        self.assertIsNone(self.sim.simulate(net, states, SwitchDelta(1, SwitchState.OPEN)))

    def test_bypassed_switch_has_no_transient(self):
        """Opening one of two parallel closed breakers changes nothing."""
        net = create_parallel_breaker_network()
        self.assertIsNone(self.sim.simulate(net, list(net.start_state), OPEN_CB1))

    def test_step_budget(self):
        net = create_generator_breaker_network()
        sim = TransientSimulator(fast_transient_config(max_steps=5))
        with self.assertRaises(TransientError):
            sim.simulate(net, list(net.start_state), OPEN_CB1)


if __name__ == '__main__':
    unittest.main()
