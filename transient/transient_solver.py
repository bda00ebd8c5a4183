"""Transient simulation of a single switching operation.

The network is reduced around the switch under test (its terminals are kept
apart), an RLC state-space model is assembled for both switch positions, and
the linear ODE is integrated from ``t_start`` to ``t_end`` with the matrix
swapped at ``switch_time``. Integration is split at the switching instant so
no step straddles the discontinuity.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from grid_topology.network import PowerNetwork, SwitchDelta, SwitchState
from powerflow.steady_state import ReducedNetwork, reduce_network

from .integrators import (
    IntegrationError, IntegrationResult, IntegrationStats, IntegratorConfig,
    make_integrator,
)
from .rlc_model import RLCModel, RLCParameters, build_rlc_model, transition_matrices

logger = logging.getLogger(__name__)


class TransientError(Exception):
    """Transient simulation could not be built or integrated."""


class IntegrationMethod(Enum):
    """Time integration methods for transient analysis."""
    RK4 = 'rk4'         # fixed step, dx
    DOPRI5 = 'dopri5'   # adaptive 5(4)
    DOP853 = 'dop853'   # adaptive 8(5,3)


@dataclass
class TransientConfig:
    """Transient simulation settings.

    Attributes:
        t_start: Start time (s)
        t_end: End time (s)
        switch_time: Switching instant (s), strictly inside the interval
        method: Integration method
        integrator: Tolerances, sampling and step limits
        rlc: Element constants
    """
    t_start: float = 0.0
    t_end: float = 4.0 / 50.0
    switch_time: float = 2.0 / 50.0
    method: IntegrationMethod = IntegrationMethod.DOP853
    integrator: IntegratorConfig = field(default_factory=IntegratorConfig)
    rlc: RLCParameters = field(default_factory=RLCParameters)

    def __post_init__(self):
        if not self.t_start < self.switch_time < self.t_end:
            raise ValueError(
                f"switch_time {self.switch_time} must lie inside "
                f"({self.t_start}, {self.t_end})"
            )


@dataclass
class TransientResult:
    """Sampled trajectory of a switching transient.

    Attributes:
        delta: Switching operation simulated
        reduced: Reduced network the model was built on
        model: Assembled state matrices
        t: Sample times (k,)
        y: Sampled states (k, num_states)
        stats: Integration counters (both segments)
        switch_time: Switching instant
        solve_time: Wall-clock seconds for build + integration
    """
    delta: SwitchDelta
    reduced: ReducedNetwork
    model: RLCModel
    t: np.ndarray
    y: np.ndarray
    stats: IntegrationStats
    switch_time: float
    solve_time: float = 0.0

    @property
    def reduced_voltages(self) -> np.ndarray:
        """Bus voltage traces (k, n) on the reduced buses."""
        return self.y[:, self.model.voltage_slice()]

    def bus_voltage(self, bus: int) -> Optional[np.ndarray]:
        """Voltage trace of an original bus, or None if it is not modelled."""
        sub = self.reduced.mapping.sub_node(bus)
        if sub is None:
            return None
        return self.y[:, sub]

    def peak_voltage(self, after_switch: bool = True) -> float:
        """Largest |v| over all buses, optionally only after switching."""
        v = self.reduced_voltages
        if after_switch:
            v = v[self.t >= self.switch_time]
        return float(np.max(np.abs(v))) if v.size else 0.0


class TransientSimulator:
    """Builds and integrates the switching transient of one delta.

    Example:
        sim = TransientSimulator(TransientConfig())
        result = sim.simulate(network, states, SwitchDelta(3, SwitchState.OPEN))
        print(result.stats, result.peak_voltage())
    """

    def __init__(self, config: Optional[TransientConfig] = None):
        self.config = config or TransientConfig()

    def build(
        self,
        network: PowerNetwork,
        states: Sequence[SwitchState],
        delta: SwitchDelta,
    ):
        """Reduce the network around ``delta`` and assemble the RLC model.

        Returns:
            Tuple of (ReducedNetwork, RLCModel, switch reduced edge index), or
            None when the switch does not survive reduction (both terminals
            de-energized, or bypassed by a parallel conducting tie)

        Raises:
            TransientError: If the delta is not a switch toggle or the model
                cannot be assembled
        """
        if not network.is_switch(delta.edge):
            raise TransientError(
                f"Edge {network.branch(delta.edge).name} is not a switch"
            )
        if delta.new_state is SwitchState.DONT_CARE:
            raise TransientError("Transient needs an OPEN or CLOSED target state")

        reduced = reduce_network(network, states, keep_switch=delta.edge)
        sub_edge = reduced.mapping.sub_edge(delta.edge)
        if sub_edge is None:
            return None
        try:
            model = build_rlc_model(reduced, sub_edge, self.config.rlc)
        except ValueError as e:
            raise TransientError(f"Sparse structure error: {e}") from e
        return reduced, model, sub_edge

    def simulate(
        self,
        network: PowerNetwork,
        states: Sequence[SwitchState],
        delta: SwitchDelta,
    ) -> Optional[TransientResult]:
        """Simulate the transient caused by applying ``delta``.

        Args:
            network: Full network
            states: Switch-state vector (the switch position in it is ignored)
            delta: Switching operation under test

        Returns:
            The sampled trajectory, or None if operating the switch changes
            nothing electrically (de-energized or bypassed)

        Raises:
            TransientError: Build or integration failure
        """
        cfg = self.config
        t0 = time.perf_counter()
        built = self.build(network, states, delta)
        if built is None:
            logger.debug("No transient for %s: switch de-energized or bypassed",
                         network.delta_label(delta))
            return None
        reduced, model, _ = built

        closing = delta.new_state is SwitchState.CLOSED
        a_before, a_after = transition_matrices(model, closing)
        integrator = make_integrator(cfg.method.value, cfg.integrator)
        y0 = np.zeros(model.num_states)

        try:
            first: IntegrationResult = integrator.integrate(
                model.rhs(a_before), cfg.t_start, cfg.switch_time, y0)
            second: IntegrationResult = integrator.integrate(
                model.rhs(a_after), cfg.switch_time, cfg.t_end, first.y_final)
        except IntegrationError as e:
            raise TransientError(f"Integration error: {e}") from e

        # Drop the duplicated switching-instant sample of the second segment
        t = np.concatenate([first.t, second.t[1:]])
        y = np.vstack([first.y, second.y[1:]])
        stats = first.stats.merge(second.stats)

        elapsed = time.perf_counter() - t0
        logger.debug(
            "Transient %s: %d states, %s",
            network.delta_label(delta), model.num_states, stats,
        )
        return TransientResult(
            delta=delta,
            reduced=reduced,
            model=model,
            t=t,
            y=y,
            stats=stats,
            switch_time=cfg.switch_time,
            solve_time=elapsed,
        )


def simulate_switching(
    network: PowerNetwork,
    states: Sequence[SwitchState],
    delta: SwitchDelta,
    config: Optional[TransientConfig] = None,
) -> Optional[TransientResult]:
    """Convenience wrapper around TransientSimulator.simulate."""
    return TransientSimulator(config).simulate(network, states, delta)
