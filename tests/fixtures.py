"""Test fixtures for switching planner unit tests.

Provides factory functions building small PowerNetwork instances for specific
scenarios, and stub evaluators that report no violations.
"""

from typing import List, Optional, Sequence

from grid_topology.network import (
    Bus, BusType, Line, PowerNetwork, SwitchGear, SwitchState,
)
from switch_search.evaluators import Evaluation
from transient.integrators import IntegratorConfig
from transient.rlc_model import RLCParameters
from transient.transient_solver import TransientConfig


LINE_Z = 0.02 + 0.06j


def create_three_bus_network(
    charging: float = 0.02,
    flip_line: bool = False,
    loads: Sequence[complex] = (0.5 + 0.2j, 0.3 + 0.1j),
) -> PowerNetwork:
    """Slack bus 0 and PQ buses 1, 2 in a meshed triangle of lines.

    Args:
        charging: Line charging susceptance of every line
        flip_line: Negate the admittance of line 0-1
        loads: Loads of buses 1 and 2 (pu)
    """
    buses = [
        Bus(1, BusType.SLACK, generation=sum(loads), base_kv=132.0),
        Bus(2, BusType.PQ, load=loads[0], base_kv=132.0),
        Bus(3, BusType.PQ, load=loads[1], base_kv=132.0),
    ]
    y = 1.0 / LINE_Z
    branches = [
        (0, 1, Line('Cir1', -y if flip_line else y, charging)),
        (1, 2, Line('Cir2', y, charging)),
        (0, 2, Line('Cir3', y, charging)),
    ]
    return PowerNetwork(buses, branches, name='three-bus')


def create_divergent_network() -> PowerNetwork:
    """Bus 1 sees lines y and -y, so its self admittance is zero."""
    y = 1.0 / LINE_Z
    buses = [
        Bus(1, BusType.SLACK, generation=0.5 + 0j),
        Bus(2, BusType.PQ, load=0.5 + 0.1j),
        Bus(3, BusType.PQ),
    ]
    branches = [
        (0, 1, Line('Cir1', y)),
        (1, 2, Line('Cir2', -y)),
    ]
    return PowerNetwork(buses, branches, name='divergent')


def create_parallel_breaker_network() -> PowerNetwork:
    """Slack bus 0 feeding load bus 1 through two parallel breakers CB1, CB2."""
    buses = [
        Bus(1, BusType.SLACK, generation=0.5 + 0.1j),
        Bus(2, BusType.PQ, load=0.5 + 0.1j),
    ]
    branches = [
        (0, 1, SwitchGear('CB1', True)),
        (0, 1, SwitchGear('CB2', True)),
    ]
    return PowerNetwork(buses, branches,
                        [SwitchState.CLOSED, SwitchState.CLOSED], name='parallel')


def create_substation_network() -> PowerNetwork:
    """Small substation layout.

    bus0 (slack) -CB1- bus1 -Cir1- bus2 -Dis1- bus3 (load)
                                    bus2 -Cir2- bus4 -CB2- bus3
    bus1 -Dis2- bus5 (spare busbar, open)
    """
    y = 1.0 / LINE_Z
    buses = [
        Bus(1, BusType.SLACK, generation=0.6 + 0.2j, base_kv=132.0),
        Bus(2, BusType.PQ, base_kv=132.0),
        Bus(3, BusType.PQ, base_kv=132.0),
        Bus(4, BusType.PQ, load=0.4 + 0.1j, base_kv=33.0),
        Bus(5, BusType.PQ, load=0.1 + 0.05j, base_kv=132.0),
        Bus(6, BusType.PQ, base_kv=132.0),
    ]
    branches = [
        (0, 1, SwitchGear('CB1', True)),
        (2, 3, SwitchGear('Dis1', False)),
        (4, 3, SwitchGear('CB2', True)),
        (1, 5, SwitchGear('Dis2', False)),
        (1, 2, Line('Cir1', y, 0.02)),
        (2, 4, Line('Cir2', y, 0.02)),
    ]
    states = [
        SwitchState.CLOSED, SwitchState.CLOSED, SwitchState.CLOSED,
        SwitchState.OPEN, SwitchState.DONT_CARE, SwitchState.DONT_CARE,
    ]
    return PowerNetwork(buses, branches, states, name='substation')


def create_generator_breaker_network(breaker_open: bool = False) -> PowerNetwork:
    """Generator bus 0 feeding load bus 1 through breaker CB1 (no lines)."""
    buses = [
        Bus(1, BusType.SLACK, generation=1.0 + 0j),
        Bus(2, BusType.PQ, load=0.5 + 0.1j),
    ]
    branches = [(0, 1, SwitchGear('CB1', True))]
    state = SwitchState.OPEN if breaker_open else SwitchState.CLOSED
    return PowerNetwork(buses, branches, [state], name='gen-breaker')


def fast_transient_config(**integrator_overrides) -> TransientConfig:
    """Transient settings with a soft switch contact so explicit steps stay large."""
    integrator = IntegratorConfig(**integrator_overrides)
    return TransientConfig(
        integrator=integrator,
        rlc=RLCParameters(switch_resistance=1.0, bus_capacitance=1.0e-3),
    )


class StubEvaluator:
    """Evaluator returning no contributions and recording every call."""

    def __init__(self, skip_root: bool = False):
        self.calls: List[tuple] = []
        self.skip_root = skip_root

    def evaluate(self, network, states, delta, parent) -> Evaluation:
        self.calls.append((list(states), delta))
        if self.skip_root and delta is None:
            return Evaluation(skipped=True)
        return Evaluation(contributions=[], result=None, duration=0.0)


class RaisingSolver:
    """Steady-state solver stand-in that always fails with ``error``."""

    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    def solve(self, network, states):
        self.calls += 1
        raise self.error


def states_of(network: PowerNetwork, *overrides) -> List[SwitchState]:
    """Baseline state with ``(edge, state)`` overrides applied."""
    states = list(network.start_state)
    for edge, state in overrides:
        states[edge] = state
    return states
