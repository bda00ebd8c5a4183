"""Pluggable violation scanners.

A scanner inspects one evaluation result and returns penalty contributions:

    scan(network, result, delta, parent) -> List[Contribution]

``delta`` is the switching action that produced the evaluated configuration
(None for the root) and ``parent`` the parent SearchNode (None for the root),
whose cached steady-state result describes the configuration before the
action. Steady-state scanners receive a SteadyStateResult, transient scanners
a TransientResult.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from grid_topology.network import PowerNetwork, SwitchDelta, SwitchState
from powerflow.steady_state import SteadyStateResult
from transient.transient_solver import TransientResult

from .contribution import Contribution, ContributionType
from .search_node import SearchNode

logger = logging.getLogger(__name__)


class ViolationScanner:
    """Base class; subclasses set ``kind`` and implement ``scan``."""

    kind: ContributionType

    def scan(
        self,
        network: PowerNetwork,
        result,
        delta: Optional[SwitchDelta],
        parent: Optional[SearchNode],
    ) -> List[Contribution]:
        raise NotImplementedError

    def _contribution(self, reason: str, amount: float) -> Contribution:
        return Contribution(self.kind, reason, float(amount))


# =============================================================================
# Steady state
# =============================================================================

class VoltageLimitScanner(ViolationScanner):
    """Penalize energized buses whose |V| lies outside ``[v_min, v_max]``.

    The amount is ``weight`` times the deviation from the violated limit.
    """

    kind = ContributionType.STEADY_STATE

    def __init__(self, v_min: float = 0.9, v_max: float = 1.1, weight: float = 100.0):
        if v_min >= v_max:
            raise ValueError(f"v_min ({v_min}) must be below v_max ({v_max})")
        self.v_min = v_min
        self.v_max = v_max
        self.weight = weight

    def scan(self, network, result: SteadyStateResult, delta, parent) -> List[Contribution]:
        out = []
        mags = result.voltage_magnitudes
        for bus in np.flatnonzero(result.live):
            v = float(mags[bus])
            if v > self.v_max:
                deviation, side = v - self.v_max, 'over'
            elif v < self.v_min:
                deviation, side = self.v_min - v, 'under'
            else:
                continue
            out.append(self._contribution(
                f"{side}-voltage at bus {network.bus(int(bus)).number}: |V|={v:.4f} pu",
                self.weight * deviation,
            ))
        return out


class UnservedLoadScanner(ViolationScanner):
    """Penalize de-energized buses that carry load (blackout).

    The amount is ``weight`` times the apparent power of the lost load (pu).
    """

    kind = ContributionType.STEADY_STATE

    def __init__(self, weight: float = 100.0):
        self.weight = weight

    def scan(self, network, result: SteadyStateResult, delta, parent) -> List[Contribution]:
        lost = 0.0
        buses = []
        for bus in result.dead_buses:
            load = network.bus(bus).load
            if load != 0:
                lost += abs(load)
                buses.append(network.bus(bus).number)
        if not buses:
            return []
        return [self._contribution(
            f"unserved load {lost:.4f} pu at buses {buses}", self.weight * lost,
        )]


class DisconnectorUnderLoadScanner(ViolationScanner):
    """Penalize disconnector operations that make or break current.

    Opening is a violation when the disconnector's terminals were energized
    before the operation and are no longer joined by a bus tie afterwards.
    Closing is a violation when both terminals were energized before the
    operation but on different electrical nodes (paralleling live sections).
    Breaker operations and the root are never penalized.
    """

    kind = ContributionType.STEADY_STATE

    def __init__(self, penalty: float = 500.0):
        self.penalty = penalty

    def scan(self, network, result: SteadyStateResult, delta, parent) -> List[Contribution]:
        if delta is None or parent is None:
            return []
        branch = network.branch(delta.edge)
        if not branch.is_switch or branch.is_breaker:
            return []
        before = parent.steady_state
        if not isinstance(before, SteadyStateResult):
            # No pre-operation solution to compare against
            return []

        u, v = network.endpoints(delta.edge)
        pre_u = before.reduced.mapping.sub_node(u)
        pre_v = before.reduced.mapping.sub_node(v)

        if delta.new_state is SwitchState.OPEN:
            if pre_u is None and pre_v is None:
                return []
            post_u = result.reduced.mapping.sub_node(u)
            post_v = result.reduced.mapping.sub_node(v)
            if post_u is not None and post_u == post_v:
                return []
            reason = f"{branch.name} opened under load"
        elif delta.new_state is SwitchState.CLOSED:
            if pre_u is None or pre_v is None or pre_u == pre_v:
                return []
            reason = f"{branch.name} closed between energized sections"
        else:
            return []

        logger.debug("Disconnector violation: %s", reason)
        return [self._contribution(reason, self.penalty)]


# =============================================================================
# Transient
# =============================================================================

class NullTransientScanner(ViolationScanner):
    """Default transient policy: no penalties."""

    kind = ContributionType.TRANSIENT

    def scan(self, network, result, delta, parent) -> List[Contribution]:
        return []


class TransientOvervoltageScanner(ViolationScanner):
    """Penalize post-switching voltage peaks above ``limit`` (pu)."""

    kind = ContributionType.TRANSIENT

    def __init__(self, limit: float = 2.0, weight: float = 100.0):
        self.limit = limit
        self.weight = weight

    def scan(self, network, result: TransientResult, delta, parent) -> List[Contribution]:
        peak = result.peak_voltage(after_switch=True)
        if peak <= self.limit:
            return []
        return [self._contribution(
            f"transient overvoltage {peak:.3f} pu after {network.delta_label(result.delta)}",
            self.weight * (peak - self.limit),
        )]


def default_steady_state_scanners() -> List[ViolationScanner]:
    return [
        DisconnectorUnderLoadScanner(),
        VoltageLimitScanner(),
        UnservedLoadScanner(),
    ]


def default_transient_scanners() -> List[ViolationScanner]:
    return [NullTransientScanner()]
