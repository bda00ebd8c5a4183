"""Steady-state power flow on a switch-reduced network.

Solves bus voltages for a given switch-state vector:

1. Flood fill from the slack bus; open switches and zero-admittance lines are
   barriers. Unreached buses are de-energized and dropped.
2. Contract conducting switches (bus ties) so each electrically rigid section
   becomes one bus. Merged buses sum load/generation and keep the highest
   bus type.
3. Assemble the sparse complex nodal admittance matrix.
4. Iterate the Jacobi form of the Gauss voltage update

       V_i <- (conj(S_i) / conj(V_i) - sum_{j != i} Y_ij V_j) / Y_ii

   with the slack bus pinned to its set point each iteration.

PV buses are solved as PQ buses (their scheduled Q is used as-is).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import scipy.sparse as sp

from grid_topology.contraction import SubgraphBuilder, SubgraphMap
from grid_topology.network import PowerNetwork, SwitchState, merge_buses
from grid_topology.rx_graph import IndexedGraph

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class SteadyStateError(Exception):
    """Steady-state solve failed."""

    def __init__(self, message: str, iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations


class NonConvergenceError(SteadyStateError):
    """Iteration limit reached before the voltage update settled."""


class DivergenceError(SteadyStateError):
    """Voltage magnitude exceeded the divergence threshold or became non-finite."""


# =============================================================================
# Configuration / results
# =============================================================================

@dataclass
class SteadyStateConfig:
    """Relaxation settings.

    Attributes:
        tolerance: Stop when ||V_new - V|| falls below this
        max_iterations: Iteration cap before NonConvergenceError
        divergence_threshold: Any |V| above this raises DivergenceError
        slack_voltage: Slack bus set point (per unit)
    """
    tolerance: float = 1e-4
    max_iterations: int = 50000
    divergence_threshold: float = 10.0
    slack_voltage: complex = 1.0 + 0.0j


@dataclass
class ReducedNetwork:
    """Live, contracted view of a network for one switch-state vector.

    Attributes:
        graph: Contracted graph (Bus/Branch payloads)
        mapping: Index map back to the full network
        slack: Slack bus index in the reduced graph
    """
    graph: IndexedGraph
    mapping: SubgraphMap
    slack: int

    @property
    def num_buses(self) -> int:
        return self.graph.number_of_nodes()


@dataclass
class SteadyStateResult:
    """Converged steady-state solution.

    Attributes:
        reduced: Reduced network the solve ran on
        reduced_voltages: Complex voltages per reduced bus
        voltages: Complex voltages per original bus (NaN for dead buses)
        live: Boolean mask of energized original buses
        iterations: Number of relaxation iterations
        solve_time: Wall-clock seconds for reduction + solve
    """
    reduced: ReducedNetwork
    reduced_voltages: np.ndarray
    voltages: np.ndarray
    live: np.ndarray
    iterations: int
    solve_time: float = 0.0

    @property
    def voltage_magnitudes(self) -> np.ndarray:
        """|V| per original bus (NaN for dead buses)."""
        return np.abs(self.voltages)

    @property
    def dead_buses(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(~self.live)]


# =============================================================================
# Reduction and assembly
# =============================================================================

def _zero_admittance_line(network: PowerNetwork, edge: int) -> bool:
    branch = network.branch(edge)
    return (not branch.is_switch) and branch.admittance == 0


def reduce_network(
    network: PowerNetwork,
    states: Sequence[SwitchState],
    keep_switch: Optional[int] = None,
) -> ReducedNetwork:
    """Drop dead buses and contract conducting switches.

    Args:
        network: Full network
        states: Switch-state vector (DONT_CARE switches conduct)
        keep_switch: Switch edge that must survive as a distinct branch. It
            is treated as conducting for liveness but is never contracted.

    Returns:
        ReducedNetwork over the energized buses
    """
    if len(states) != network.number_of_branches():
        raise ValueError(
            f"State vector has {len(states)} entries, "
            f"network has {network.number_of_branches()} branches"
        )

    live = network.live_nodes(
        states,
        force_conducting=keep_switch,
        extra_barrier=lambda e: _zero_admittance_line(network, e),
    )
    live_mask = [False] * network.number_of_buses()
    for idx in live:
        live_mask[idx] = True

    def contract(edge: int, branch) -> bool:
        return branch.is_switch and edge != keep_switch and states[edge].conducts

    builder = SubgraphBuilder(network.graph, node_filter=lambda i, _bus: live_mask[i])
    builder.edge_contraction_filter(contract, merge_buses)
    graph, mapping = builder.complete()

    return ReducedNetwork(
        graph=graph,
        mapping=mapping,
        slack=mapping.sub_node(network.slack),
    )


def build_admittance_matrix(graph: IndexedGraph) -> sp.csr_matrix:
    """Assemble the nodal admittance matrix of a reduced graph.

    Off-diagonals hold the negated series admittance, diagonals the sum of
    incident admittances plus half of each incident line's charging.
    Switch edges contribute nothing.
    """
    n = graph.number_of_nodes()
    rows: List[int] = []
    cols: List[int] = []
    data: List[complex] = []

    for u, v, branch in graph.edges():
        if branch.is_switch:
            continue
        y = complex(branch.admittance)
        shunt = 0.5j * branch.charging
        rows.extend([u, v, u, v])
        cols.extend([u, v, v, u])
        data.extend([y + shunt, y + shunt, -y, -y])

    # COO sums duplicate entries on conversion
    return sp.csr_matrix(
        (np.array(data, dtype=complex), (rows, cols)), shape=(n, n), dtype=complex
    )


def bus_injections(graph: IndexedGraph) -> np.ndarray:
    """Complex net injection (generation - load) per reduced bus."""
    return np.array([bus.net_injection for bus in graph.nodes()], dtype=complex)


# =============================================================================
# Solver
# =============================================================================

class SteadyStateSolver:
    """Gauss/Jacobi bus-voltage relaxation.

    Example:
        solver = SteadyStateSolver()
        result = solver.solve(network, network.start_state)
        print(result.voltage_magnitudes)
    """

    def __init__(self, config: Optional[SteadyStateConfig] = None):
        self.config = config or SteadyStateConfig()

    def solve(self, network: PowerNetwork, states: Sequence[SwitchState]) -> SteadyStateResult:
        """Reduce the network for ``states`` and solve bus voltages.

        Raises:
            NonConvergenceError: Iteration cap reached
            DivergenceError: Voltage blew up
        """
        t0 = time.perf_counter()
        reduced = reduce_network(network, states)
        Y = build_admittance_matrix(reduced.graph)
        S = bus_injections(reduced.graph)

        v_sub, iterations = self.relax(Y, S, reduced.slack)

        n_full = network.number_of_buses()
        voltages = np.full(n_full, np.nan, dtype=complex)
        live = np.zeros(n_full, dtype=bool)
        for sub_idx, v in enumerate(v_sub):
            for super_idx in reduced.mapping.super_nodes(sub_idx):
                voltages[super_idx] = v
                live[super_idx] = True

        elapsed = time.perf_counter() - t0
        logger.debug(
            "Steady state converged: %d reduced buses, %d iterations, %.2f ms",
            reduced.num_buses, iterations, elapsed * 1000,
        )
        return SteadyStateResult(
            reduced=reduced,
            reduced_voltages=v_sub,
            voltages=voltages,
            live=live,
            iterations=iterations,
            solve_time=elapsed,
        )

    def relax(self, Y: sp.csr_matrix, S: np.ndarray, slack: int):
        """Run the voltage relaxation on an assembled system.

        Args:
            Y: Complex nodal admittance matrix (n x n)
            S: Complex injections (n,)
            slack: Slack bus index

        Returns:
            Tuple of (voltages, iteration count)
        """
        cfg = self.config
        diag = Y.diagonal()
        S_conj = np.conj(S)
        V = np.ones(Y.shape[0], dtype=complex)
        V[slack] = cfg.slack_voltage
        change = np.inf

        # Zero diagonals or zero voltages produce inf/nan, caught below
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            for iteration in range(1, cfg.max_iterations + 1):
                off_diag = Y @ V - diag * V
                V_new = (S_conj / np.conj(V) - off_diag) / diag
                V_new[slack] = cfg.slack_voltage

                if not np.all(np.isfinite(V_new)):
                    raise DivergenceError(
                        f"Non-finite bus voltage at iteration {iteration}", iteration
                    )
                v_max = np.max(np.abs(V_new))
                if v_max > cfg.divergence_threshold:
                    raise DivergenceError(
                        f"Bus voltage {v_max:.3g} pu exceeds "
                        f"{cfg.divergence_threshold} at iteration {iteration}",
                        iteration,
                    )

                change = np.linalg.norm(V_new - V)
                V = V_new
                if change < cfg.tolerance:
                    return V, iteration

        raise NonConvergenceError(
            f"No convergence after {cfg.max_iterations} iterations "
            f"(last change {change:.3g})",
            cfg.max_iterations,
        )


def steady_state_pf(
    network: PowerNetwork,
    states: Sequence[SwitchState],
    config: Optional[SteadyStateConfig] = None,
) -> SteadyStateResult:
    """Convenience wrapper around SteadyStateSolver.solve."""
    return SteadyStateSolver(config).solve(network, states)
