"""Adapters running the physics solvers for a search node.

Each evaluator times its solver, runs the configured scanners on success, and
turns a solver failure into a single fixed penalty contribution so the branch
is de-prioritized instead of aborting the search.

Evaluators share one call signature, so tests and callers can substitute
their own:

    evaluate(network, states, delta, parent) -> Evaluation
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from grid_topology.network import PowerNetwork, SwitchDelta, SwitchState
from powerflow.steady_state import SteadyStateError, SteadyStateSolver
from transient.transient_solver import TransientError, TransientSimulator

from .contribution import Contribution, ContributionType
from .scanners import (
    ViolationScanner, default_steady_state_scanners, default_transient_scanners,
)
from .search_node import SearchNode

logger = logging.getLogger(__name__)

FAILURE_PENALTY = 1000.0


@dataclass
class Evaluation:
    """Outcome of one evaluation phase.

    Attributes:
        contributions: Penalty terms for the node
        result: Solver output, or None on failure/skip
        duration: Seconds spent
        error: Solver exception when the evaluation failed
        skipped: True when no evaluation was needed (root transient)
    """
    contributions: List[Contribution] = field(default_factory=list)
    result: Any = None
    duration: float = 0.0
    error: Optional[Exception] = None
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


class SteadyStateEvaluator:
    """Steady-state phase: power flow plus steady-state scanners."""

    kind = ContributionType.STEADY_STATE

    def __init__(
        self,
        solver: Optional[SteadyStateSolver] = None,
        scanners: Optional[Sequence[ViolationScanner]] = None,
        failure_penalty: float = FAILURE_PENALTY,
    ):
        self.solver = solver or SteadyStateSolver()
        self.scanners = list(scanners) if scanners is not None else default_steady_state_scanners()
        self.failure_penalty = failure_penalty

    def evaluate(
        self,
        network: PowerNetwork,
        states: Sequence[SwitchState],
        delta: Optional[SwitchDelta],
        parent: Optional[SearchNode],
    ) -> Evaluation:
        t0 = time.perf_counter()
        try:
            result = self.solver.solve(network, states)
        except SteadyStateError as e:
            logger.warning("Steady state failed (%s): %s", type(e).__name__, e)
            return Evaluation(
                contributions=[Contribution(
                    self.kind, f"steady state failed: {type(e).__name__}: {e}",
                    self.failure_penalty,
                )],
                duration=time.perf_counter() - t0,
                error=e,
            )

        if result is None:
            return Evaluation(duration=time.perf_counter() - t0, skipped=True)

        contributions: List[Contribution] = []
        for scanner in self.scanners:
            contributions.extend(scanner.scan(network, result, delta, parent))
        return Evaluation(contributions, result, time.perf_counter() - t0)


class TransientEvaluator:
    """Transient phase: switching simulation plus transient scanners.

    The root (no delta) is skipped without penalty, as is a switch whose
    operation has no transient because it is de-energized or bypassed.
    """

    kind = ContributionType.TRANSIENT

    def __init__(
        self,
        simulator: Optional[TransientSimulator] = None,
        scanners: Optional[Sequence[ViolationScanner]] = None,
        failure_penalty: float = FAILURE_PENALTY,
    ):
        self.simulator = simulator or TransientSimulator()
        self.scanners = list(scanners) if scanners is not None else default_transient_scanners()
        self.failure_penalty = failure_penalty

    def evaluate(
        self,
        network: PowerNetwork,
        states: Sequence[SwitchState],
        delta: Optional[SwitchDelta],
        parent: Optional[SearchNode],
    ) -> Evaluation:
        if delta is None:
            return Evaluation(skipped=True)

        t0 = time.perf_counter()
        try:
            result = self.simulator.simulate(network, states, delta)
        except TransientError as e:
            logger.warning("Transient failed for %s: %s", network.delta_label(delta), e)
            return Evaluation(
                contributions=[Contribution(
                    self.kind, f"transient failed: {e}", self.failure_penalty,
                )],
                duration=time.perf_counter() - t0,
                error=e,
            )
        if result is None:
            return Evaluation(duration=time.perf_counter() - t0, skipped=True)

        contributions: List[Contribution] = []
        for scanner in self.scanners:
            contributions.extend(scanner.scan(network, result, delta, parent))
        return Evaluation(contributions, result, time.perf_counter() - t0)
