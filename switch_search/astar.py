"""Best-first (A*) search over switching sequences.

Each popped node advances one step of its state machine and is pushed back
with its updated objective:

    INIT                     -> steady-state evaluation
    STEADY_STATE_CALCULATED  -> transient evaluation (skipped for the root and
                                for de-energized or bypassed switches)
    TRANSIENT_CALCULATED     -> accept if heuristic == 0, else expand

Objective = heuristic + sum of penalty contributions, with heuristic =
``heuristic_scale`` x Hamming distance to the target state vector.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple

from grid_topology.network import (
    PowerNetwork, SwitchDelta, SwitchState, apply_deltas, hamming_distance,
)

from .contribution import ContributionType
from .errors import SearchInvariantError
from .evaluators import Evaluation, SteadyStateEvaluator, TransientEvaluator
from .frontier import Frontier
from .search_node import NodeState, SearchNode, SearchTree

logger = logging.getLogger(__name__)


@dataclass
class SearchConfig:
    """Search settings.

    Attributes:
        heuristic_scale: Factor applied to the Hamming distance
        max_iterations: Cap on pop/advance iterations (None = unlimited)
        time_limit: Wall-clock limit in seconds (None = unlimited)
    """
    heuristic_scale: float = 10.0
    max_iterations: Optional[int] = None
    time_limit: Optional[float] = None


class SearchStatus(Enum):
    ACCEPTED = 'accepted'
    NO_FEASIBLE_SEQUENCE = 'no_feasible_sequence'
    BUDGET_EXHAUSTED = 'budget_exhausted'


@dataclass
class SearchStatistics:
    """Counters and timings of a search run."""
    iterations: int = 0
    nodes_created: int = 0
    nodes_expanded: int = 0
    steady_state_evaluations: int = 0
    steady_state_failures: int = 0
    steady_state_time: float = 0.0
    transient_evaluations: int = 0
    transient_failures: int = 0
    transient_time: float = 0.0
    wall_time: float = 0.0

    def summary(self) -> str:
        return (
            f"{self.iterations} iterations, {self.nodes_created} nodes "
            f"({self.nodes_expanded} expanded), "
            f"{self.steady_state_evaluations} steady-state evals "
            f"({self.steady_state_failures} failed, {self.steady_state_time:.3f} s), "
            f"{self.transient_evaluations} transient evals "
            f"({self.transient_failures} failed, {self.transient_time:.3f} s), "
            f"wall {self.wall_time:.3f} s"
        )


@dataclass
class SearchResult:
    """Outcome of a search run.

    Attributes:
        status: ACCEPTED, NO_FEASIBLE_SEQUENCE or BUDGET_EXHAUSTED
        statistics: Counters and timings
        tree: All nodes created
        accepted: Index of the accepted node, if any
        sequence: Ordered operating sequence (empty unless accepted)
    """
    status: SearchStatus
    statistics: SearchStatistics
    tree: SearchTree
    accepted: Optional[int] = None
    sequence: List[SwitchDelta] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is SearchStatus.ACCEPTED

    @property
    def accepted_node(self) -> Optional[SearchNode]:
        return None if self.accepted is None else self.tree[self.accepted]

    def describe(self, network: PowerNetwork) -> List[str]:
        return [network.delta_label(d) for d in self.sequence]


# =============================================================================
# Expansion policies
# =============================================================================

class MovePolicy:
    """Chooses the deltas to expand from a node."""

    def moves(
        self, node: SearchNode, states: Sequence[SwitchState], network: PowerNetwork,
    ) -> List[SwitchDelta]:
        raise NotImplementedError


class GenerateMoves(MovePolicy):
    """Flip every operable switch once; DONT_CARE switches are not flippable.

    A node's penalties depend only on its parent configuration and the
    delta applied to it, so a transition generated once anywhere in the tree
    is not generated again. Different orderings reaching the same
    configuration are still all generated.

    Args:
        prune_revisits: Skip transitions (parent configuration, delta)
            already generated; without it penalty-free cycles are expanded
            indefinitely
    """

    def __init__(self, prune_revisits: bool = True):
        self.prune_revisits = prune_revisits
        self._seen: Set[Tuple[Tuple[SwitchState, ...], SwitchDelta]] = set()

    def reset(self, start: Sequence[SwitchState]) -> None:
        self._seen = set()

    def moves(self, node, states, network) -> List[SwitchDelta]:
        out = []
        for edge in network.switch_edges():
            current = states[edge]
            if current is SwitchState.DONT_CARE:
                continue
            delta = SwitchDelta(edge, current.toggled())
            if self.prune_revisits:
                key = (tuple(states), delta)
                if key in self._seen:
                    continue
                self._seen.add(key)
            out.append(delta)
        return out


class EvaluateSequence(MovePolicy):
    """Follow a fixed list of deltas, one child per node."""

    def __init__(self, deltas: Sequence[SwitchDelta]):
        self.deltas = list(deltas)

    def moves(self, node, states, network) -> List[SwitchDelta]:
        if node.depth < len(self.deltas):
            return [self.deltas[node.depth]]
        return []


# =============================================================================
# Search
# =============================================================================

class AStarSearch:
    """A* search from the network's baseline state towards ``target``.

    Args:
        network: Network under study (read-only)
        target: Target switch-state vector (DONT_CARE = unconstrained)
        policy: Expansion policy (default GenerateMoves)
        steady_state: Steady-state evaluator
        transient: Transient evaluator
        config: Search settings

    Example:
        outage = generate_outage(network, ['CB3'])
        search = AStarSearch(network, outage.target_state)
        result = search.run()
        print(result.status, result.describe(network))
    """

    def __init__(
        self,
        network: PowerNetwork,
        target: Sequence[SwitchState],
        policy: Optional[MovePolicy] = None,
        steady_state=None,
        transient=None,
        config: Optional[SearchConfig] = None,
    ):
        if len(target) != network.number_of_branches():
            raise ValueError(
                f"Target has {len(target)} entries, network has "
                f"{network.number_of_branches()} branches"
            )
        self.network = network
        self.target = list(target)
        self.policy = policy or GenerateMoves()
        self.steady_state = steady_state or SteadyStateEvaluator()
        self.transient = transient or TransientEvaluator()
        self.config = config or SearchConfig()

    def heuristic(self, states: Sequence[SwitchState]) -> float:
        return self.config.heuristic_scale * hamming_distance(self.target, states)

    def run(self) -> SearchResult:
        """Run the search until acceptance, exhaustion or budget."""
        cfg = self.config
        stats = SearchStatistics()
        tree = SearchTree()
        frontier = Frontier()
        start = time.perf_counter()
        deadline = start + cfg.time_limit if cfg.time_limit is not None else None

        if isinstance(self.policy, GenerateMoves):
            self.policy.reset(self.network.start_state)

        root = tree.add_root(self.heuristic(self.network.start_state))
        stats.nodes_created = 1
        frontier.push(root)
        logger.info("Search started on %s: root heuristic %g", self.network.name, root.heuristic)

        def finish(status: SearchStatus, accepted: Optional[int] = None) -> SearchResult:
            stats.wall_time = time.perf_counter() - start
            sequence = tree.delta_chain(accepted) if accepted is not None else []
            logger.info("Search finished: %s; %s", status.value, stats.summary())
            return SearchResult(status, stats, tree, accepted, sequence)

        while True:
            if cfg.max_iterations is not None and stats.iterations >= cfg.max_iterations:
                return finish(SearchStatus.BUDGET_EXHAUSTED)
            if deadline is not None and time.perf_counter() > deadline:
                return finish(SearchStatus.BUDGET_EXHAUSTED)
            if not frontier:
                return finish(SearchStatus.NO_FEASIBLE_SEQUENCE)

            node = tree[frontier.pop()]
            stats.iterations += 1
            logger.debug("Pop %s", node)

            if node.state is NodeState.INIT:
                self._evaluate(tree, node, ContributionType.STEADY_STATE, stats)
                frontier.push(node)
            elif node.state is NodeState.STEADY_STATE_CALCULATED:
                self._evaluate(tree, node, ContributionType.TRANSIENT, stats)
                frontier.push(node)
            elif node.state is NodeState.TRANSIENT_CALCULATED:
                if node.heuristic == 0:
                    logger.info("Accepted %s", node)
                    return finish(SearchStatus.ACCEPTED, node.index)
                self._expand(tree, frontier, node, stats)
            else:
                raise SearchInvariantError(f"Expanded node {node.index} popped from frontier")

    def _evaluate(self, tree: SearchTree, node: SearchNode,
                  kind: ContributionType, stats: SearchStatistics) -> None:
        states = tree.network_state(self.network, node.index)
        parent = tree[node.parent] if node.parent is not None else None

        if kind is ContributionType.STEADY_STATE:
            evaluation: Evaluation = self.steady_state.evaluate(
                self.network, states, node.delta, parent)
            stats.steady_state_evaluations += 1
            stats.steady_state_time += evaluation.duration
            if evaluation.failed:
                stats.steady_state_failures += 1
        else:
            evaluation = self.transient.evaluate(self.network, states, node.delta, parent)
            if not evaluation.skipped:
                stats.transient_evaluations += 1
                stats.transient_time += evaluation.duration
            if evaluation.failed:
                stats.transient_failures += 1

        node.complete_phase(kind, evaluation.contributions, evaluation.result,
                            evaluation.duration)
        logger.debug("%s -> %s (+%g)", node.label, node.state.value,
                     sum(c.amount for c in evaluation.contributions))

    def _expand(self, tree: SearchTree, frontier: Frontier,
                node: SearchNode, stats: SearchStatistics) -> None:
        states = tree.network_state(self.network, node.index)
        moves = self.policy.moves(node, states, self.network)
        node.mark_expanded()
        stats.nodes_expanded += 1
        for delta in moves:
            child_states = apply_deltas(states, [delta])
            child = tree.add_child(
                node.index, delta, self.heuristic(child_states),
                self.network.delta_label(delta),
            )
            stats.nodes_created += 1
            frontier.push(child)
        logger.debug("Expanded %s into %d children", node.label, len(moves))


def a_star(
    network: PowerNetwork,
    target: Sequence[SwitchState],
    config: Optional[SearchConfig] = None,
    **kwargs,
) -> SearchResult:
    """Convenience wrapper: build an AStarSearch and run it."""
    return AStarSearch(network, target, config=config, **kwargs).run()
