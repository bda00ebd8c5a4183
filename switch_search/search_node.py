"""Search nodes and the arena that owns them.

Nodes live in a flat list (SearchTree) and refer to their parent and children
by index, so the tree never forms reference cycles. A node advances through

    INIT -> STEADY_STATE_CALCULATED -> TRANSIENT_CALCULATED -> EXPANDED

and is mutated in place at each step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence

from grid_topology.network import PowerNetwork, SwitchDelta, SwitchState, apply_deltas

from .contribution import Contribution, ContributionType
from .errors import SearchInvariantError


class NodeState(Enum):
    """Lifecycle state of a search node."""
    INIT = 'init'
    STEADY_STATE_CALCULATED = 'steady_state_calculated'
    TRANSIENT_CALCULATED = 'transient_calculated'
    EXPANDED = 'expanded'


# Contribution phase accepted in each state
_PHASE = {
    NodeState.INIT: ContributionType.STEADY_STATE,
    NodeState.STEADY_STATE_CALCULATED: ContributionType.TRANSIENT,
}

_NEXT = {
    NodeState.INIT: NodeState.STEADY_STATE_CALCULATED,
    NodeState.STEADY_STATE_CALCULATED: NodeState.TRANSIENT_CALCULATED,
}


@dataclass
class SearchNode:
    """One partial switching sequence.

    Attributes:
        index: Position in the owning SearchTree
        parent: Parent index (None for the root)
        delta: Switching action leading here from the parent (None for root)
        heuristic: Scaled Hamming distance to the target
        depth: Number of deltas from the root
        label: Display label
        state: Lifecycle state
        children: Child indices
        contributions: Accumulated penalty terms
        steady_state: Cached steady-state solver output (None on failure)
        transient: Cached transient solver output (None on failure/skip)
        steady_state_time: Seconds spent in steady-state evaluation
        transient_time: Seconds spent in transient evaluation
    """
    index: int
    parent: Optional[int]
    delta: Optional[SwitchDelta]
    heuristic: float
    depth: int
    label: str
    state: NodeState = NodeState.INIT
    children: List[int] = field(default_factory=list)
    contributions: List[Contribution] = field(default_factory=list)
    steady_state: Any = None
    transient: Any = None
    steady_state_time: float = 0.0
    transient_time: float = 0.0

    @property
    def objective(self) -> float:
        """Heuristic plus the sum of penalty contributions."""
        return self.heuristic + sum(c.amount for c in self.contributions)

    @property
    def penalty(self) -> float:
        return sum(c.amount for c in self.contributions)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def complete_phase(
        self,
        kind: ContributionType,
        contributions: Iterable[Contribution],
        result: Any = None,
        duration: float = 0.0,
    ) -> None:
        """Record a finished evaluation phase and advance the state.

        Args:
            kind: STEADY_STATE in INIT, TRANSIENT in STEADY_STATE_CALCULATED
            contributions: Terms produced by the phase; each must carry ``kind``
            result: Solver output to cache
            duration: Seconds spent

        Raises:
            SearchInvariantError: If the phase does not match the state or a
                contribution is tagged for another phase
        """
        expected = _PHASE.get(self.state)
        if expected is None or kind is not expected:
            raise SearchInvariantError(
                f"Node {self.index} in state {self.state.value} cannot complete "
                f"phase {kind.value}"
            )
        items = list(contributions)
        for c in items:
            if c.kind is not kind:
                raise SearchInvariantError(
                    f"Node {self.index}: {c.kind.value} contribution during "
                    f"{kind.value} phase"
                )
        self.contributions.extend(items)
        if kind is ContributionType.STEADY_STATE:
            self.steady_state = result
            self.steady_state_time = duration
        else:
            self.transient = result
            self.transient_time = duration
        self.state = _NEXT[self.state]

    def mark_expanded(self) -> None:
        if self.state is not NodeState.TRANSIENT_CALCULATED:
            raise SearchInvariantError(
                f"Node {self.index} in state {self.state.value} cannot be expanded"
            )
        self.state = NodeState.EXPANDED

    def __str__(self) -> str:
        return (f"#{self.index} {self.label} depth={self.depth} "
                f"h={self.heuristic:g} obj={self.objective:g} [{self.state.value}]")


class SearchTree:
    """Arena of SearchNode addressed by integer index."""

    def __init__(self):
        self._nodes: List[SearchNode] = []

    def add_root(self, heuristic: float, label: str = 'START') -> SearchNode:
        if self._nodes:
            raise SearchInvariantError("Search tree already has a root")
        node = SearchNode(index=0, parent=None, delta=None,
                          heuristic=heuristic, depth=0, label=label)
        self._nodes.append(node)
        return node

    def add_child(self, parent: int, delta: SwitchDelta, heuristic: float,
                  label: str) -> SearchNode:
        parent_node = self._nodes[parent]
        node = SearchNode(
            index=len(self._nodes),
            parent=parent,
            delta=delta,
            heuristic=heuristic,
            depth=parent_node.depth + 1,
            label=label,
        )
        self._nodes.append(node)
        parent_node.children.append(node.index)
        return node

    def __getitem__(self, index: int) -> SearchNode:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes)

    @property
    def root(self) -> SearchNode:
        return self._nodes[0]

    def path(self, index: int) -> List[SearchNode]:
        """Nodes from the root to ``index`` inclusive."""
        out = []
        current: Optional[int] = index
        while current is not None:
            node = self._nodes[current]
            out.append(node)
            current = node.parent
        out.reverse()
        return out

    def delta_chain(self, index: int) -> List[SwitchDelta]:
        """Deltas from the root to ``index`` in application order."""
        return [n.delta for n in self.path(index) if n.delta is not None]

    def actual_state(self, base: Sequence[SwitchState], index: int) -> List[SwitchState]:
        """Baseline vector with the node's delta chain applied."""
        return apply_deltas(base, self.delta_chain(index))

    def network_state(self, network: PowerNetwork, index: int) -> List[SwitchState]:
        return self.actual_state(network.start_state, index)
