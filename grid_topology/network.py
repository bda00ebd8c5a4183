"""Power network model: buses, switchgear, lines and switch-state vectors.

A PowerNetwork is an immutable IndexedGraph whose nodes are Bus payloads and
whose edges are either SwitchGear (breakers and disconnectors) or Line
payloads. Switch-state vectors are plain lists of SwitchState indexed like the
edge list; lines carry DONT_CARE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .rx_algorithms import ConnectivityPartition, connectivity_partition, flood_fill
from .rx_graph import IndexedGraph

logger = logging.getLogger(__name__)


class SwitchState(Enum):
    """State of an edge in a switch-state vector."""
    OPEN = 'open'
    CLOSED = 'closed'
    DONT_CARE = 'dont_care'

    def toggled(self) -> 'SwitchState':
        """Return the opposite state.

        Raises:
            ValueError: DONT_CARE has no opposite
        """
        if self is SwitchState.OPEN:
            return SwitchState.CLOSED
        if self is SwitchState.CLOSED:
            return SwitchState.OPEN
        raise ValueError("DONT_CARE state cannot be toggled")

    @property
    def conducts(self) -> bool:
        return self is not SwitchState.OPEN

    def __str__(self) -> str:
        return self.name


class BusType(IntEnum):
    """Bus type; integer values follow the grid file codes.

    Ordering is the merge priority: SLACK > PV > PQ.
    """
    PQ = 1
    PV = 2
    SLACK = 3


@dataclass(frozen=True)
class Bus:
    """Bus payload.

    Attributes:
        number: External bus number from the grid files
        bus_type: PQ, PV or SLACK
        load: Complex load in per unit (P + jQ)
        generation: Complex generation in per unit
        base_kv: Nominal voltage in kV
    """
    number: int
    bus_type: BusType = BusType.PQ
    load: complex = 0j
    generation: complex = 0j
    base_kv: float = 0.0

    @property
    def net_injection(self) -> complex:
        """Generation minus load."""
        return self.generation - self.load

    def merged_with(self, other: 'Bus') -> 'Bus':
        """Combine two buses joined by a bus tie."""
        return replace(
            self,
            bus_type=max(self.bus_type, other.bus_type),
            load=self.load + other.load,
            generation=self.generation + other.generation,
        )


@dataclass(frozen=True)
class SwitchGear:
    """Switch edge payload (circuit breaker or disconnector)."""
    name: str
    is_breaker: bool = True

    is_switch = True

    @property
    def kind(self) -> str:
        return 'CB' if self.is_breaker else 'Dis'


@dataclass(frozen=True)
class Line:
    """Circuit edge payload.

    Attributes:
        name: Equipment name
        admittance: Series admittance in per unit
        charging: Total line-charging susceptance in per unit
    """
    name: str
    admittance: complex
    charging: float = 0.0

    is_switch = False

    @property
    def kind(self) -> str:
        return 'Cir'


Branch = Union[SwitchGear, Line]


@dataclass(frozen=True)
class SwitchDelta:
    """A single switching action: edge ``edge`` goes to ``new_state``."""
    edge: int
    new_state: SwitchState

    def __str__(self) -> str:
        return f"e{self.edge}->{self.new_state}"


def merge_buses(_branch: Branch, discarded: Bus, kept: Bus) -> Bus:
    """Merge function for bus-tie contraction (sums load and generation)."""
    return kept.merged_with(discarded)


def hamming_distance(target: Sequence[SwitchState], actual: Sequence[SwitchState]) -> int:
    """Count constrained switches whose actual state disagrees with the target.

    DONT_CARE targets never count. An OPEN target counts against CLOSED
    actual and vice versa.
    """
    if len(target) != len(actual):
        raise ValueError(
            f"State vector lengths differ: {len(target)} vs {len(actual)}"
        )
    dist = 0
    for t, a in zip(target, actual):
        if t is SwitchState.OPEN and a is SwitchState.CLOSED:
            dist += 1
        elif t is SwitchState.CLOSED and a is SwitchState.OPEN:
            dist += 1
    return dist


def apply_deltas(
    base: Sequence[SwitchState], deltas: Iterable[SwitchDelta],
) -> List[SwitchState]:
    """Return a copy of ``base`` with ``deltas`` applied in order."""
    states = list(base)
    for delta in deltas:
        states[delta.edge] = delta.new_state
    return states


class PowerNetwork:
    """Read-only network topology shared by every evaluation of a search run.

    Args:
        buses: Bus payloads; list position is the bus index
        branches: ``(from_bus_index, to_bus_index, payload)`` tuples; list
            position is the edge index
        start_state: Baseline switch-state vector (one entry per branch)
        name: Optional label for reports

    Raises:
        ValueError: On missing/duplicate slack or mismatched state vector
    """

    def __init__(
        self,
        buses: Sequence[Bus],
        branches: Sequence[Tuple[int, int, Branch]],
        start_state: Optional[Sequence[SwitchState]] = None,
        name: str = 'network',
    ):
        self.name = name
        self._graph: IndexedGraph[Bus, Branch] = IndexedGraph()
        for bus in buses:
            self._graph.add_node(bus)
        for u, v, branch in branches:
            self._graph.add_edge(u, v, branch)

        if start_state is None:
            start_state = [
                SwitchState.CLOSED if b.is_switch else SwitchState.DONT_CARE
                for _, _, b in branches
            ]
        if len(start_state) != len(branches):
            raise ValueError(
                f"start_state has {len(start_state)} entries, expected {len(branches)}"
            )
        self._start_state: Tuple[SwitchState, ...] = tuple(start_state)

        slack = [i for i, b in enumerate(buses) if b.bus_type == BusType.SLACK]
        if not slack:
            raise ValueError("Network has no slack bus")
        if len(slack) > 1:
            logger.warning("Network %s has %d slack buses; using bus index %d",
                           name, len(slack), slack[0])
        self._slack = slack[0]

        self._names: Dict[str, int] = {}
        for idx, (_, _, branch) in enumerate(branches):
            if branch.name in self._names:
                raise ValueError(f"Duplicate equipment name {branch.name!r}")
            self._names[branch.name] = idx

        self._partition = connectivity_partition(self._graph, self.is_switch)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def graph(self) -> IndexedGraph:
        return self._graph

    @property
    def start_state(self) -> Tuple[SwitchState, ...]:
        return self._start_state

    @property
    def slack(self) -> int:
        return self._slack

    @property
    def partition(self) -> ConnectivityPartition:
        """Node groups separated by switch edges."""
        return self._partition

    @property
    def edge_names(self) -> Dict[str, int]:
        return dict(self._names)

    def bus(self, idx: int) -> Bus:
        return self._graph.node(idx)

    def branch(self, idx: int) -> Branch:
        return self._graph.edge(idx)

    def endpoints(self, idx: int) -> Tuple[int, int]:
        return self._graph.endpoints(idx)

    def number_of_buses(self) -> int:
        return self._graph.number_of_nodes()

    def number_of_branches(self) -> int:
        return self._graph.number_of_edges()

    def edge_by_name(self, name: str) -> Optional[int]:
        return self._names.get(name)

    def is_switch(self, edge: int) -> bool:
        return self._graph.edge(edge).is_switch

    def switch_edges(self) -> List[int]:
        return [i for i in self._graph.edge_indices() if self.is_switch(i)]

    # =========================================================================
    # Switch-state queries
    # =========================================================================

    def actual_state(self, deltas: Iterable[SwitchDelta]) -> List[SwitchState]:
        """Baseline state vector with ``deltas`` applied in order."""
        return apply_deltas(self._start_state, deltas)

    def conducts(self, edge: int, states: Sequence[SwitchState]) -> bool:
        """True unless the edge is a switch in the OPEN state."""
        return not (self.is_switch(edge) and states[edge] is SwitchState.OPEN)

    def live_nodes(
        self,
        states: Sequence[SwitchState],
        force_conducting: Optional[int] = None,
        extra_barrier=None,
    ) -> List[int]:
        """Buses reachable from the slack bus through conducting edges.

        Args:
            states: Full switch-state vector
            force_conducting: Edge treated as conducting regardless of state
            extra_barrier: Optional ``fn(edge) -> bool`` adding barriers
        """
        def is_barrier(edge: int) -> bool:
            if edge == force_conducting:
                return False
            if not self.conducts(edge, states):
                return True
            return bool(extra_barrier and extra_barrier(edge))

        return flood_fill(self._graph, self._slack, is_barrier)

    def delta_label(self, delta: SwitchDelta) -> str:
        """Readable label such as ``CB3 -> OPEN``."""
        return f"{self.branch(delta.edge).name} -> {delta.new_state}"

    def __repr__(self) -> str:
        return (f"PowerNetwork({self.name!r}, buses={self.number_of_buses()}, "
                f"branches={self.number_of_branches()})")
