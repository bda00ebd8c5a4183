"""Outage-driven target generation.

Given named equipment to take out of service, the outage region is the union
of the switch-bounded groups touching that equipment. Every switch on the
region boundary must be opened; switches inside the region are left
unconstrained; everything else keeps its baseline state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .network import PowerNetwork, SwitchDelta, SwitchState

logger = logging.getLogger(__name__)


class GenerateOutageError(Exception):
    """Raised when equipment names cannot be resolved to edges."""

    def __init__(self, names_failed: Sequence[str]):
        self.names_failed = list(names_failed)
        super().__init__(
            f"Unable to determine the edges for names: {self.names_failed}"
        )


@dataclass
class Outage:
    """Target configuration derived from an equipment outage.

    Attributes:
        in_outage: Per-bus flag, True inside the outage region
        groups: Partition group indices forming the region
        boundary_edges: Edges with exactly one endpoint in the region
        inside_edges: Edges with both endpoints in the region
        target_state: Target switch-state vector
        deltas: Differences from the baseline, in edge order
    """
    in_outage: List[bool]
    groups: List[int]
    boundary_edges: List[int]
    inside_edges: List[int]
    target_state: List[SwitchState]
    deltas: List[SwitchDelta]

    def describe(self, network: PowerNetwork) -> List[str]:
        return [network.delta_label(d) for d in self.deltas]


def generate_outage(network: PowerNetwork, edge_names: Sequence[str]) -> Outage:
    """Build the target state isolating the named equipment.

    Raises:
        GenerateOutageError: If any name is unknown
    """
    failed = [name for name in edge_names if network.edge_by_name(name) is None]
    if failed:
        raise GenerateOutageError(failed)

    partition = network.partition
    groups = set()
    for name in edge_names:
        u, v = network.endpoints(network.edge_by_name(name))
        groups.add(partition.group_of[u])
        groups.add(partition.group_of[v])

    region = set(partition.nodes_of(sorted(groups)))

    boundary: List[int] = []
    inside: List[int] = []
    target: List[SwitchState] = []
    for edge, state in enumerate(network.start_state):
        u, v = network.endpoints(edge)
        if (u in region) != (v in region):
            boundary.append(edge)
            target.append(SwitchState.OPEN)
        elif u in region:
            inside.append(edge)
            target.append(SwitchState.DONT_CARE)
        else:
            target.append(state)

    deltas = [
        SwitchDelta(edge, t)
        for edge, (t, s) in enumerate(zip(target, network.start_state))
        if t is not s
    ]

    logger.info(
        "Outage %s: %d buses isolated, %d boundary switches, %d deltas",
        list(edge_names), len(region), len(boundary), len(deltas),
    )

    return Outage(
        in_outage=[i in region for i in range(network.number_of_buses())],
        groups=sorted(groups),
        boundary_edges=boundary,
        inside_edges=inside,
        target_state=target,
        deltas=deltas,
    )


def operable_deltas(network: PowerNetwork, outage: Outage) -> List[SwitchDelta]:
    """Deltas of ``outage`` that operate a switch (DONT_CARE targets skipped)."""
    return [
        d for d in outage.deltas
        if network.is_switch(d.edge) and d.new_state is not SwitchState.DONT_CARE
    ]
