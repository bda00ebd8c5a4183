"""Grid topology package.

Provides the indexed multigraph, connectivity and contraction algorithms, and
the power network model shared by the steady-state and transient evaluators.
"""

from .rx_graph import IndexedGraph, Adjacency, Direction
from .rx_algorithms import flood_fill, connectivity_partition, ConnectivityPartition
from .contraction import SubgraphBuilder, SubgraphMap
from .network import (
    Bus,
    BusType,
    SwitchGear,
    Line,
    Branch,
    SwitchState,
    SwitchDelta,
    PowerNetwork,
    merge_buses,
    hamming_distance,
    apply_deltas,
)
from .outage import Outage, GenerateOutageError, generate_outage, operable_deltas
from .file_parsing import load_network, GridFileError

__all__ = [
    "IndexedGraph",
    "Adjacency",
    "Direction",
    "flood_fill",
    "connectivity_partition",
    "ConnectivityPartition",
    "SubgraphBuilder",
    "SubgraphMap",
    "Bus",
    "BusType",
    "SwitchGear",
    "Line",
    "Branch",
    "SwitchState",
    "SwitchDelta",
    "PowerNetwork",
    "merge_buses",
    "hamming_distance",
    "apply_deltas",
    "Outage",
    "GenerateOutageError",
    "generate_outage",
    "operable_deltas",
    "load_network",
    "GridFileError",
]
