"""Switching sequence search package.

Provides the A* search core, its node arena and frontier, the physics
evaluators and the pluggable violation scanners.
"""

from .contribution import Contribution, ContributionType
from .errors import SearchInvariantError
from .search_node import NodeState, SearchNode, SearchTree
from .frontier import Frontier
from .scanners import (
    ViolationScanner,
    VoltageLimitScanner,
    UnservedLoadScanner,
    DisconnectorUnderLoadScanner,
    NullTransientScanner,
    TransientOvervoltageScanner,
    default_steady_state_scanners,
    default_transient_scanners,
)
from .evaluators import Evaluation, SteadyStateEvaluator, TransientEvaluator, FAILURE_PENALTY
from .astar import (
    AStarSearch,
    SearchConfig,
    SearchResult,
    SearchStatistics,
    SearchStatus,
    MovePolicy,
    GenerateMoves,
    EvaluateSequence,
    a_star,
)

__all__ = [
    "Contribution",
    "ContributionType",
    "SearchInvariantError",
    "NodeState",
    "SearchNode",
    "SearchTree",
    "Frontier",
    "ViolationScanner",
    "VoltageLimitScanner",
    "UnservedLoadScanner",
    "DisconnectorUnderLoadScanner",
    "NullTransientScanner",
    "TransientOvervoltageScanner",
    "default_steady_state_scanners",
    "default_transient_scanners",
    "Evaluation",
    "SteadyStateEvaluator",
    "TransientEvaluator",
    "FAILURE_PENALTY",
    "AStarSearch",
    "SearchConfig",
    "SearchResult",
    "SearchStatistics",
    "SearchStatus",
    "MovePolicy",
    "GenerateMoves",
    "EvaluateSequence",
    "a_star",
]
