"""Steady-state power flow package."""

from .steady_state import (
    SteadyStateConfig,
    SteadyStateResult,
    SteadyStateSolver,
    SteadyStateError,
    NonConvergenceError,
    DivergenceError,
    ReducedNetwork,
    reduce_network,
    build_admittance_matrix,
    bus_injections,
    steady_state_pf,
)

__all__ = [
    "SteadyStateConfig",
    "SteadyStateResult",
    "SteadyStateSolver",
    "SteadyStateError",
    "NonConvergenceError",
    "DivergenceError",
    "ReducedNetwork",
    "reduce_network",
    "build_admittance_matrix",
    "bus_injections",
    "steady_state_pf",
]
