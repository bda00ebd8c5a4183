"""Switching transient package.

Provides the RLC state-space model, explicit Runge-Kutta integrators with PI
step control, and the single-switch transient simulator.
"""

from .butcher_tableau import ButcherTableau, RK4_TABLEAU, DOPRI5_TABLEAU, DOP853_TABLEAU
from .controller import PIController, dop853_controller, dopri5_controller
from .integrators import (
    IntegratorConfig,
    IntegrationResult,
    IntegrationStats,
    IntegrationError,
    MaxStepsReachedError,
    StepSizeUnderflowError,
    OutputType,
    FixedStepRungeKutta,
    EmbeddedRungeKutta,
    Dop853,
    make_integrator,
)
from .rlc_model import RLCParameters, RLCModel, build_rlc_model, transition_matrices
from .transient_solver import (
    TransientConfig,
    TransientResult,
    TransientError,
    TransientSimulator,
    IntegrationMethod,
    simulate_switching,
)

__all__ = [
    "ButcherTableau",
    "RK4_TABLEAU",
    "DOPRI5_TABLEAU",
    "DOP853_TABLEAU",
    "PIController",
    "dop853_controller",
    "dopri5_controller",
    "IntegratorConfig",
    "IntegrationResult",
    "IntegrationStats",
    "IntegrationError",
    "MaxStepsReachedError",
    "StepSizeUnderflowError",
    "OutputType",
    "FixedStepRungeKutta",
    "EmbeddedRungeKutta",
    "Dop853",
    "make_integrator",
    "RLCParameters",
    "RLCModel",
    "build_rlc_model",
    "transition_matrices",
    "TransientConfig",
    "TransientResult",
    "TransientError",
    "TransientSimulator",
    "IntegrationMethod",
    "simulate_switching",
]
