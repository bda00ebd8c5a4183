"""Explicit Runge-Kutta integrators for ``dy/dt = f(t, y)``.

Classes:
- FixedStepRungeKutta: constant step (RK4 by default)
- EmbeddedRungeKutta: adaptive step with PI control and RMS error norm (DOPRI5)
- Dop853: adaptive 8th order with the combined 5th/3rd order error estimate

Adaptive integrators start from Hairer's initial step heuristic, never exceed
``h_max`` and stop after ``max_steps`` attempted steps. Output is either every
accepted step (SPARSE) or samples every ``dx`` obtained by cubic Hermite
interpolation between accepted steps (DENSE).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np

from .butcher_tableau import (
    ButcherTableau, DOP853_TABLEAU, DOPRI5_TABLEAU, RK4_TABLEAU,
)
from .controller import PIController, dop853_controller, dopri5_controller

logger = logging.getLogger(__name__)

RhsFn = Callable[[float, np.ndarray], np.ndarray]

UROUND = np.finfo(float).eps


# =============================================================================
# Errors
# =============================================================================

class IntegrationError(Exception):
    """Integration stopped before reaching the end point."""

    def __init__(self, message: str, t: float):
        super().__init__(message)
        self.t = t


class MaxStepsReachedError(IntegrationError):
    def __init__(self, t: float, max_steps: int):
        super().__init__(f"Stopped at t = {t:.6g}. Need more than {max_steps} steps.", t)
        self.max_steps = max_steps


class StepSizeUnderflowError(IntegrationError):
    def __init__(self, t: float):
        super().__init__(f"Stopped at t = {t:.6g}. Step size underflow.", t)


# =============================================================================
# Configuration / results
# =============================================================================

class OutputType(Enum):
    """Which points an integration run reports."""
    SPARSE = 'sparse'   # every accepted step
    DENSE = 'dense'     # uniform samples every dx


@dataclass
class IntegratorConfig:
    """Integrator settings.

    Attributes:
        rtol: Relative tolerance
        atol: Absolute tolerance
        dx: Sampling interval for DENSE output and step size for fixed-step
        max_steps: Cap on attempted steps per run
        h_max: Maximum step size (None = whole interval)
        first_step: Initial step size (None = automatic)
        output: SPARSE or DENSE
    """
    rtol: float = 0.01
    atol: float = 0.01
    dx: float = 1.0 / 50.0 / 1000.0
    max_steps: int = 100000
    h_max: Optional[float] = None
    first_step: Optional[float] = None
    output: OutputType = OutputType.DENSE


@dataclass
class IntegrationStats:
    """Counters of one or more integration runs."""
    num_eval: int = 0
    accepted_steps: int = 0
    rejected_steps: int = 0
    elapsed: float = 0.0

    def merge(self, other: 'IntegrationStats') -> 'IntegrationStats':
        return IntegrationStats(
            num_eval=self.num_eval + other.num_eval,
            accepted_steps=self.accepted_steps + other.accepted_steps,
            rejected_steps=self.rejected_steps + other.rejected_steps,
            elapsed=self.elapsed + other.elapsed,
        )

    def __str__(self) -> str:
        return (f"{self.num_eval} evaluations, {self.accepted_steps} accepted, "
                f"{self.rejected_steps} rejected steps, {self.elapsed * 1000:.2f} ms")


@dataclass
class IntegrationResult:
    """Output of an integration run.

    Attributes:
        t: Output times (k,)
        y: Output states (k, n)
        stats: Counters
    """
    t: np.ndarray
    y: np.ndarray
    stats: IntegrationStats = field(default_factory=IntegrationStats)

    @property
    def y_final(self) -> np.ndarray:
        return self.y[-1]


# =============================================================================
# Helpers
# =============================================================================

def _rms(v: np.ndarray) -> float:
    return float(np.sqrt(np.mean(v * v))) if v.size else 0.0


def initial_step(
    fun: RhsFn, t0: float, y0: np.ndarray, f0: np.ndarray,
    order: int, rtol: float, atol: float, h_max: float,
) -> float:
    """Hairer's starting step heuristic (one extra function evaluation)."""
    scale = atol + rtol * np.abs(y0)
    d0 = _rms(y0 / scale)
    d1 = _rms(f0 / scale)
    h0 = 1.0e-6 if (d0 < 1.0e-10 or d1 < 1.0e-10) else 0.01 * d0 / d1
    h0 = min(h0, h_max)

    f1 = fun(t0 + h0, y0 + h0 * f0)
    d2 = _rms((f1 - f0) / scale) / h0

    if max(d1, d2) <= 1.0e-15:
        h1 = max(1.0e-6, h0 * 1.0e-3)
    else:
        h1 = (0.01 / max(d1, d2)) ** (1.0 / order)
    return min(100.0 * h0, h1, h_max)


def hermite_sample(
    t_nodes: List[float], y_nodes: List[np.ndarray], f_nodes: List[np.ndarray],
    t_samples: np.ndarray,
) -> np.ndarray:
    """Cubic Hermite interpolation of accepted steps at ``t_samples``."""
    t_arr = np.asarray(t_nodes)
    out = np.empty((len(t_samples), len(y_nodes[0])))
    seg = np.clip(np.searchsorted(t_arr, t_samples, side='right') - 1, 0, len(t_arr) - 2)
    for k, (ts, i) in enumerate(zip(t_samples, seg)):
        h = t_arr[i + 1] - t_arr[i]
        s = (ts - t_arr[i]) / h
        h00 = (1 + 2 * s) * (1 - s) ** 2
        h10 = s * (1 - s) ** 2
        h01 = s * s * (3 - 2 * s)
        h11 = s * s * (s - 1)
        out[k] = (h00 * y_nodes[i] + h10 * h * f_nodes[i]
                  + h01 * y_nodes[i + 1] + h11 * h * f_nodes[i + 1])
    return out


def sample_times(t0: float, t_end: float, dx: float) -> np.ndarray:
    """Uniform grid ``t0, t0 + dx, ...`` always ending exactly at ``t_end``."""
    count = int(np.floor((t_end - t0) / dx + 1.0e-9))
    grid = t0 + dx * np.arange(count + 1)
    if t_end - grid[-1] > 1.0e-12 * max(1.0, abs(t_end)):
        grid = np.append(grid, t_end)
    else:
        grid[-1] = t_end
    return grid


# =============================================================================
# Fixed step
# =============================================================================

class FixedStepRungeKutta:
    """Constant-step explicit Runge-Kutta (no error control)."""

    def __init__(self, tableau: ButcherTableau = RK4_TABLEAU,
                 config: Optional[IntegratorConfig] = None):
        self.tableau = tableau
        self.config = config or IntegratorConfig()

    def integrate(self, fun: RhsFn, t0: float, t_end: float, y0) -> IntegrationResult:
        cfg = self.config
        tab = self.tableau
        start = time.perf_counter()
        stats = IntegrationStats()

        times = sample_times(t0, t_end, cfg.dx)
        if len(times) - 1 > cfg.max_steps:
            raise MaxStepsReachedError(t0, cfg.max_steps)

        y = np.array(y0, dtype=float)
        ys = [y.copy()]
        K = np.empty((tab.stages, y.size))
        for t, t_next in zip(times[:-1], times[1:]):
            h = t_next - t
            for i in range(tab.stages):
                y_stage = y + h * (tab.a[i, :i] @ K[:i]) if i else y
                K[i] = fun(t + tab.c[i] * h, y_stage)
            stats.num_eval += tab.stages
            y = y + h * (tab.b @ K)
            stats.accepted_steps += 1
            ys.append(y.copy())

        stats.elapsed = time.perf_counter() - start
        return IntegrationResult(t=times, y=np.array(ys), stats=stats)


# =============================================================================
# Adaptive step
# =============================================================================

class EmbeddedRungeKutta:
    """Adaptive embedded Runge-Kutta with PI step-size control.

    Example:
        solver = EmbeddedRungeKutta()   # DOPRI5
        result = solver.integrate(lambda t, y: -y, 0.0, 1.0, [1.0])
        print(result.y_final, result.stats)
    """

    tableau: ButcherTableau = DOPRI5_TABLEAU

    def __init__(self, config: Optional[IntegratorConfig] = None,
                 tableau: Optional[ButcherTableau] = None):
        self.config = config or IntegratorConfig()
        if tableau is not None:
            self.tableau = tableau
        if not self.tableau.is_embedded:
            raise ValueError(f"{self.tableau.name} has no embedded error estimate")

    def make_controller(self, h_max: float) -> PIController:
        return dopri5_controller(h_max)

    def error_norm(self, K: np.ndarray, h: float, scale: np.ndarray) -> float:
        """Scaled RMS norm of the embedded error estimate."""
        return _rms(h * (self.tableau.e @ K) / scale)

    def _step(self, fun: RhsFn, t: float, y: np.ndarray, f: np.ndarray,
              h: float, K: np.ndarray) -> np.ndarray:
        tab = self.tableau
        K[0] = f
        for i in range(1, tab.stages):
            K[i] = fun(t + tab.c[i] * h, y + h * (tab.a[i, :i] @ K[:i]))
        y_new = y + h * (tab.b @ K[:tab.stages])
        K[tab.stages] = fun(t + h, y_new)
        return y_new

    def integrate(self, fun: RhsFn, t0: float, t_end: float, y0) -> IntegrationResult:
        """Integrate from ``t0`` to ``t_end`` (forward only).

        Raises:
            MaxStepsReachedError: More than ``max_steps`` attempted steps
            StepSizeUnderflowError: Step size fell below machine resolution
        """
        cfg = self.config
        tab = self.tableau
        if t_end <= t0:
            raise ValueError(f"t_end ({t_end}) must be greater than t0 ({t0})")

        start = time.perf_counter()
        stats = IntegrationStats()
        h_max = abs(cfg.h_max) if cfg.h_max else t_end - t0
        controller = self.make_controller(h_max)

        y = np.array(y0, dtype=float)
        f = fun(t0, y)
        stats.num_eval += 1
        if cfg.first_step:
            h = min(abs(cfg.first_step), h_max)
        else:
            h = initial_step(fun, t0, y, f, tab.order, cfg.rtol, cfg.atol, h_max)
            stats.num_eval += 1

        t = t0
        t_nodes, y_nodes, f_nodes = [t0], [y.copy()], [f.copy()]
        K = np.empty((tab.stages + 1, y.size))
        attempts = 0

        while t < t_end:
            if attempts >= cfg.max_steps:
                raise MaxStepsReachedError(t, cfg.max_steps)
            if 0.1 * abs(h) <= abs(t) * UROUND:
                raise StepSizeUnderflowError(t)

            last = t + 1.01 * h >= t_end
            if last:
                h = t_end - t
            attempts += 1

            y_new = self._step(fun, t, y, f, h, K)
            stats.num_eval += tab.stages

            scale = cfg.atol + cfg.rtol * np.maximum(np.abs(y), np.abs(y_new))
            err = self.error_norm(K, h, scale)
            if not np.isfinite(err):
                err = np.inf

            accepted, h_new = controller.accept(err, h)
            if accepted:
                stats.accepted_steps += 1
                t = t_end if last else t + h
                y = y_new
                f = K[tab.stages].copy()
                t_nodes.append(t)
                y_nodes.append(y.copy())
                f_nodes.append(f)
            else:
                stats.rejected_steps += 1
            h = h_new if np.isfinite(h_new) else h * 0.1

        stats.elapsed = time.perf_counter() - start
        logger.debug("%s %.6g -> %.6g: %s", tab.name, t0, t_end, stats)

        if cfg.output is OutputType.DENSE:
            t_out = sample_times(t0, t_end, cfg.dx)
            y_out = hermite_sample(t_nodes, y_nodes, f_nodes, t_out)
        else:
            t_out = np.array(t_nodes)
            y_out = np.array(y_nodes)
        return IntegrationResult(t=t_out, y=y_out, stats=stats)


class Dop853(EmbeddedRungeKutta):
    """Dormand-Prince 8(5,3) with Hairer's combined error estimate."""

    tableau = DOP853_TABLEAU

    def make_controller(self, h_max: float) -> PIController:
        return dop853_controller(h_max)

    def error_norm(self, K: np.ndarray, h: float, scale: np.ndarray) -> float:
        err5 = (self.tableau.e @ K) / scale
        err3 = (self.tableau.e_aux @ K) / scale
        err5_sq = float(np.dot(err5, err5))
        err3_sq = float(np.dot(err3, err3))
        if err5_sq == 0.0 and err3_sq == 0.0:
            return 0.0
        denom = err5_sq + 0.01 * err3_sq
        return abs(h) * err5_sq / np.sqrt(denom * len(scale))


def make_integrator(method: str, config: Optional[IntegratorConfig] = None):
    """Build an integrator by name: 'rk4', 'dopri5' or 'dop853'."""
    key = method.lower()
    if key == 'rk4':
        return FixedStepRungeKutta(RK4_TABLEAU, config)
    if key == 'dopri5':
        return EmbeddedRungeKutta(config)
    if key == 'dop853':
        return Dop853(config)
    raise ValueError(f"Unknown integration method {method!r}")
