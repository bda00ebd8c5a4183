"""Butcher tableaux for explicit Runge-Kutta integration.

Tableaux are built once at import and frozen (read-only numpy arrays):

- RK4: classic fixed-step 4th order
- DOPRI5: Dormand-Prince 5(4), coefficients from ``scipy.integrate.RK45``
- DOP853: Dormand-Prince 8(5,3), coefficients from ``scipy.integrate.DOP853``

Embedded error weights have ``stages + 1`` entries; the extra weight applies to
the derivative evaluated at the new point (first-same-as-last stage).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.integrate import DOP853, RK45


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class ButcherTableau:
    """Explicit Runge-Kutta coefficients.

    Attributes:
        name: Display name
        order: Order of the propagated solution
        c: Stage time offsets (stages,)
        a: Stage coupling matrix, strictly lower triangular (stages, stages)
        b: Solution weights (stages,)
        e: Primary error weights (stages + 1,) or None for fixed-step methods
        e_aux: Secondary (3rd-order) error weights used by DOP853
    """
    name: str
    order: int
    c: np.ndarray
    a: np.ndarray
    b: np.ndarray
    e: Optional[np.ndarray] = None
    e_aux: Optional[np.ndarray] = None

    @property
    def stages(self) -> int:
        return len(self.b)

    @property
    def is_embedded(self) -> bool:
        return self.e is not None

    def validate(self, tol: float = 1e-10) -> None:
        """Check internal consistency.

        Raises:
            ValueError: On shape mismatch, non-explicit coupling, weights not
                summing to one, or row sums of ``a`` differing from ``c``
        """
        s = self.stages
        if self.c.shape != (s,) or self.a.shape != (s, s):
            raise ValueError(f"{self.name}: inconsistent tableau shapes")
        if np.any(np.triu(self.a) != 0):
            raise ValueError(f"{self.name}: coupling matrix is not strictly lower triangular")
        if abs(self.b.sum() - 1.0) > tol:
            raise ValueError(f"{self.name}: b should add up to one")
        if np.max(np.abs(self.a.sum(axis=1) - self.c)) > tol:
            raise ValueError(f"{self.name}: row sums of a differ from c")
        for weights in (self.e, self.e_aux):
            if weights is not None and weights.shape != (s + 1,):
                raise ValueError(f"{self.name}: error weights need {s + 1} entries")


RK4_TABLEAU = ButcherTableau(
    name='RK4',
    order=4,
    c=_frozen([0.0, 0.5, 0.5, 1.0]),
    a=_frozen([
        [0.0, 0.0, 0.0, 0.0],
        [0.5, 0.0, 0.0, 0.0],
        [0.0, 0.5, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ]),
    b=_frozen([1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0]),
)

DOPRI5_TABLEAU = ButcherTableau(
    name='DOPRI5',
    order=5,
    c=_frozen(RK45.C),
    a=_frozen(RK45.A),
    b=_frozen(RK45.B),
    e=_frozen(RK45.E),
)

DOP853_TABLEAU = ButcherTableau(
    name='DOP853',
    order=8,
    c=_frozen(DOP853.C),
    a=_frozen(DOP853.A),
    b=_frozen(DOP853.B),
    e=_frozen(DOP853.E5),
    e_aux=_frozen(DOP853.E3),
)
