"""PI step-size controller for embedded Runge-Kutta methods."""

from __future__ import annotations

from typing import Tuple


class PIController:
    """Accept/reject steps from a scaled error estimate and propose the next h.

    The proposed step is ``h / fac`` with

        fac = clip(err**alpha * fac_old**(-beta) / safety, 1/fac_max, 1/fac_min)

    Args:
        alpha: Proportional exponent
        beta: Integral exponent (0 gives a pure I controller)
        fac_max: Maximum growth between two successive steps
        fac_min: Minimum shrink between two successive steps
        h_max: Hard upper bound on |h|
        safety: Safety factor applied to the error ratio
        direction: +1 for forward integration, -1 for backward
    """

    def __init__(
        self,
        alpha: float,
        beta: float,
        fac_max: float,
        fac_min: float,
        h_max: float,
        safety: float = 0.9,
        direction: float = 1.0,
    ):
        if fac_min <= 0 or fac_max <= 0:
            raise ValueError("fac_min and fac_max must be positive")
        self.alpha = alpha
        self.beta = beta
        self._facc1 = 1.0 / fac_min
        self._facc2 = 1.0 / fac_max
        self._fac_old = 1.0e-4
        self._h_max = abs(h_max)
        self._reject = False
        self.safety = safety
        self.direction = 1.0 if direction >= 0 else -1.0

    @property
    def h_max(self) -> float:
        return self._h_max

    @property
    def last_rejected(self) -> bool:
        return self._reject

    def accept(self, err: float, h: float) -> Tuple[bool, float]:
        """Decide on a step of size ``h`` with scaled error ``err``.

        Returns:
            Tuple of (accepted, next step size)
        """
        fac11 = err ** self.alpha
        fac = fac11 * self._fac_old ** (-self.beta)
        fac = max(self._facc2, min(self._facc1, fac / self.safety))
        h_new = h / fac

        if err <= 1.0:
            self._fac_old = max(err, 1.0e-4)
            if abs(h_new) > self._h_max:
                h_new = self.direction * self._h_max
            if self._reject:
                # No growth directly after a rejection
                h_new = self.direction * min(abs(h_new), abs(h))
            self._reject = False
            return True, h_new

        h_new = h / min(self._facc1, fac11 / self.safety)
        self._reject = True
        return False, h_new


def dop853_controller(h_max: float, beta: float = 0.0, direction: float = 1.0) -> PIController:
    """Controller settings used with DOP853."""
    return PIController(
        alpha=1.0 / 8.0 - beta * 0.2,
        beta=beta,
        fac_max=6.0,
        fac_min=0.333,
        h_max=h_max,
        safety=0.9,
        direction=direction,
    )


def dopri5_controller(h_max: float, beta: float = 0.04, direction: float = 1.0) -> PIController:
    """Controller settings used with DOPRI5."""
    return PIController(
        alpha=0.2 - beta * 0.75,
        beta=beta,
        fac_max=10.0,
        fac_min=0.2,
        h_max=h_max,
        safety=0.9,
        direction=direction,
    )
