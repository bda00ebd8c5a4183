"""Penalty contributions attached to search nodes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ContributionType(Enum):
    """Phase a contribution belongs to."""
    STEADY_STATE = 'steady_state'
    TRANSIENT = 'transient'


@dataclass(frozen=True)
class Contribution:
    """A named, weighted penalty term added to a node's objective.

    Attributes:
        kind: Phase that produced the term
        reason: Human-readable explanation
        amount: Value added to the objective
    """
    kind: ContributionType
    reason: str
    amount: float

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.reason}: {self.amount:g}"
