"""Linear RLC state-space model of a reduced network around one switch.

State vector layout (n buses, m reduced edges):

    [ v (n) | i_gen (n) | i_load (n) | i_line (m) ]

Elements:
- Generator: source e(t) behind series R-L (``rg``, ``lg``) feeding the bus,
  with shunt leakage ``rgc`` and capacitance ``cg`` at the bus. Parameters
  scale with the generator's real power P: lg = LG/P, rg = RG/P,
  rgc = RGC/P, cg = CG*P.
- Load: parallel R-L drawing the scheduled P + jQ at 1 pu
  (R = 1/P, L = 1/(w Q)); a capacitive Q adds bus capacitance instead.
- Line: series R-L from the branch impedance (L = X/w), with half of the
  charging capacitance (B/w) at each end.
- Switch under test: a conductance between its terminals, 1/R_closed when
  closed and 1/R_open (or nothing) when open.

Voltage rows are divided by the bus capacitance; a bus with no capacitance
gets an all-zero row (its voltage stays at the initial value).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from powerflow.steady_state import ReducedNetwork


@dataclass
class RLCParameters:
    """Per-unit element constants.

    Attributes:
        frequency: System frequency in Hz
        generator_resistance: RG, series resistance scale
        generator_leak_resistance: RGC, shunt leakage resistance scale
        generator_inductance: LG, series inductance scale
        generator_capacitance: CG, shunt capacitance scale
        switch_resistance: Contact resistance of a closed switch
        open_switch_resistance: Leakage resistance of an open switch
            (None = ideal open contact)
        bus_capacitance: Extra shunt capacitance added at every bus
    """
    frequency: float = 50.0
    generator_resistance: float = 1.0
    generator_leak_resistance: float = 100.0
    generator_inductance: float = 0.00525
    generator_capacitance: float = 0.000525
    switch_resistance: float = 0.001
    open_switch_resistance: Optional[float] = None
    bus_capacitance: float = 0.0

    @property
    def omega(self) -> float:
        return 2.0 * math.pi * self.frequency


@dataclass
class RLCModel:
    """Assembled state matrices for both switch positions.

    Attributes:
        a_closed: State matrix with the switch conducting
        a_open: State matrix with the switch open
        forcing: Per-state amplitude of the sinusoidal source term
        capacitance: Shunt capacitance per reduced bus
        num_buses: n
        num_edges: m
        switch_edge: Reduced index of the switch under test
        omega: Angular frequency of the source
    """
    a_closed: sp.csr_matrix
    a_open: sp.csr_matrix
    forcing: np.ndarray
    capacitance: np.ndarray
    num_buses: int
    num_edges: int
    switch_edge: int
    omega: float

    @property
    def num_states(self) -> int:
        return 3 * self.num_buses + self.num_edges

    def voltage_slice(self) -> slice:
        return slice(0, self.num_buses)

    def gen_current_index(self, bus: int) -> int:
        return self.num_buses + bus

    def load_current_index(self, bus: int) -> int:
        return 2 * self.num_buses + bus

    def line_current_index(self, edge: int) -> int:
        return 3 * self.num_buses + edge

    def rhs(self, a: sp.csr_matrix):
        """Return ``f(t, y) = A y + forcing * sin(w t)`` for matrix ``a``."""
        forcing = self.forcing
        omega = self.omega

        def f(t: float, y: np.ndarray) -> np.ndarray:
            return a @ y + forcing * math.sin(omega * t)
        return f


class _Triplets:
    """COO accumulator (duplicates are summed on conversion)."""

    def __init__(self):
        self.rows: List[int] = []
        self.cols: List[int] = []
        self.data: List[float] = []

    def add(self, r: int, c: int, v: float) -> None:
        self.rows.append(r)
        self.cols.append(c)
        self.data.append(v)

    def add_conductance(self, a: int, b: int, g: float) -> None:
        """Current g*(v_b - v_a) into a and g*(v_a - v_b) into b."""
        self.add(a, a, -g)
        self.add(a, b, g)
        self.add(b, b, -g)
        self.add(b, a, g)

    def to_csr(self, size: int) -> sp.csr_matrix:
        return sp.csr_matrix(
            (np.array(self.data, dtype=float), (self.rows, self.cols)),
            shape=(size, size),
        )


def build_rlc_model(
    reduced: ReducedNetwork,
    switch_edge: int,
    params: Optional[RLCParameters] = None,
) -> RLCModel:
    """Assemble closed/open state matrices for the switch at ``switch_edge``.

    The large contact conductance 1/switch_resistance belongs to the closed
    matrix. The open matrix carries only the optional leakage, so an ideal
    open contact decouples its terminals completely.

    Args:
        reduced: Reduced network containing the switch as a distinct edge
        switch_edge: Reduced edge index of the switch under test
        params: Element constants

    Raises:
        ValueError: If ``switch_edge`` is not a switch, or a matrix
            cannot be assembled
    """
    p = params or RLCParameters()
    graph = reduced.graph
    n = graph.number_of_nodes()
    m = graph.number_of_edges()
    size = 3 * n + m
    omega = p.omega

    if not graph.edge(switch_edge).is_switch:
        raise ValueError(f"Reduced edge {switch_edge} is not a switch")

    base = _Triplets()
    cap = np.full(n, p.bus_capacitance, dtype=float)
    forcing = np.zeros(size)

    # Generators
    for bus_idx, bus in enumerate(graph.nodes()):
        gen_p = bus.generation.real
        if gen_p <= 0:
            continue
        lg = p.generator_inductance / gen_p
        rg = p.generator_resistance / gen_p
        rgc = p.generator_leak_resistance / gen_p
        ig = n + bus_idx

        base.add(ig, ig, -rg / lg)
        base.add(ig, bus_idx, -1.0 / lg)
        forcing[ig] = 1.0 / lg

        base.add(bus_idx, ig, 1.0)
        base.add(bus_idx, bus_idx, -1.0 / rgc)
        cap[bus_idx] += p.generator_capacitance * gen_p

    # Loads
    for bus_idx, bus in enumerate(graph.nodes()):
        load = bus.load
        if load == 0:
            continue
        if load.real > 0:
            base.add(bus_idx, bus_idx, -load.real)  # 1/R with R = 1/P
        if load.imag > 0:
            il = 2 * n + bus_idx
            base.add(il, bus_idx, omega * load.imag)  # 1/L with L = 1/(w Q)
            base.add(bus_idx, il, -1.0)
        elif load.imag < 0:
            cap[bus_idx] += -load.imag / omega

    # Lines
    for edge_idx, (u, v, branch) in enumerate(graph.edges()):
        if branch.is_switch or branch.admittance == 0:
            continue
        z = 1.0 / complex(branch.admittance)
        r, x = z.real, z.imag
        cap[u] += 0.5 * branch.charging / omega
        cap[v] += 0.5 * branch.charging / omega
        if x > 0:
            inductance = x / omega
            il = 3 * n + edge_idx
            base.add(il, il, -r / inductance)
            base.add(il, u, 1.0 / inductance)
            base.add(il, v, -1.0 / inductance)
            base.add(u, il, -1.0)
            base.add(v, il, 1.0)
        elif r > 0:
            base.add_conductance(u, v, 1.0 / r)

    # Switch contact
    su, sv = graph.endpoints(switch_edge)
    closed = _Triplets()
    closed.add_conductance(su, sv, 1.0 / p.switch_resistance)
    opened = _Triplets()
    if p.open_switch_resistance:
        opened.add_conductance(su, sv, 1.0 / p.open_switch_resistance)

    row_scale = np.ones(size)
    row_scale[:n] = np.divide(1.0, cap, out=np.zeros(n), where=cap > 0)
    scale = sp.diags(row_scale)

    base_csr = base.to_csr(size)
    a_closed = (scale @ (base_csr + closed.to_csr(size))).tocsr()
    a_open = (scale @ (base_csr + opened.to_csr(size))).tocsr()

    return RLCModel(
        a_closed=a_closed,
        a_open=a_open,
        forcing=forcing,
        capacitance=cap,
        num_buses=n,
        num_edges=m,
        switch_edge=switch_edge,
        omega=omega,
    )


def transition_matrices(model: RLCModel, closing: bool) -> Tuple[sp.csr_matrix, sp.csr_matrix]:
    """Return (before, after) matrices for a closing or opening operation."""
    if closing:
        return model.a_open, model.a_closed
    return model.a_closed, model.a_open
