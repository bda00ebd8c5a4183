"""Grid directory parser.

A grid directory contains four whitespace-separated text files, each starting
with one header line:

    Buses.txt     id type Pd Qd ... baseKV   (column 9 = base kV)
    Gens.txt      bus Pg Qg
    Switches.txt  fbus tbus status is_breaker   (status 1 = open)
    Circuits.txt  fbus tbus r x b

Loads and generation are given in MW/MVAr and converted to per unit on
``base_mva``. Circuit impedances are already per unit.

Switch edges come first in the edge list, then circuits. Equipment is named
CB<n>, Dis<n>, Cir<n>, numbered from 1 per kind in file order.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

from .network import Bus, BusType, Line, PowerNetwork, SwitchGear, SwitchState

logger = logging.getLogger(__name__)

BUSES_FILE = 'Buses.txt'
GENS_FILE = 'Gens.txt'
SWITCHES_FILE = 'Switches.txt'
CIRCUITS_FILE = 'Circuits.txt'

BASE_KV_COLUMN = 9


class GridFileError(Exception):
    """Raised for missing or malformed grid files."""


def _read_rows(path: Path, name: str) -> List[Tuple[int, List[str]]]:
    """Return ``(line_number, cells)`` for each non-empty data row."""
    file_path = path / name
    if not file_path.is_file():
        raise GridFileError(f"Cannot find file {file_path}")
    rows = []
    with open(file_path, 'r') as f:
        for line_no, line in enumerate(f, start=1):
            if line_no == 1:
                continue  # header
            cells = line.split()
            if cells:
                rows.append((line_no, cells))
    return rows


def _cell(cells: List[str], idx: int, kind, where: str):
    try:
        return kind(cells[idx])
    except (IndexError, ValueError) as e:
        raise GridFileError(f"{where}: bad column {idx} in {cells!r}") from e


def _parse_bus_type(code: int, where: str) -> BusType:
    try:
        return BusType(code)
    except ValueError as e:
        raise GridFileError(f"{where}: incorrect bus type {code}") from e


def load_network(path: Union[str, Path], base_mva: float = 100.0) -> PowerNetwork:
    """Parse a grid directory into a PowerNetwork.

    Args:
        path: Directory holding the four grid files
        base_mva: Power base for per-unit conversion of loads and generation

    Returns:
        PowerNetwork with baseline switch states from Switches.txt

    Raises:
        GridFileError: On missing files, malformed rows or unknown buses
    """
    path = Path(path)
    if base_mva <= 0:
        raise ValueError(f"base_mva must be positive, got {base_mva}")

    gens: Dict[int, complex] = {}
    for line_no, cells in _read_rows(path, GENS_FILE):
        where = f"{GENS_FILE}:{line_no}"
        bus = _cell(cells, 0, int, where)
        p = _cell(cells, 1, float, where)
        q = _cell(cells, 2, float, where)
        gens[bus] = gens.get(bus, 0j) + complex(p, q)

    buses: List[Bus] = []
    index_of: Dict[int, int] = {}
    for line_no, cells in _read_rows(path, BUSES_FILE):
        where = f"{BUSES_FILE}:{line_no}"
        number = _cell(cells, 0, int, where)
        if number in index_of:
            raise GridFileError(f"{where}: duplicate bus {number}")
        bus_type = _parse_bus_type(_cell(cells, 1, int, where), where)
        load = complex(_cell(cells, 2, float, where), _cell(cells, 3, float, where))
        index_of[number] = len(buses)
        buses.append(Bus(
            number=number,
            bus_type=bus_type,
            load=load / base_mva,
            generation=gens.get(number, 0j) / base_mva,
            base_kv=_cell(cells, BASE_KV_COLUMN, float, where),
        ))

    unknown_gens = sorted(set(gens) - set(index_of))
    if unknown_gens:
        raise GridFileError(f"{GENS_FILE}: generators on unknown buses {unknown_gens}")

    def find_bus(number: int, where: str) -> int:
        if number not in index_of:
            raise GridFileError(f"{where}: cannot find bus with number {number}")
        return index_of[number]

    branches = []
    states: List[SwitchState] = []
    counters = {'CB': 0, 'Dis': 0, 'Cir': 0}

    for line_no, cells in _read_rows(path, SWITCHES_FILE):
        where = f"{SWITCHES_FILE}:{line_no}"
        fbus = find_bus(_cell(cells, 0, int, where), where)
        tbus = find_bus(_cell(cells, 1, int, where), where)
        is_open = _cell(cells, 2, int, where) == 1
        is_breaker = _cell(cells, 3, int, where) == 1
        kind = 'CB' if is_breaker else 'Dis'
        counters[kind] += 1
        branches.append((fbus, tbus, SwitchGear(f"{kind}{counters[kind]}", is_breaker)))
        states.append(SwitchState.OPEN if is_open else SwitchState.CLOSED)

    for line_no, cells in _read_rows(path, CIRCUITS_FILE):
        where = f"{CIRCUITS_FILE}:{line_no}"
        fbus = find_bus(_cell(cells, 0, int, where), where)
        tbus = find_bus(_cell(cells, 1, int, where), where)
        impedance = complex(_cell(cells, 2, float, where), _cell(cells, 3, float, where))
        if impedance == 0:
            raise GridFileError(f"{where}: zero impedance circuit")
        counters['Cir'] += 1
        branches.append((fbus, tbus, Line(
            name=f"Cir{counters['Cir']}",
            admittance=1.0 / impedance,
            charging=_cell(cells, 4, float, where),
        )))
        states.append(SwitchState.DONT_CARE)

    network = PowerNetwork(buses, branches, states, name=path.name)
    logger.info(
        "Loaded %s: %d buses, %d breakers, %d disconnectors, %d circuits",
        path, len(buses), counters['CB'], counters['Dis'], counters['Cir'],
    )
    return network
