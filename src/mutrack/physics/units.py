# src/mutrack/physics/units.py
from __future__ import annotations
from typing import Dict, List, Tuple

# Transport-native base units (CLHEP convention): mm, ns, MeV
MM = 1.0
UM = 1e-3 * MM
NM = 1e-6 * MM
CM = 10.0 * MM
M = 1000.0 * MM
KM = 1000.0 * M

NS = 1.0
PS = 1e-3 * NS
US = 1e3 * NS
MS = 1e6 * NS
S = 1e9 * NS

MEV = 1.0
EV = 1e-6 * MEV
KEV = 1e-3 * MEV
GEV = 1e3 * MEV
TEV = 1e6 * MEV
PEV = 1e9 * MEV

# Analysis unit system (what ends up in the tables)
LENGTH = CM
TIME = NS
ENERGY = MEV
MOMENTUM = MEV  # MeV/c

ANALYSIS: Dict[str, float] = {
    "Length": LENGTH,
    "Time": TIME,
    "Energy": ENERGY,
    "Momentum": MOMENTUM,
}

_ANALYSIS_SYMBOL = {
    "Length": "cm",
    "Time": "ns",
    "Energy": "MeV",
    "Momentum": "MeV/c",
}

# Ascending by scale
_UNIT_TABLE: Dict[str, List[Tuple[str, float]]] = {
    "Length": [("nm", NM), ("um", UM), ("mm", MM), ("cm", CM), ("m", M), ("km", KM)],
    "Time": [("ps", PS), ("ns", NS), ("us", US), ("ms", MS), ("s", S)],
    "Energy": [("eV", EV), ("keV", KEV), ("MeV", MEV), ("GeV", GEV), ("TeV", TEV), ("PeV", PEV)],
    "Momentum": [("eV/c", EV), ("keV/c", KEV), ("MeV/c", MEV), ("GeV/c", GEV), ("TeV/c", TEV), ("PeV/c", PEV)],
}


def best_unit(value: float, category: str, width: int = 10) -> str:
    """
    Render an analysis-unit quantity with the most readable unit of its category.

    The largest unit whose ratio is >= 1 in magnitude is chosen; values below
    the smallest unit use the smallest one, and exact zero keeps the analysis
    unit. Output is "<number right-aligned to width, 4 significant> <symbol>".

    The format is this package's own: symbols are not padded to a common
    width and zero keeps the analysis unit, so dumps are not byte-identical
    to Geant4 G4BestUnit output.
    """
    if category not in _UNIT_TABLE:
        raise KeyError(f"Unknown unit category: {category!r}")
    native = float(value) * ANALYSIS[category]
    table = _UNIT_TABLE[category]
    if native == 0.0:
        symbol = _ANALYSIS_SYMBOL[category]
        scale = dict(table)[symbol]
    else:
        symbol, scale = table[0]
        mag = abs(native)
        for sym, sc in table:
            if mag >= sc:
                symbol, scale = sym, sc
    return f"{native / scale:>{width}.4g} {symbol}"
