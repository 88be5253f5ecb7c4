# src/mutrack/physics/particles.py
from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

# Sentinel for "not handed to transport" / "no mother or daughter"
NO_INDEX = -1


@dataclass(slots=True)
class PrimaryParticle:
    """Primary attached to a vertex; transport-native units (MeV)."""
    pdg: int
    track_id: int
    total_energy: float
    momentum: Tuple[float, float, float]


@dataclass(slots=True)
class PrimaryVertex:
    """
    Generator-level primary vertex; transport-native units (mm, ns).
    """
    t0: float
    x0: float
    y0: float
    z0: float
    primaries: List[PrimaryParticle] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.primaries)


@dataclass(slots=True)
class GenParticle:
    """
    Generator-level (pre-transport) particle, analysis units.

    vertex:   (t, x, y, z)
    momentum: (E, px, py, pz)
    g4_index: transport track id, or NO_INDEX if never handed to transport
    """
    index: int
    g4_index: int
    pdg: int
    status: int
    vertex: Sequence[float]
    momentum: Sequence[float]
    mother1: int = NO_INDEX
    mother2: int = NO_INDEX
    daughter1: int = NO_INDEX
    daughter2: int = NO_INDEX
    mass: float = 0.0

    @property
    def transported(self) -> bool:
        return self.g4_index >= 0

    @property
    def pt(self) -> float:
        _, px, py, _ = self.momentum
        return math.hypot(px, py)

    @property
    def eta(self) -> float:
        """Pseudorapidity; 0 for a null momentum, +/-1e72 along the z axis."""
        _, px, py, pz = self.momentum
        p = math.sqrt(px * px + py * py + pz * pz)
        if p == 0.0:
            return 0.0
        if p == pz:
            return 1.0e72
        if p == -pz:
            return -1.0e72
        return 0.5 * math.log((p + pz) / (p - pz))

    @property
    def phi(self) -> float:
        _, px, py, _ = self.momentum
        return math.atan2(py, px)
