from __future__ import annotations
from dataclasses import dataclass, field
from itertools import count
from typing import Sequence

import numpy as np

from . import units
from .steps import Step

# Process-wide, never reused; next() on itertools.count is atomic under the GIL
_hit_sequence = count()


def _four_vector(v: Sequence[float], what: str) -> np.ndarray:
    arr = np.array(v, dtype=np.float64).reshape(-1)
    if arr.shape != (4,):
        raise ValueError(f"{what} must have 4 components, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, slots=True, eq=False)
class Hit:
    """
    Canonical tracking hit (physics layer).

    One step-level energy deposit of one track inside one sensitive volume,
    expressed in the analysis unit system (cm, ns, MeV, MeV/c).

    position: (t, x, y, z)
    momentum: (E, px, py, pz)
    volume: label of the detection volume (e.g. "A12" or "104")

    Two hits compare equal only if they are the same record: every Hit gets a
    sequence id at construction and == / hash look at nothing else.
    """
    particle_name: str
    pdg: int
    track_id: int
    parent_id: int
    volume: str
    deposit: float
    position: np.ndarray  # shape (4,), read-only
    momentum: np.ndarray  # shape (4,), read-only
    uid: int = field(default_factory=lambda: next(_hit_sequence), init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.deposit >= 0.0:
            raise ValueError(f"Hit deposit must be non-negative, got {self.deposit}")
        object.__setattr__(self, "deposit", float(self.deposit))
        object.__setattr__(self, "position", _four_vector(self.position, "position"))
        object.__setattr__(self, "momentum", _four_vector(self.momentum, "momentum"))

    @classmethod
    def from_step(cls, step: Step, post: bool = True) -> "Hit":
        """
        Build a hit from a transport step, using the post-step point by default.
        Converts every physical quantity to the analysis unit system.
        """
        p = step.point(post)
        r = np.asarray(p.position, dtype=np.float64) / units.LENGTH
        mom = np.asarray(p.momentum, dtype=np.float64) / units.MOMENTUM
        return cls(
            particle_name=step.particle_name,
            pdg=int(step.pdg),
            track_id=int(step.track_id),
            parent_id=int(step.parent_id),
            volume=str(step.volume),
            deposit=step.total_energy_deposit / units.ENERGY,
            position=(p.global_time / units.TIME, r[0], r[1], r[2]),
            momentum=(p.total_energy / units.ENERGY, mom[0], mom[1], mom[2]),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Hit):
            return NotImplemented
        return self.uid == other.uid

    def __hash__(self) -> int:
        return hash(self.uid)

    @property
    def t(self) -> float:
        return float(self.position[0])

    @property
    def x(self) -> float:
        return float(self.position[1])

    @property
    def y(self) -> float:
        return float(self.position[2])

    @property
    def z(self) -> float:
        return float(self.position[3])

    @property
    def energy(self) -> float:
        return float(self.momentum[0])

    @property
    def px(self) -> float:
        return float(self.momentum[1])

    @property
    def py(self) -> float:
        return float(self.momentum[2])

    @property
    def pz(self) -> float:
        return float(self.momentum[3])

    def format(self) -> str:
        """One-line text rendering used by HitCollection dumps (newline included)."""
        bu = units.best_unit
        return (
            f" {self.particle_name} | {self.track_id} | {self.parent_id} | {self.volume}"
            f" | Deposit: {bu(self.deposit, 'Energy')}"
            f" | [{bu(self.t, 'Time')} "
            f"{bu(self.x, 'Length')}{bu(self.y, 'Length')}{bu(self.z, 'Length')}"
            f"] | ["
            f"{bu(self.energy, 'Energy')}"
            f"{bu(self.px, 'Momentum')}{bu(self.py, 'Momentum')}{bu(self.pz, 'Momentum')}"
            f" ]\n"
        )
