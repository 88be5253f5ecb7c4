# src/mutrack/physics/steps.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True, slots=True)
class StepPoint:
    """
    One end of a transport step, in transport-native units (mm, ns, MeV).
    """
    global_time: float
    position: Sequence[float]   # (x, y, z)
    total_energy: float
    momentum: Sequence[float]   # (px, py, pz)


@dataclass(frozen=True, slots=True)
class Step:
    """
    Snapshot of a single transport step as handed over by the physics engine.

    volume is the label of the top volume of the touchable the track is in.
    """
    track_id: int
    parent_id: int
    particle_name: str
    pdg: int
    volume: str
    total_energy_deposit: float
    pre: StepPoint
    post: StepPoint

    def point(self, post: bool = True) -> StepPoint:
        return self.post if post else self.pre
