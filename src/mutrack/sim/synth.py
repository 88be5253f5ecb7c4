from __future__ import annotations
import numpy as np
from typing import List, Optional, Sequence

from ..physics.events import EventRecord, HitCollection
from ..physics.hits import Hit
from ..physics.particles import NO_INDEX, GenParticle, PrimaryParticle, PrimaryVertex
from ..filters.cuts import DEFAULT_CUT, LayerCut

M_MU_MEV = 105.658  # muon


def make_hit(
    *,
    track_id: int = 1,
    parent_id: int = 0,
    volume: str = "1",
    deposit: float = 1.0,
    t: float = 0.0,
    xyz: Sequence[float] = (0.0, 0.0, 0.0),
    momentum: Sequence[float] = (1000.0, 0.0, 0.0, 0.0),
    particle_name: str = "mu-",
    pdg: int = 13,
) -> Hit:
    """Hit with analysis-unit fields and test-friendly defaults."""
    return Hit(
        particle_name=particle_name,
        pdg=pdg,
        track_id=track_id,
        parent_id=parent_id,
        volume=volume,
        deposit=deposit,
        position=(t, *xyz),
        momentum=momentum,
    )


def synth_layer_crossing_event(
    event_id: int,
    layer_bounds: Sequence[Sequence[float]],
    *,
    cross: Optional[int] = None,
    n_noise: int = 0,
    cut: LayerCut = DEFAULT_CUT,
    rng: np.random.Generator | None = None,
) -> HitCollection:
    """
    An upward-going muon leaving one qualifying hit in each of the first
    `cross` layer bands (all of them by default), plus `n_noise` hits that
    can never be cut candidates (downward momentum, sub-threshold deposit).

    Positions are taken at band centres so band membership is unambiguous.
    Volume labels are the band index as text.
    """
    rng = rng or np.random.default_rng()
    n_cross = len(layer_bounds) if cross is None else cross
    hc = HitCollection(event_id)

    E = 10_000.0 * (1.0 + rng.random())
    p = np.sqrt(E * E - M_MU_MEV * M_MU_MEV)
    t = 0.0
    for k, (lo, hi) in enumerate(layer_bounds[:n_cross]):
        y = 0.5 * (lo + hi)
        x, z = rng.uniform(-100.0, 100.0, size=2)
        t += 1.0
        hc.append(make_hit(
            track_id=1,
            volume=str(k),
            deposit=cut.min_deposit + 0.5 + rng.random(),
            t=t,
            xyz=(x, y, z),
            momentum=(E, 0.0, p, 0.0),
        ))

    for j in range(n_noise):
        y = rng.uniform(0.0, 2.0 * cut.min_position)
        hc.append(make_hit(
            track_id=2 + j,
            parent_id=1,
            volume=str(100 + j),
            deposit=cut.min_deposit * rng.random(),
            t=t + 1.0 + j,
            xyz=(rng.uniform(-100, 100), y, rng.uniform(-100, 100)),
            momentum=(1.0, 0.0, -0.5, 0.0),
            particle_name="e-",
            pdg=11,
        ))
    return hc


def synth_gen_particles(n: int, *, n_transported: Optional[int] = None,
                        rng: np.random.Generator | None = None) -> List[GenParticle]:
    """
    n generator particles; the first n_transported (default: every other one)
    carry a transport index, the rest the NO_INDEX sentinel.
    """
    rng = rng or np.random.default_rng()
    out: List[GenParticle] = []
    for i in range(n):
        transported = (i < n_transported) if n_transported is not None else (i % 2 == 0)
        px, py, pz = rng.normal(scale=1000.0, size=3)
        E = float(np.sqrt(px * px + py * py + pz * pz + M_MU_MEV * M_MU_MEV))
        out.append(GenParticle(
            index=i,
            g4_index=i + 1 if transported else NO_INDEX,
            pdg=13 if i % 2 == 0 else -13,
            status=1,
            vertex=(0.0, 0.0, 0.0, 0.0),
            momentum=(E, float(px), float(py), float(pz)),
            mother1=NO_INDEX if i == 0 else 0,
            mass=M_MU_MEV,
        ))
    return out


def synth_event(
    event_id: int,
    layer_bounds: Sequence[Sequence[float]],
    *,
    n_gen: int = 4,
    rng: np.random.Generator | None = None,
) -> EventRecord:
    """Full record: layer-crossing hits, generator particles and one vertex."""
    rng = rng or np.random.default_rng()
    hits = synth_layer_crossing_event(event_id, layer_bounds, n_noise=2, rng=rng)
    gen = synth_gen_particles(n_gen, rng=rng)
    vertex = PrimaryVertex(t0=0.0, x0=0.0, y0=0.0, z0=0.0, primaries=[
        PrimaryParticle(pdg=p.pdg, track_id=p.g4_index, total_energy=p.momentum[0],
                        momentum=tuple(p.momentum[1:]))
        for p in gen if p.transported
    ])
    return EventRecord(event_id=event_id, hits=hits, gen_particles=gen, vertices=[vertex])
