"""
mutrack.io.adapters

Readers that turn transport-engine output into per-event records
(mutrack.physics.events.EventRecord) for the converters.

Design goals
------------
- Keep I/O concerns isolated from the conversion code.
- Normalize units on ingest: step tables carry transport-native units
  (mm, ns, MeV) and go through Hit.from_step; ntuple files already hold
  analysis units.
- Be tolerant to column-name variants (see mutrack.io.canonicalize).
- Yield one event at a time; nothing here writes output.

Entry points
------------
- class StepTableAdapter: step dumps as CSV/Parquet/HDF tables (pandas),
  with optional generator-particle and primary-vertex tables.
- class NtupleAdapter: reads an existing per-event ROOT ntuple (Hit_*,
  GenParticle_*, COSMIC_*/EXTRA_* branches) through uproot.
- function make_adapter(cfg): factory from the [io.adapter] TOML section.

Config (example)
----------------
[io.adapter]
type = "table"                 # "table" | "ntuple"
post = true                    # table: use post-step points
gen_path = "gen.csv"           # table: optional generator particles
primaries_path = "vtx.csv"     # table: optional primary vertices
tree = "events"                # ntuple: tree key (default: first tree)
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd

# Optional imports (guarded)
try:
    import uproot  # type: ignore
except Exception:  # pragma: no cover
    uproot = None  # type: ignore

from mutrack.io.canonicalize import (
    VOLUME_KEYS,
    canonicalize_gen_particles,
    canonicalize_primaries,
    canonicalize_steps,
)
from mutrack.io.tables import EXTRA, GEN_PARTICLE, HIT
from mutrack.physics.events import EventRecord, HitCollection
from mutrack.physics.hits import Hit
from mutrack.physics.particles import GenParticle, PrimaryParticle, PrimaryVertex
from mutrack.physics.steps import Step, StepPoint
from mutrack.utils.logging import get_logger

log = get_logger(__name__)


def read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in {".csv"}:
        # Volume labels must survive as text ("007" is not 7)
        header = pd.read_csv(p, nrows=0).columns
        return pd.read_csv(p, dtype={c: str for c in header if c in VOLUME_KEYS})
    if suffix in {".parquet", ".pq"}:
        return pd.read_parquet(p)
    if suffix in {".h5", ".hdf5"}:
        return pd.read_hdf(p)
    raise ValueError(f"Unrecognized table input: {p.name} (expected .csv/.parquet/.h5)")


# ---------------------------------------------------------------------------
# Base adapter API
# ---------------------------------------------------------------------------

class BaseAdapter(ABC):
    """
    Abstract adapter interface.

    Yields EventRecords, one per simulated event, in file order.
    """

    @abstractmethod
    def iter_events(self, path: str) -> Iterator[EventRecord]:
        ...


# ---------------------------------------------------------------------------
# Step table adapter
# ---------------------------------------------------------------------------

def _point(row, prefix: str) -> StepPoint:
    g = lambda f: float(getattr(row, f"{prefix}_{f}"))
    return StepPoint(
        global_time=g("t"),
        position=(g("x"), g("y"), g("z")),
        total_energy=g("e"),
        momentum=(g("px"), g("py"), g("pz")),
    )


def steps_from_frame(df: pd.DataFrame) -> Iterator[Step]:
    """Canonical step rows -> Step snapshots, in row order."""
    for row in df.itertuples(index=False):
        yield Step(
            track_id=int(row.track_id),
            parent_id=int(row.parent_id),
            particle_name=str(row.particle),
            pdg=int(row.pdg),
            volume=str(row.volume),
            total_energy_deposit=float(row.edep),
            pre=_point(row, "pre"),
            post=_point(row, "post"),
        )


def gen_particles_from_frame(df: pd.DataFrame) -> List[GenParticle]:
    return [
        GenParticle(
            index=int(r.gen_index), g4_index=int(r.g4_index), pdg=int(r.pdg), status=int(r.status),
            vertex=(float(r.t), float(r.x), float(r.y), float(r.z)),
            momentum=(float(r.e), float(r.px), float(r.py), float(r.pz)),
            mother1=int(r.mo1), mother2=int(r.mo2),
            daughter1=int(r.dau1), daughter2=int(r.dau2),
            mass=float(r.mass),
        )
        for r in df.itertuples(index=False)
    ]


def vertices_from_frame(df: pd.DataFrame) -> List[PrimaryVertex]:
    vertices: List[PrimaryVertex] = []
    for _, vdf in df.groupby("vertex", sort=False):
        first = vdf.iloc[0]
        v = PrimaryVertex(t0=float(first["t"]), x0=float(first["x"]),
                          y0=float(first["y"]), z0=float(first["z"]))
        for r in vdf.itertuples(index=False):
            v.primaries.append(PrimaryParticle(
                pdg=int(r.pdg), track_id=int(r.track_id), total_energy=float(r.energy),
                momentum=(float(r.px), float(r.py), float(r.pz)),
            ))
        vertices.append(v)
    return vertices


class StepTableAdapter(BaseAdapter):
    """
    Read transport step dumps written as flat tables, one row per step.

    Canonical columns (variants accepted, see canonicalize.py):
      event, track_id, parent_id, particle, pdg, volume, edep,
      pre_t/x/y/z/e/px/py/pz, post_t/x/y/z/e/px/py/pz

    Units are transport-native (mm, ns, MeV). Rows are grouped by `event`
    in order of first appearance; row order inside an event is kept.
    """

    def __init__(
        self,
        post: bool = True,
        gen_path: Optional[str] = None,
        primaries_path: Optional[str] = None,
    ) -> None:
        self.post = post
        self.gen_path = gen_path
        self.primaries_path = primaries_path

    def _side_table(self, path: Optional[str], canon) -> Dict[int, pd.DataFrame]:
        if not path:
            return {}
        df = canon(read_table(path))
        return {int(ev): g for ev, g in df.groupby("event", sort=False)}

    def iter_events(self, path: str) -> Iterator[EventRecord]:
        steps = canonicalize_steps(read_table(path))
        gen = self._side_table(self.gen_path, canonicalize_gen_particles)
        prim = self._side_table(self.primaries_path, canonicalize_primaries)
        step_groups = {int(ev): g for ev, g in steps.groupby("event", sort=False)}

        order: List[int] = list(step_groups)
        order += [ev for ev in list(gen) + list(prim) if ev not in step_groups]
        order = list(dict.fromkeys(order))
        log.debug("[adapter] %s: %d steps in %d events", path, len(steps), len(order))

        for ev in order:
            hc = HitCollection(ev)
            if ev in step_groups:
                for step in steps_from_frame(step_groups[ev]):
                    hc.add_step(step, post=self.post)
            yield EventRecord(
                event_id=ev,
                hits=hc,
                gen_particles=gen_particles_from_frame(gen[ev]) if ev in gen else [],
                vertices=vertices_from_frame(prim[ev]) if ev in prim else [],
            )


# ---------------------------------------------------------------------------
# Ntuple adapter
# ---------------------------------------------------------------------------

def _volume_label(value: float) -> str:
    """Lossless text for a numeric detector id: "100100101", "3.5"."""
    v = float(value)
    return str(int(v)) if v.is_integer() else repr(v)


class NtupleAdapter(BaseAdapter):
    """
    Rebuild EventRecords from a per-event ROOT ntuple.

    The ntuple carries no particle names and only numeric detector ids, so
    hits get the PDG code as name and the id rendered by _volume_label() as
    volume label, which the numeric volume resolution reads back exactly.
    """

    def __init__(self, tree: Optional[str] = None, step_size: str = "100 MB") -> None:
        if uproot is None:  # pragma: no cover
            raise RuntimeError("uproot is required for NtupleAdapter but is not installed.")
        self.tree_key = tree
        self.step_size = step_size

    def iter_events(self, path: str) -> Iterator[EventRecord]:
        with uproot.open(path) as f:
            if self.tree_key is not None:
                tree = f[self.tree_key]
            else:
                first_key = next(k for k, cls in f.classnames().items() if cls.startswith("TTree"))
                tree = f[first_key]

            wanted = set(HIT.columns) | set(GEN_PARTICLE.columns) | set(EXTRA.columns)
            branches = [b for b in tree.keys() if b in wanted]
            missing = [c for c in HIT.columns if c not in branches]
            if missing:
                raise KeyError(f"{path}: ntuple lacks hit branches {missing}")

            entry = 0
            for arrays in tree.iterate(branches, library="np", step_size=self.step_size):
                n = len(arrays[HIT.columns[0]])
                for i in range(n):
                    yield self._record(entry, arrays, i)
                    entry += 1

    @staticmethod
    def _record(event_id: int, A: Dict[str, Any], i: int) -> EventRecord:
        col = lambda name: np.asarray(A[name][i], dtype=np.float64)
        (edep, t, det, pdg, track, parent,
         x, y, z, e, px, py, pz, _w) = (col(c) for c in HIT.columns)

        hc = HitCollection(event_id)
        for k in range(len(edep)):
            hc.append(Hit(
                particle_name=str(int(pdg[k])),
                pdg=int(pdg[k]),
                track_id=int(track[k]),
                parent_id=int(parent[k]),
                volume=_volume_label(det[k]),
                deposit=float(edep[k]),
                position=(t[k], x[k], y[k], z[k]),
                momentum=(e[k], px[k], py[k], pz[k]),
            ))

        gen: List[GenParticle] = []
        if all(c in A for c in GEN_PARTICLE.columns[:17]):
            g = [col(c) for c in GEN_PARTICLE.columns[:17]]
            for k in range(len(g[0])):
                gen.append(GenParticle(
                    index=int(g[0][k]), g4_index=int(g[1][k]), pdg=int(g[2][k]), status=int(g[3][k]),
                    vertex=(g[4][k], g[5][k], g[6][k], g[7][k]),
                    momentum=(g[8][k], g[9][k], g[10][k], g[11][k]),
                    mother1=int(g[12][k]), mother2=int(g[13][k]),
                    daughter1=int(g[14][k]), daughter2=int(g[15][k]),
                    mass=float(g[16][k]),
                ))

        extra = [col(c).tolist() if c in A else [] for c in EXTRA.columns]
        return EventRecord(event_id=event_id, hits=hc, gen_particles=gen, extra=extra)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def make_adapter(cfg: Dict) -> BaseAdapter:
    """
    Create an adapter from a config dict (from TOML/CLI).

    Expected keys under [io.adapter]:
      type: "table" | "ntuple"
      post: bool                 (table-only)
      gen_path, primaries_path   (table-only)
      tree: str                  (ntuple-only)
    """
    typ = (cfg.get("type") or "table").lower()

    if typ == "table":
        return StepTableAdapter(
            post=bool(cfg.get("post", True)),
            gen_path=cfg.get("gen_path"),
            primaries_path=cfg.get("primaries_path"),
        )

    if typ == "ntuple":
        return NtupleAdapter(
            tree=cfg.get("tree"),
            step_size=cfg.get("step_size", "100 MB"),
        )

    raise ValueError(f"Unknown adapter type: {typ}")
