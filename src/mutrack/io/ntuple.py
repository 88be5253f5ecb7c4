# src/mutrack/io/ntuple.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from mutrack.io.sink import AnalysisSink
from mutrack.io.tables import EXTRA, GEN_PARTICLE, HIT, PRIMARY, ColumnKind, ColumnTable

S, V = ColumnKind.SCALAR, ColumnKind.VECTOR

# Per-event layout: hit count, hit vectors, gen-particle count, gen vectors, extras
DEFAULT_KEYS: Tuple[str, ...] = (
    ("NumHits",) + HIT.columns
    + ("NumGenParticles",) + GEN_PARTICLE.columns
    + EXTRA.columns
)
DEFAULT_KINDS: Tuple[ColumnKind, ...] = (
    (S,) + (V,) * HIT.width
    + (S,) + (V,) * GEN_PARTICLE.width
    + (V,) * EXTRA.width
)

PRIMARY_KEYS: Tuple[str, ...] = ("NumPrimaries",) + PRIMARY.columns
PRIMARY_KINDS: Tuple[ColumnKind, ...] = (S,) + (V,) * PRIMARY.width


def _check_kind(table: ColumnTable, kind) -> None:
    if table.kind != kind:
        raise TypeError(f"expected a {kind.name} table, got {table.kind.name}")


@dataclass(frozen=True)
class EventNtuple:
    """
    The per-event ntuple: one row per event holding hit, generator-particle
    and auxiliary columns as vectors plus the two multiplicities.
    """
    name: str = "events"

    def declare(self, sink: AnalysisSink) -> bool:
        return sink.declare_table(self.name, DEFAULT_KEYS, DEFAULT_KINDS)

    def row(
        self,
        hits: ColumnTable,
        gen_particles: ColumnTable,
        extra: ColumnTable,
    ) -> Tuple[List[float], List[List[float]]]:
        _check_kind(hits, HIT)
        _check_kind(gen_particles, GEN_PARTICLE)
        _check_kind(extra, EXTRA)
        scalars = [float(hits.row_count), float(gen_particles.row_count)]
        vectors = hits.columns + gen_particles.columns + extra.columns
        return scalars, vectors

    def fill(
        self,
        sink: AnalysisSink,
        hits: ColumnTable,
        gen_particles: ColumnTable,
        extra: ColumnTable,
    ) -> bool:
        scalars, vectors = self.row(hits, gen_particles, extra)
        return sink.append_row(self.name, DEFAULT_KINDS, scalars, vectors)


@dataclass(frozen=True)
class PrimaryNtuple:
    name: str = "primaries"

    def declare(self, sink: AnalysisSink) -> bool:
        return sink.declare_table(self.name, PRIMARY_KEYS, PRIMARY_KINDS)

    def fill(self, sink: AnalysisSink, primaries: ColumnTable) -> bool:
        _check_kind(primaries, PRIMARY)
        return sink.append_row(
            self.name, PRIMARY_KINDS, [float(primaries.row_count)], primaries.columns
        )
