"""
mutrack.io.tables

Fixed-schema columnar output unit handed to the analysis sink.

A ColumnTable is an ordered list of named float columns whose names and
order are fixed by its TableKind. Rows are appended column-synchronously so
every column has the same length, with one exception: the EXTRA kind is
filled column by column and its columns keep their own lengths.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd


class ColumnKind(str, Enum):
    SCALAR = "scalar"
    VECTOR = "vector"


@dataclass(frozen=True)
class TableKind:
    name: str
    columns: Tuple[str, ...]
    ragged: bool = False

    @property
    def width(self) -> int:
        return len(self.columns)


HIT = TableKind("hits", (
    "Hit_energy", "Hit_time", "Hit_detId",
    "Hit_particlePdgId", "Hit_G4TrackId", "Hit_G4ParentTrackId",
    "Hit_x", "Hit_y", "Hit_z",
    "Hit_particleEnergy", "Hit_particlePx", "Hit_particlePy", "Hit_particlePz",
    "Hit_weight",
))

PRIMARY = TableKind("primaries", (
    "Primary_pdgId", "Primary_G4TrackId", "Primary_parentIndex",
    "Primary_time", "Primary_x", "Primary_y", "Primary_z",
    "Primary_energy", "Primary_px", "Primary_py", "Primary_pz",
    "Primary_weight",
))

GEN_PARTICLE = TableKind("gen_particles", (
    "GenParticle_index", "GenParticle_G4index", "GenParticle_pdgid", "GenParticle_status",
    "GenParticle_time", "GenParticle_x", "GenParticle_y", "GenParticle_z",
    "GenParticle_energy", "GenParticle_px", "GenParticle_py", "GenParticle_pz",
    "GenParticle_mo1", "GenParticle_mo2", "GenParticle_dau1", "GenParticle_dau2",
    "GenParticle_mass", "GenParticle_pt", "GenParticle_eta", "GenParticle_phi",
))

EXTRA = TableKind("extra", (
    "COSMIC_EVENT_ID",
    "COSMIC_CORE_X",
    "COSMIC_CORE_Y",
    "COSMIC_GEN_PRIMARY_ENERGY",
    "COSMIC_GEN_THETA",
    "COSMIC_GEN_PHI",
    "COSMIC_GEN_FIRST_HEIGHT",
    "COSMIC_GEN_ELECTRON_COUNT",
    "COSMIC_GEN_MUON_COUNT",
    "COSMIC_GEN_HADRON_COUNT",
    "COSMIC_GEN_PRIMARY_ID",
    "EXTRA_11", "EXTRA_12", "EXTRA_13", "EXTRA_14", "EXTRA_15",
), ragged=True)


class ColumnTable:
    __slots__ = ("kind", "_columns")

    def __init__(self, kind: TableKind) -> None:
        self.kind = kind
        self._columns: List[List[float]] = [[] for _ in kind.columns]

    @property
    def names(self) -> Tuple[str, ...]:
        return self.kind.columns

    @property
    def columns(self) -> List[List[float]]:
        """Copies of the column values, in schema order."""
        return [list(c) for c in self._columns]

    def append_row(self, values: Sequence[float]) -> None:
        if len(values) != self.kind.width:
            raise ValueError(
                f"{self.kind.name} row needs {self.kind.width} values, got {len(values)}"
            )
        for col, v in zip(self._columns, values):
            col.append(float(v))

    def extend_column(self, index: int, values: Iterable[float]) -> None:
        if not self.kind.ragged:
            raise ValueError(f"{self.kind.name} columns can only grow row by row")
        self._columns[index].extend(float(v) for v in values)

    def column(self, key: Union[str, int]) -> List[float]:
        i = self.kind.columns.index(key) if isinstance(key, str) else key
        return list(self._columns[i])

    def column_lengths(self) -> List[int]:
        return [len(c) for c in self._columns]

    @property
    def row_count(self) -> int:
        """Rows of a synchronous table; for ragged tables the longest column."""
        return max(self.column_lengths(), default=0)

    def __len__(self) -> int:
        return self.row_count

    def __repr__(self) -> str:
        return f"ColumnTable({self.kind.name}, rows={self.row_count}, width={self.kind.width})"

    def to_arrays(self) -> Dict[str, np.ndarray]:
        return {n: np.asarray(c, dtype=np.float64) for n, c in zip(self.kind.columns, self._columns)}

    def to_frame(self) -> pd.DataFrame:
        if len(set(self.column_lengths())) > 1:
            raise ValueError(f"{self.kind.name} columns have unequal lengths; use to_arrays()")
        return pd.DataFrame(self.to_arrays(), columns=list(self.kind.columns))
