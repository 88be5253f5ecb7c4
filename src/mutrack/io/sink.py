"""
mutrack.io.sink

Persistent columnar stores that accept ColumnTable data.

Contract (AnalysisSink)
-----------------------
declare_table(name, columns, kinds) -> bool
    Declare a named table once per run with ordered column names and a
    per-column kind (scalar or vector).
append_row(name, kinds, scalars, vectors) -> bool
    Append one row. `scalars` lines up with the scalar columns and `vectors`
    with the vector columns, each in declaration order.

Neither call raises on a bad request or a storage error; both report
failure through the return value and leave retrying (or not) to the caller.
Implementations serialize append_row internally, so worker threads can share
one sink.

Implementations
---------------
- MemorySink: keeps rows in Python lists (tests, dry runs).
- H5Sink: h5py file, one group per table. Scalar columns are resizable 1-D
  datasets; vector columns are stored CSR style as <col>/values (flat) and
  <col>/ptr (row offsets, len = rows + 1).
"""
from __future__ import annotations
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

import h5py
import numpy as np

from mutrack.io.tables import ColumnKind
from mutrack.utils.logging import get_logger

log = get_logger(__name__)


class AnalysisSink(Protocol):
    def declare_table(self, name: str, columns: Sequence[str], kinds: Sequence[ColumnKind]) -> bool: ...

    def append_row(
        self,
        name: str,
        kinds: Sequence[ColumnKind],
        scalars: Sequence[float],
        vectors: Sequence[Sequence[float]],
    ) -> bool: ...


@dataclass
class _Schema:
    columns: Tuple[str, ...]
    kinds: Tuple[ColumnKind, ...]

    @property
    def scalar_columns(self) -> List[str]:
        return [c for c, k in zip(self.columns, self.kinds) if k is ColumnKind.SCALAR]

    @property
    def vector_columns(self) -> List[str]:
        return [c for c, k in zip(self.columns, self.kinds) if k is ColumnKind.VECTOR]


def _is_kind(k) -> bool:
    try:
        ColumnKind(k)
    except ValueError:
        return False
    return True


def _check_declaration(name: str, columns: Sequence[str], kinds: Sequence[ColumnKind]) -> Optional[str]:
    if not name or "/" in name:
        return f"invalid table name {name!r}"
    if len(columns) != len(kinds):
        return f"{len(columns)} columns but {len(kinds)} kinds"
    if len(set(columns)) != len(columns):
        return "duplicate column names"
    if any((not c) or "/" in c for c in columns):
        return "invalid column name"
    if not all(_is_kind(k) for k in kinds):
        return "column kinds must be scalar or vector"
    return None


def _check_row(
    schemas: Dict[str, _Schema],
    name: str,
    kinds: Sequence[ColumnKind],
    scalars: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> Optional[str]:
    schema = schemas.get(name)
    if schema is None:
        return f"table {name!r} was never declared"
    if not all(_is_kind(k) for k in kinds) or tuple(ColumnKind(k) for k in kinds) != schema.kinds:
        return f"column kinds do not match the declaration of {name!r}"
    if len(scalars) != len(schema.scalar_columns):
        return f"{name!r} expects {len(schema.scalar_columns)} scalars, got {len(scalars)}"
    if len(vectors) != len(schema.vector_columns):
        return f"{name!r} expects {len(schema.vector_columns)} vectors, got {len(vectors)}"
    return None


def _as_floats(
    scalars: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> Tuple[List[float], List[List[float]]]:
    """Whole row as floats; raises TypeError or ValueError before anything is stored."""
    return [float(s) for s in scalars], [[float(v) for v in vec] for vec in vectors]


class MemorySink:
    """In-process AnalysisSink."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._schemas: Dict[str, _Schema] = {}
        self._rows: Dict[str, List[Tuple[List[float], List[List[float]]]]] = {}

    def declare_table(self, name: str, columns: Sequence[str], kinds: Sequence[ColumnKind]) -> bool:
        with self._lock:
            problem = _check_declaration(name, columns, kinds)
            if problem is None and name in self._schemas:
                problem = f"table {name!r} already declared"
            if problem:
                log.warning("[sink] declare_table failed: %s", problem)
                return False
            self._schemas[name] = _Schema(tuple(columns), tuple(ColumnKind(k) for k in kinds))
            self._rows[name] = []
            return True

    def append_row(self, name, kinds, scalars, vectors) -> bool:
        with self._lock:
            problem = _check_row(self._schemas, name, kinds, scalars, vectors)
            if problem:
                log.warning("[sink] append_row failed: %s", problem)
                return False
            try:
                row = _as_floats(scalars, vectors)
            except (TypeError, ValueError) as exc:
                log.warning("[sink] append_row %r failed: %r", name, exc)
                return False
            self._rows[name].append(row)
            return True

    def tables(self) -> List[str]:
        return list(self._schemas)

    def row_count(self, name: str) -> int:
        return len(self._rows[name])

    def rows(self, name: str) -> List[Tuple[List[float], List[List[float]]]]:
        return list(self._rows[name])

    def column(self, name: str, column: str) -> List[Union[float, List[float]]]:
        """All values of one column, one entry per row."""
        schema = self._schemas[name]
        if column in schema.scalar_columns:
            i = schema.scalar_columns.index(column)
            return [row[0][i] for row in self._rows[name]]
        i = schema.vector_columns.index(column)
        return [row[1][i] for row in self._rows[name]]


class H5Sink:
    """
    AnalysisSink backed by an HDF5 file.

    Accepts either a path (opened with `mode`, closed by close()) or an
    already open h5py.File, which the caller keeps ownership of.
    """

    def __init__(
        self,
        target: Union[str, Path, h5py.File],
        *,
        mode: str = "w",
        group: str = "/ntuples",
    ) -> None:
        if isinstance(target, h5py.File):
            self._f = target
            self._owns_file = False
        else:
            self._f = h5py.File(str(target), mode)
            self._owns_file = True
        self._group_path = group.rstrip("/") or "/"
        self._root = self._f.require_group(self._group_path)
        self._lock = threading.Lock()
        self._schemas: Dict[str, _Schema] = {}

    @property
    def file(self) -> h5py.File:
        return self._f

    def declare_table(self, name: str, columns: Sequence[str], kinds: Sequence[ColumnKind]) -> bool:
        with self._lock:
            problem = _check_declaration(name, columns, kinds)
            if problem is None and (name in self._schemas or name in self._root):
                problem = f"table {name!r} already declared"
            if problem:
                log.warning("[sink] declare_table failed: %s", problem)
                return False
            schema = _Schema(tuple(columns), tuple(ColumnKind(k) for k in kinds))
            try:
                g = self._root.create_group(name)
                g.attrs["columns"] = np.array(schema.columns, dtype=h5py.string_dtype())
                g.attrs["kinds"] = np.array([k.value for k in schema.kinds], dtype=h5py.string_dtype())
                g.attrs["rows"] = 0
                for col, kind in zip(schema.columns, schema.kinds):
                    if kind is ColumnKind.SCALAR:
                        g.create_dataset(col, shape=(0,), maxshape=(None,), dtype="f8", chunks=True)
                    else:
                        vg = g.create_group(col)
                        vg.create_dataset("values", shape=(0,), maxshape=(None,), dtype="f8", chunks=True)
                        vg.create_dataset("ptr", data=np.zeros(1, dtype=np.int64), maxshape=(None,), chunks=True)
            except (OSError, ValueError, RuntimeError) as exc:
                log.warning("[sink] declare_table %r failed: %r", name, exc)
                return False
            self._schemas[name] = schema
            return True

    def append_row(self, name, kinds, scalars, vectors) -> bool:
        with self._lock:
            problem = _check_row(self._schemas, name, kinds, scalars, vectors)
            if problem:
                log.warning("[sink] append_row failed: %s", problem)
                return False
            try:
                scalars, vectors = _as_floats(scalars, vectors)
            except (TypeError, ValueError) as exc:
                log.warning("[sink] append_row %r failed: %r", name, exc)
                return False
            schema = self._schemas[name]
            try:
                g = self._root[name]
                n = int(g.attrs["rows"])
                for col, value in zip(schema.scalar_columns, scalars):
                    ds = g[col]
                    ds.resize((n + 1,))
                    ds[n] = value
                for col, vec in zip(schema.vector_columns, vectors):
                    vals = g[col]["values"]
                    ptr = g[col]["ptr"]
                    arr = np.asarray(vec, dtype=np.float64).reshape(-1)
                    start = int(ptr[n])
                    vals.resize((start + arr.size,))
                    if arr.size:
                        vals[start:] = arr
                    ptr.resize((n + 2,))
                    ptr[n + 1] = start + arr.size
                g.attrs["rows"] = n + 1
            except (OSError, ValueError, RuntimeError, KeyError) as exc:
                log.warning("[sink] append_row %r failed: %r", name, exc)
                return False
            return True

    def flush(self) -> None:
        with self._lock:
            self._f.flush()

    def close(self) -> None:
        with self._lock:
            if self._owns_file and self._f.id.valid:
                self._f.close()

    def __enter__(self) -> "H5Sink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
