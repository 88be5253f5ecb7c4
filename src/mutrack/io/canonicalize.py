# src/mutrack/io/canonicalize.py
from __future__ import annotations
from typing import Dict, Iterable, Mapping, Tuple

import pandas as pd

_POINT_FIELDS = ("t", "x", "y", "z", "e", "px", "py", "pz")

_STEP_KEYS: Dict[str, Tuple[str, ...]] = {
    # canonical_key: tuple of fallback source keys
    "event": ("event", "event_id", "evt", "EventID"),
    "track_id": ("track_id", "track", "trackID", "TrackID"),
    "parent_id": ("parent_id", "parent", "parentID", "ParentID"),
    "particle": ("particle", "particle_name", "ParticleName"),
    "pdg": ("pdg", "pdg_code", "pdgid", "PDG"),
    # Volume label; kept as text
    "volume": ("volume", "chamber", "chamber_id", "det", "detector"),
    # Energy deposit (MeV)
    "edep": ("edep", "Edep", "Edep_MeV", "deposit", "energy_deposit"),
}
# Step points: "post_x" etc.; bare names ("x", "t", ...) are read as the post point
for _pt in ("pre", "post"):
    for _f in _POINT_FIELDS:
        _STEP_KEYS[f"{_pt}_{_f}"] = (f"{_pt}_{_f}",) + ((_f,) if _pt == "post" else ())

_GEN_KEYS: Dict[str, Tuple[str, ...]] = {
    "event": _STEP_KEYS["event"],
    "gen_index": ("index", "idx", "gen_index"),
    "g4_index": ("g4_index", "G4index", "g4index"),
    "pdg": ("pdg", "pdgid", "pdg_code"),
    "status": ("status",),
    "t": ("t", "time"), "x": ("x",), "y": ("y",), "z": ("z",),
    "e": ("e", "energy", "E"), "px": ("px",), "py": ("py",), "pz": ("pz",),
    "mo1": ("mo1", "mother1"), "mo2": ("mo2", "mother2"),
    "dau1": ("dau1", "daughter1"), "dau2": ("dau2", "daughter2"),
    "mass": ("mass", "m"),
}

_PRIMARY_KEYS: Dict[str, Tuple[str, ...]] = {
    "event": _STEP_KEYS["event"],
    "vertex": ("vertex", "vertex_id"),
    "t": ("t", "t0", "time"), "x": ("x", "x0"), "y": ("y", "y0"), "z": ("z", "z0"),
    "pdg": ("pdg", "pdg_code", "pdgid"),
    "track_id": ("track_id", "track", "trackID"),
    "energy": ("energy", "e", "total_energy"),
    "px": ("px",), "py": ("py",), "pz": ("pz",),
}

VOLUME_KEYS = _STEP_KEYS["volume"]

_OPTIONAL_DEFAULTS = {
    "parent_id": 0, "particle": None, "pdg": 0,
    "g4_index": -1, "status": 0, "mo1": -1, "mo2": -1, "dau1": -1, "dau2": -1, "mass": 0.0,
    "vertex": 0,
}


def _first(columns: Iterable[str], names: Iterable[str]):
    cols = set(columns)
    for k in names:
        if k in cols:
            return k
    return None


def _canonicalize(df: pd.DataFrame, keys: Mapping[str, Tuple[str, ...]], what: str) -> pd.DataFrame:
    out = {}
    missing = []
    for canon, names in keys.items():
        src = _first(df.columns, names)
        if src is not None:
            out[canon] = df[src].to_numpy()
        elif canon in _OPTIONAL_DEFAULTS:
            out[canon] = _OPTIONAL_DEFAULTS[canon]
        else:
            missing.append(canon)
    if missing:
        raise KeyError(f"{what} table is missing required columns: {missing}")
    return pd.DataFrame(out, index=df.index)


def canonicalize_steps(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename the known column variants of a step table to the canonical set.

    If only one step point is present the other one mirrors it. A missing
    particle name falls back to the PDG code as text. Volume labels are
    always text.
    """
    cols = set(df.columns)
    df = df.copy()
    for f in _POINT_FIELDS:
        pre, post = f"pre_{f}", f"post_{f}"
        have_post = _first(cols, _STEP_KEYS[post]) is not None
        if pre not in cols and have_post:
            df[pre] = df[_first(cols, _STEP_KEYS[post])]
        elif pre in cols and not have_post:
            df[post] = df[pre]
    out = _canonicalize(df, _STEP_KEYS, "step")
    if out["particle"].isna().all():
        out["particle"] = out["pdg"].astype(int).astype(str)
    out["volume"] = out["volume"].astype(str)
    return out


def canonicalize_gen_particles(df: pd.DataFrame) -> pd.DataFrame:
    return _canonicalize(df, _GEN_KEYS, "generator particle")


def canonicalize_primaries(df: pd.DataFrame) -> pd.DataFrame:
    return _canonicalize(df, _PRIMARY_KEYS, "primary vertex")
