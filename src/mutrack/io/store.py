from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import h5py
import numpy as np

FORMAT_VERSION = "1.0"
SOFTWARE = "mutrack 0.1.0"


@dataclass(frozen=True)
class SimSetting:
    """A named piece of run metadata (generator, detector, seed, ...)."""
    name: str
    text: str


def settings(*pairs: str, prefix: str = "") -> List[SimSetting]:
    """
    settings("gen", "basic", "det", "Box") -> two SimSettings.
    Names get `prefix` prepended. An odd number of arguments is an error.
    """
    if len(pairs) % 2:
        raise ValueError("settings() takes name/text pairs")
    return [SimSetting(prefix + pairs[i], pairs[i + 1]) for i in range(0, len(pairs), 2)]


def settings_from_lists(names: Sequence[str], texts: Sequence[str], prefix: str = "") -> List[SimSetting]:
    """Pairwise settings; mismatched or empty lists give an empty list."""
    if len(names) != len(texts) or not names:
        return []
    return [SimSetting(prefix + n, t) for n, t in zip(names, texts)]


def indexed_settings(name: str, texts: Sequence[str], start: int = 0, prefix: str = "") -> List[SimSetting]:
    """indexed_settings("layer", ["a", "b"], 1) -> layer1=a, layer2=b"""
    return [SimSetting(f"{prefix}{name}{start + i}", t) for i, t in enumerate(texts)]


def write_init(path: Union[str, Path], config_text: str = "") -> h5py.File:
    f = h5py.File(str(path), "w")
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = SOFTWARE
    f.attrs["config_text"] = config_text
    return f


def save_settings(f: h5py.File, entries: Union[SimSetting, Sequence[SimSetting]]) -> bool:
    """Store settings as attributes of /settings. Returns False on an empty list."""
    if isinstance(entries, SimSetting):
        entries = [entries]
    if not entries:
        return False
    grp = f.require_group("settings")
    for s in entries:
        grp.attrs[s.name] = s.text
    return True


def read_settings(path: Union[str, Path]) -> Dict[str, str]:
    with h5py.File(str(path), "r") as f:
        if "settings" not in f:
            return {}
        return {k: (v.decode() if isinstance(v, bytes) else str(v)) for k, v in f["settings"].attrs.items()}


def read_table(
    path: Union[str, Path],
    name: str,
    group: str = "/ntuples",
) -> Dict[str, Union[np.ndarray, List[np.ndarray]]]:
    """
    Read a table written by H5Sink.

    Scalar columns come back as 1-D arrays (one value per row); vector columns
    as a list with one array per row, rebuilt from the CSR values/ptr pair.
    """
    out: Dict[str, Union[np.ndarray, List[np.ndarray]]] = {}
    with h5py.File(str(path), "r") as f:
        g = f[f"{group.rstrip('/')}/{name}"]
        columns = [c.decode() if isinstance(c, bytes) else str(c) for c in g.attrs["columns"]]
        kinds = [k.decode() if isinstance(k, bytes) else str(k) for k in g.attrs["kinds"]]
        for col, kind in zip(columns, kinds):
            if kind == "scalar":
                out[col] = np.array(g[col], dtype=np.float64)
            else:
                values = np.array(g[col]["values"], dtype=np.float64)
                ptr = np.array(g[col]["ptr"], dtype=np.int64)
                out[col] = [values[ptr[i]:ptr[i + 1]] for i in range(len(ptr) - 1)]
    return out


def table_rows(path: Union[str, Path], name: str, group: str = "/ntuples") -> Optional[int]:
    with h5py.File(str(path), "r") as f:
        key = f"{group.rstrip('/')}/{name}"
        if key not in f:
            return None
        return int(f[key].attrs["rows"])
