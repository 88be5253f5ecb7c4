from __future__ import annotations
from .schemas import Config
from pathlib import Path
from typing import Any, Dict

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310


def _resolve_paths(data: Dict[str, Any], base: Path) -> Dict[str, Any]:
    """Relative [io] paths are taken relative to the config file's directory."""
    io = data.get("io")
    if not isinstance(io, dict):
        return data
    for key in ("input_path", "output_path"):
        if key in io:
            p = Path(io[key])
            if not p.is_absolute():
                io[key] = str((base / p).resolve())
    adapter = io.get("adapter")
    if isinstance(adapter, dict):
        for key in ("gen_path", "primaries_path"):
            if adapter.get(key):
                p = Path(adapter[key])
                if not p.is_absolute():
                    adapter[key] = str((base / p).resolve())
    return data


def config_from_text(text: str, base: str | Path | None = None) -> Config:
    data = tomllib.loads(text)
    return Config(**_resolve_paths(data, Path(base) if base else Path.cwd()))


def load_config(path: str | Path) -> Config:
    p = Path(path)
    return config_from_text(p.read_text(), base=p.parent)


def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()
