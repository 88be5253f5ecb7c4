from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Dict, List, Union, Any


class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Performance / execution
    workers: Union[int, Literal["auto"]] = "auto"   # 0 = serial, one event per worker thread
    progress: bool = False

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    print_hits: bool = False    # dump every HitCollection at diagnostics_level 2
    log_file: Optional[str] = None

    # Content
    save_all_gen: bool = False  # keep generator particles never handed to transport

    # Limits
    max_events: int = 0  # 0 = all

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("workers")
    def _workers_range(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("workers must be >= 0 or 'auto'")
        return v


class IOCfg(BaseModel):
    """
    I/O paths.

    TOML:

    [io]
    input_path  = "steps.csv"
    output_path = "out/run.h5"

    [io.adapter]
    type = "table"      # "table" | "ntuple"
    post = true
    """

    input_path: str
    output_path: str

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)


class DetectorsCfg(BaseModel):
    """
    Optional mapping from detection-volume labels to numeric ids.

    TOML:

    [detectors.volume_map]
    "A1" = 101
    "B3" = 203

    Without a map, labels are parsed as numbers.
    """

    volume_map: Optional[Dict[str, float]] = None


class CutCfg(BaseModel):
    """
    Tracker-layer crossing cut.

    layer_bounds: list of [min, max] bands along the vertical axis (cm).
    """

    enabled: bool = False
    layer_bounds: List[List[float]] = Field(default_factory=list)

    @field_validator("layer_bounds")
    def _bounds_are_bands(cls, v: List[List[float]]) -> List[List[float]]:
        for i, b in enumerate(v):
            if len(b) != 2:
                raise ValueError(f"layer_bounds[{i}] must be [min, max], got {b}")
            if not b[0] < b[1]:
                raise ValueError(f"layer_bounds[{i}] must have min < max, got {b}")
        return v


class NtupleCfg(BaseModel):
    events: str = "events"
    primaries: str = "primaries"
    group: str = "/ntuples"


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    detectors: DetectorsCfg = Field(default_factory=DetectorsCfg)
    cut: CutCfg = Field(default_factory=CutCfg)
    ntuple: NtupleCfg = Field(default_factory=NtupleCfg)
    settings: Dict[str, str] = Field(default_factory=dict)
