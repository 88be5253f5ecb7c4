# src/mutrack/config/volumes.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Mapping, Optional


class Resolution(Enum):
    NUMERIC = "numeric"     # parse the label itself as a number
    MAP_LOOKUP = "map"      # look the label up in a name -> value map


@dataclass(frozen=True)
class VolumeResolver:
    """
    Turns a detection-volume label into the numeric id stored in hit tables.

    NUMERIC parses the label and lets a malformed label raise ValueError;
    MAP_LOOKUP never raises and yields MISS for labels absent from the map.
    """
    kind: Resolution = Resolution.NUMERIC
    mapping: Dict[str, float] = field(default_factory=dict)

    MISS: ClassVar[float] = -1.0

    @classmethod
    def numeric(cls) -> "VolumeResolver":
        return cls(Resolution.NUMERIC)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, float]] = None) -> "VolumeResolver":
        """None means no map at all, i.e. numeric parsing."""
        if mapping is None:
            return cls.numeric()
        return cls(Resolution.MAP_LOOKUP, {str(k): float(v) for k, v in mapping.items()})

    def resolve(self, label: str) -> float:
        if self.kind is Resolution.NUMERIC:
            return float(label)
        return self.mapping.get(label, self.MISS)
