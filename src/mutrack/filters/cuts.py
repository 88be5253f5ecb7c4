# src/mutrack/filters/cuts.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from mutrack.physics.hits import Hit

LayerBounds = Sequence[Sequence[float]]


@dataclass(frozen=True)
class LayerCut:
    """
    Event-level tracker-layer crossing requirement.

    A hit is a candidate when its momentum and position along `axis` and its
    deposit are all strictly above threshold. axis indexes both the
    4-position (t, x, y, z) and the 4-momentum (E, px, py, pz); 2 is y.
    """
    min_deposit: float = 0.5
    min_position: float = 7000.0
    axis: int = 2
    min_layers: int = 3

    def is_candidate(self, h: Hit) -> bool:
        return (h.momentum[self.axis] > 0
                and h.deposit > self.min_deposit
                and h.position[self.axis] > self.min_position)


DEFAULT_CUT = LayerCut()


@dataclass
class CutDiagnostics:
    events: int = 0
    passed: int = 0
    rejected: int = 0
    candidates: int = 0

    def merge(self, other: "CutDiagnostics") -> None:
        self.events += other.events
        self.passed += other.passed
        self.rejected += other.rejected
        self.candidates += other.candidates


def crossed_layers(
    hits: Iterable[Hit],
    layer_bounds: LayerBounds,
    cut: LayerCut = DEFAULT_CUT,
    diag: Optional[CutDiagnostics] = None,
) -> List[int]:
    """
    Sorted, unique indices of the layer bands hit by at least one candidate.
    A band (lo, hi) matches when lo < position < hi; overlapping bands can
    all match the same hit.
    """
    layers: List[int] = []
    for h in hits:
        if not cut.is_candidate(h):
            continue
        if diag is not None:
            diag.candidates += 1
        pos = h.position[cut.axis]
        for k, (lo, hi) in enumerate(layer_bounds):
            if lo < pos < hi:
                layers.append(k)
    return sorted(set(layers))


def passes_layer_cut(
    hits: Iterable[Hit],
    layer_bounds: LayerBounds,
    cut: LayerCut = DEFAULT_CUT,
    diag: Optional[CutDiagnostics] = None,
) -> bool:
    ok = len(crossed_layers(hits, layer_bounds, cut, diag)) >= cut.min_layers
    if diag is not None:
        diag.events += 1
        if ok:
            diag.passed += 1
        else:
            diag.rejected += 1
    return ok
