from __future__ import annotations
from typing import Iterable, List, Mapping, Optional, Sequence

from mutrack.config.volumes import VolumeResolver
from mutrack.filters.cuts import DEFAULT_CUT, CutDiagnostics, LayerBounds, LayerCut, passes_layer_cut
from mutrack.io.tables import EXTRA, GEN_PARTICLE, HIT, PRIMARY, ColumnTable
from mutrack.physics import units
from mutrack.physics.events import HitCollection
from mutrack.physics.particles import GenParticle, PrimaryVertex


def _fill_hit_rows(table: ColumnTable, hits: Iterable, resolver: VolumeResolver) -> ColumnTable:
    for h in hits:
        t, x, y, z = h.position
        e, px, py, pz = h.momentum
        table.append_row((
            h.deposit, t, resolver.resolve(h.volume),
            h.pdg, h.track_id, h.parent_id,
            x, y, z,
            e, px, py, pz,
            1,
        ))
    return table


def hits_to_table(
    collection: HitCollection,
    volume_map: Optional[Mapping[str, float]] = None,
) -> ColumnTable:
    """
    One HIT row per hit, in collection order.

    Without volume_map the volume label is parsed as a number and a
    non-numeric label raises ValueError. With a map, labels missing from it
    resolve to -1.
    """
    resolver = VolumeResolver.from_mapping(volume_map)
    return _fill_hit_rows(ColumnTable(HIT), collection, resolver)


def cut_hits_to_table(
    collection: HitCollection,
    layer_bounds: LayerBounds,
    save_cut: bool,
    *,
    cut: LayerCut = DEFAULT_CUT,
    diag: Optional[CutDiagnostics] = None,
) -> ColumnTable:
    """
    Whole-event gate on tracker layer crossings.

    If save_cut is set, the full collection is converted only when candidate
    hits cross at least cut.min_layers distinct bands; otherwise the result
    is an empty HIT table. If save_cut is not set this is hits_to_table().
    """
    if not save_cut:
        return hits_to_table(collection)
    table = ColumnTable(HIT)
    if passes_layer_cut(collection, layer_bounds, cut, diag):
        _fill_hit_rows(table, collection, VolumeResolver.numeric())
    return table


def primaries_to_table(vertices: Sequence[PrimaryVertex]) -> ColumnTable:
    """One PRIMARY row per primary, vertex order first; converts to analysis units."""
    table = ColumnTable(PRIMARY)
    for vertex in vertices:
        for p in vertex.primaries:
            px, py, pz = p.momentum
            table.append_row((
                p.pdg, p.track_id, 0,
                vertex.t0 / units.TIME,
                vertex.x0 / units.LENGTH,
                vertex.y0 / units.LENGTH,
                vertex.z0 / units.LENGTH,
                p.total_energy / units.ENERGY,
                px / units.MOMENTUM,
                py / units.MOMENTUM,
                pz / units.MOMENTUM,
                1,
            ))
    return table


def gen_particles_to_table(particles: Sequence[GenParticle], save_all: bool) -> ColumnTable:
    """
    GEN_PARTICLE rows in original order. Unless save_all is set, only
    particles that were handed to transport (g4_index >= 0) are kept.
    """
    table = ColumnTable(GEN_PARTICLE)
    for p in particles:
        if not (save_all or p.g4_index >= 0):
            continue
        vt, vx, vy, vz = p.vertex
        e, px, py, pz = p.momentum
        table.append_row((
            p.index, p.g4_index, p.pdg, p.status,
            vt, vx, vy, vz,
            e, px, py, pz,
            p.mother1, p.mother2, p.daughter1, p.daughter2,
            p.mass, p.pt, p.eta, p.phi,
        ))
    return table


def extra_to_table(extra: Sequence[Sequence[float]]) -> ColumnTable:
    """Copy 16 auxiliary sequences column for column, lengths untouched."""
    if len(extra) != EXTRA.width:
        raise ValueError(f"expected {EXTRA.width} auxiliary sequences, got {len(extra)}")
    table = ColumnTable(EXTRA)
    for i, seq in enumerate(extra):
        table.extend_column(i, seq)
    return table


def empty_extra() -> List[List[float]]:
    return [[] for _ in range(EXTRA.width)]
