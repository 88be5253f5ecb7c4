import numpy as np
import pytest

from mutrack.filters.convert import (
    empty_extra,
    extra_to_table,
    gen_particles_to_table,
    hits_to_table,
    primaries_to_table,
)
from mutrack.io.tables import GEN_PARTICLE, HIT, PRIMARY
from mutrack.physics.events import HitCollection
from mutrack.physics.particles import NO_INDEX, PrimaryParticle, PrimaryVertex
from mutrack.sim.synth import make_hit, synth_gen_particles


def _collection(labels):
    return HitCollection(1, [make_hit(track_id=i + 1, volume=v, deposit=0.1 * i) for i, v in enumerate(labels)])


def test_hit_table_shape_and_order():
    hc = _collection(["3", "1", "2"])
    t = hits_to_table(hc)
    assert t.kind is HIT
    assert len(t.names) == 14
    assert t.row_count == len(hc) == 3
    assert t.column("Hit_detId") == [3.0, 1.0, 2.0]
    assert t.column("Hit_G4TrackId") == [1.0, 2.0, 3.0]
    assert t.column("Hit_weight") == [1.0, 1.0, 1.0]
    assert t.column("Hit_energy") == pytest.approx([0.0, 0.1, 0.2])


def test_hit_row_layout():
    h = make_hit(track_id=9, parent_id=4, volume="17", deposit=0.75, t=12.0,
                 xyz=(1.0, 2.0, 3.0), momentum=(500.0, 10.0, 20.0, 30.0), pdg=-13)
    t = hits_to_table(HitCollection(1, [h]))
    row = [col[0] for col in t.columns]
    assert row == [0.75, 12.0, 17.0, -13.0, 9.0, 4.0, 1.0, 2.0, 3.0, 500.0, 10.0, 20.0, 30.0, 1.0]


def test_empty_collection_gives_empty_table():
    t = hits_to_table(HitCollection(2))
    assert t.row_count == 0
    assert t.column_lengths() == [0] * 14


def test_map_lookup_and_miss():
    hc = _collection(["A1", "B2", "nope"])
    t = hits_to_table(hc, {"A1": 101, "B2": 202})
    assert t.column("Hit_detId") == [101.0, 202.0, -1.0]
    assert t.row_count == 3


def test_map_miss_even_for_numeric_label():
    t = hits_to_table(_collection(["5"]), {"A1": 1})
    assert t.column("Hit_detId") == [-1.0]


def test_non_numeric_label_without_map_raises():
    with pytest.raises(ValueError):
        hits_to_table(_collection(["1", "A1"]))


def test_primaries_two_vertices():
    v1 = PrimaryVertex(t0=2.0, x0=10.0, y0=20.0, z0=30.0, primaries=[
        PrimaryParticle(pdg=13, track_id=1, total_energy=1000.0, momentum=(0.0, 990.0, 0.0)),
        PrimaryParticle(pdg=-13, track_id=2, total_energy=2000.0, momentum=(1.0, 2.0, 3.0)),
        PrimaryParticle(pdg=22, track_id=3, total_energy=5.0, momentum=(5.0, 0.0, 0.0)),
    ])
    v2 = PrimaryVertex(t0=0.0, x0=0.0, y0=-50.0, z0=0.0, primaries=[
        PrimaryParticle(pdg=2212, track_id=4, total_energy=3000.0, momentum=(0.0, 0.0, 2800.0)),
    ])
    t = primaries_to_table([v1, v2])
    assert t.kind is PRIMARY
    assert t.row_count == 4
    assert t.column("Primary_pdgId") == [13.0, -13.0, 22.0, 2212.0]
    assert t.column("Primary_parentIndex") == [0.0] * 4
    assert t.column("Primary_weight") == [1.0] * 4
    # vertex position mm -> cm
    assert t.column("Primary_x") == pytest.approx([1.0, 1.0, 1.0, 0.0])
    assert t.column("Primary_y") == pytest.approx([2.0, 2.0, 2.0, -5.0])
    assert t.column("Primary_time") == pytest.approx([2.0, 2.0, 2.0, 0.0])


def test_primaries_empty():
    assert primaries_to_table([]).row_count == 0
    assert primaries_to_table([PrimaryVertex(0.0, 0.0, 0.0, 0.0)]).row_count == 0


def test_gen_particles_filter_keeps_order():
    rng = np.random.default_rng(5)
    gen = synth_gen_particles(7, rng=rng)
    kept = [p.index for p in gen if p.g4_index >= 0]

    t = gen_particles_to_table(gen, save_all=False)
    assert t.kind is GEN_PARTICLE
    assert t.column("GenParticle_index") == [float(i) for i in kept]
    assert NO_INDEX not in t.column("GenParticle_G4index")

    t_all = gen_particles_to_table(gen, save_all=True)
    assert t_all.row_count == len(gen)
    assert t_all.column("GenParticle_index") == [float(p.index) for p in gen]


def test_gen_particle_derived_columns():
    gen = synth_gen_particles(3, n_transported=3, rng=np.random.default_rng(1))
    t = gen_particles_to_table(gen, save_all=False)
    assert t.column("GenParticle_pt") == pytest.approx([p.pt for p in gen])
    assert t.column("GenParticle_eta") == pytest.approx([p.eta for p in gen])
    assert t.column("GenParticle_phi") == pytest.approx([p.phi for p in gen])
    assert t.column("GenParticle_mass") == pytest.approx([p.mass for p in gen])


def test_extra_keeps_independent_lengths():
    extra = empty_extra()
    extra[0] = [1.0]
    extra[3] = [1.0, 2.0, 3.0]
    extra[15] = [7.0, 8.0]
    t = extra_to_table(extra)
    lengths = t.column_lengths()
    assert lengths[0] == 1 and lengths[3] == 3 and lengths[15] == 2
    assert sum(lengths) == 6
    assert t.column(3) == [1.0, 2.0, 3.0]
    assert t.column("EXTRA_15") == [7.0, 8.0]
    with pytest.raises(ValueError):
        t.to_frame()


def test_extra_wrong_count():
    with pytest.raises(ValueError):
        extra_to_table([[] for _ in range(15)])


def test_empty_extra_is_fresh():
    a = empty_extra()
    b = empty_extra()
    assert len(a) == 16 and all(seq == [] for seq in a)
    a[0].append(1.0)
    assert b[0] == []
