import h5py
import numpy as np
import pytest

from mutrack.filters.convert import empty_extra, extra_to_table, gen_particles_to_table, hits_to_table, primaries_to_table
from mutrack.io.ntuple import DEFAULT_KEYS, DEFAULT_KINDS, PRIMARY_KEYS, EventNtuple, PrimaryNtuple
from mutrack.io.sink import H5Sink, MemorySink
from mutrack.io.store import (
    SimSetting,
    indexed_settings,
    read_settings,
    read_table,
    save_settings,
    settings,
    settings_from_lists,
    write_init,
)
from mutrack.io.tables import ColumnKind
from mutrack.physics.events import HitCollection
from mutrack.physics.particles import PrimaryParticle, PrimaryVertex
from mutrack.sim.synth import make_hit, synth_gen_particles


def test_default_layout():
    assert len(DEFAULT_KEYS) == len(DEFAULT_KINDS) == 52
    assert DEFAULT_KEYS[0] == "NumHits" and DEFAULT_KINDS[0] is ColumnKind.SCALAR
    assert DEFAULT_KEYS[1] == "Hit_energy"
    assert DEFAULT_KEYS[15] == "NumGenParticles" and DEFAULT_KINDS[15] is ColumnKind.SCALAR
    assert DEFAULT_KEYS[-1] == "EXTRA_15"
    assert sum(k is ColumnKind.SCALAR for k in DEFAULT_KINDS) == 2
    assert len(PRIMARY_KEYS) == 13


def _tables():
    hc = HitCollection(1, [make_hit(volume="3"), make_hit(volume="4", track_id=2)])
    gen = synth_gen_particles(4, rng=np.random.default_rng(0))
    extra = empty_extra()
    extra[0] = [42.0]
    return hits_to_table(hc), gen_particles_to_table(gen, save_all=False), extra_to_table(extra)


def test_event_row_assembly():
    hits, gen, extra = _tables()
    scalars, vectors = EventNtuple().row(hits, gen, extra)
    assert scalars == [2.0, 2.0]
    assert len(vectors) == 50
    assert vectors[2] == [3.0, 4.0]           # Hit_detId
    assert vectors[14 + 20] == [42.0]         # COSMIC_EVENT_ID


def test_event_row_rejects_swapped_tables():
    hits, gen, extra = _tables()
    with pytest.raises(TypeError):
        EventNtuple().row(gen, hits, extra)


def test_fill_memory_sink():
    sink = MemorySink()
    nt = EventNtuple("box")
    assert nt.declare(sink)
    hits, gen, extra = _tables()
    assert nt.fill(sink, hits, gen, extra)
    assert sink.column("box", "NumHits") == [2.0]
    assert sink.column("box", "Hit_G4TrackId") == [[1.0, 2.0]]


def test_primary_ntuple_h5(tmp_path):
    vertex = PrimaryVertex(0.0, 0.0, 0.0, 0.0, [
        PrimaryParticle(13, 1, 1000.0, (0.0, 990.0, 0.0)),
        PrimaryParticle(-13, 2, 1000.0, (0.0, -990.0, 0.0)),
    ])
    with H5Sink(tmp_path / "p.h5") as sink:
        nt = PrimaryNtuple()
        assert nt.declare(sink)
        assert nt.fill(sink, primaries_to_table([vertex]))
        assert nt.fill(sink, primaries_to_table([]))
    data = read_table(tmp_path / "p.h5", "primaries")
    np.testing.assert_array_equal(data["NumPrimaries"], [2.0, 0.0])
    assert [list(r) for r in data["Primary_pdgId"]] == [[13.0, -13.0], []]


def test_settings_helpers():
    assert settings("gen", "basic", "det", "Box") == [SimSetting("gen", "basic"), SimSetting("det", "Box")]
    assert settings("seed", "7", prefix="run_") == [SimSetting("run_seed", "7")]
    with pytest.raises(ValueError):
        settings("gen")
    assert settings_from_lists(["a", "b"], ["1"]) == []
    assert settings_from_lists([], []) == []
    assert settings_from_lists(["a"], ["1"], prefix="x_") == [SimSetting("x_a", "1")]
    assert indexed_settings("layer", ["top", "bottom"], start=1) == [
        SimSetting("layer1", "top"), SimSetting("layer2", "bottom"),
    ]


def test_save_and_read_settings(tmp_path):
    path = tmp_path / "run.h5"
    f = write_init(path, config_text="[run]\n")
    assert save_settings(f, settings("gen", "basic", "det", "Box"))
    assert save_settings(f, SimSetting("seed", "11"))
    assert not save_settings(f, [])
    f.close()

    assert read_settings(path) == {"gen": "basic", "det": "Box", "seed": "11"}
    with h5py.File(path, "r") as f:
        assert f.attrs["format_version"] == "1.0"
        assert f.attrs["config_text"] == "[run]\n"


def test_read_settings_without_group(tmp_path):
    path = tmp_path / "bare.h5"
    write_init(path).close()
    assert read_settings(path) == {}
