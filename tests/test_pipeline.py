import numpy as np
import pytest
from typer.testing import CliRunner

from mutrack.config.schemas import Config
from mutrack.io.ntuple import EventNtuple
from mutrack.io.sink import MemorySink
from mutrack.io.store import read_settings, read_table
from mutrack.pipelines.core import SinkError, app, declare_tables, process_events, run_pipeline
from mutrack.sim.synth import synth_event

BANDS = [[7100.0, 7110.0], [7120.0, 7130.0], [7140.0, 7150.0]]

# mm: 71050 -> 7105 cm etc.
STEPS = """event,track_id,parent_id,particle,pdg,volume,edep,t,x,y,z,e,px,py,pz
1,1,0,mu-,13,1,1.2,1.0,0.0,71050.0,0.0,1000.0,0.0,990.0,0.0
1,1,0,mu-,13,2,1.1,2.0,0.0,71250.0,0.0,999.0,0.0,989.0,0.0
1,1,0,mu-,13,3,1.3,3.0,0.0,71450.0,0.0,998.0,0.0,988.0,0.0
2,1,0,mu+,-13,1,1.0,1.0,0.0,71050.0,0.0,1000.0,0.0,990.0,0.0
"""

GEN = """event,index,g4_index,pdg,status,t,x,y,z,e,px,py,pz
1,0,1,13,1,0,0,0,0,1000,0,990,0
1,1,-1,22,1,0,0,0,0,5,5,0,0
2,0,1,-13,1,0,0,0,0,1000,0,990,0
"""

CONFIG = """
[run]
workers = {workers}
diagnostics_level = 0

[io]
input_path = "steps.csv"
output_path = "out/run.h5"

[io.adapter]
type = "table"
gen_path = "gen.csv"

[cut]
enabled = {cut}
layer_bounds = [[7100.0, 7110.0], [7120.0, 7130.0], [7140.0, 7150.0]]

[settings]
generator = "csv"
"""


def _setup(tmp_path, workers=0, cut="false"):
    (tmp_path / "steps.csv").write_text(STEPS)
    (tmp_path / "gen.csv").write_text(GEN)
    cfg = tmp_path / "run.toml"
    cfg.write_text(CONFIG.format(workers=workers, cut=cut))
    return cfg


@pytest.mark.parametrize("workers", [0, 2])
def test_process_events_memory_sink(workers):
    cfg = Config(io={"input_path": "-", "output_path": "-"}, run={"workers": workers, "diagnostics_level": 0},
                 cut={"enabled": True, "layer_bounds": BANDS})
    rng = np.random.default_rng(9)
    records = [synth_event(i, BANDS, n_gen=4, rng=rng) for i in range(6)]
    sink = MemorySink()
    EventNtuple().declare(sink)
    sink.declare_table("primaries", ("x",), ("scalar",))

    with pytest.raises(SinkError):
        process_events(records[:1], sink, cfg)

    sink = MemorySink()
    declare_tables(sink, cfg)
    summary = process_events(records, sink, cfg)
    assert summary.events == 6
    # each synthetic event: 3 crossing hits + 2 noise hits, all kept
    assert summary.hit_rows == 30
    assert summary.gen_rows == 12
    assert summary.primary_rows == 12
    assert (summary.cut.passed, summary.cut.rejected) == (6, 0)
    assert sorted(sink.column("events", "NumHits")) == [5.0] * 6
    # hit collections are released after writing
    assert all(len(r.hits) == 0 for r in records)


def test_max_events():
    cfg = Config(io={"input_path": "-", "output_path": "-"}, run={"workers": 0, "max_events": 2})
    records = (synth_event(i, BANDS, rng=np.random.default_rng(i)) for i in range(5))
    sink = MemorySink()
    declare_tables(sink, cfg)
    assert process_events(records, sink, cfg).events == 2


def test_run_pipeline_without_cut(tmp_path):
    cfg = _setup(tmp_path)
    summary = run_pipeline(str(cfg))
    assert summary.events == 2
    assert summary.hit_rows == 4
    assert summary.gen_rows == 2

    data = read_table(summary.output_path, "events")
    np.testing.assert_array_equal(data["NumHits"], [3.0, 1.0])
    assert list(data["Hit_detId"][0]) == [1.0, 2.0, 3.0]
    assert list(data["Hit_y"][0]) == pytest.approx([7105.0, 7125.0, 7145.0])
    assert list(data["GenParticle_G4index"][0]) == [1.0]
    assert read_settings(summary.output_path) == {"generator": "csv"}


@pytest.mark.parametrize("workers", [0, 2])
def test_run_pipeline_with_cut(tmp_path, workers):
    cfg = _setup(tmp_path, workers=workers, cut="true")
    summary = run_pipeline(str(cfg), save_all=True)
    assert summary.hit_rows == 3
    assert summary.gen_rows == 3
    assert (summary.cut.passed, summary.cut.rejected) == (1, 1)
    data = read_table(summary.output_path, "events")
    assert sorted(data["NumHits"].tolist()) == [0.0, 3.0]


def test_cli_flags_override_config(tmp_path):
    cfg = _setup(tmp_path, cut="false")
    result = CliRunner().invoke(app, [str(cfg), "--cut", "-j", "0"])
    assert result.exit_code == 0, result.output
    out = result.output.strip().splitlines()[-1]
    data = read_table(out, "events")
    assert data["NumHits"].tolist() == [3.0, 0.0]


class _ReadCountingSink(MemorySink):
    def __init__(self, read):
        super().__init__()
        self._read = read
        self.read_at_first_row = None

    def append_row(self, name, kinds, scalars, vectors):
        if self.read_at_first_row is None:
            self.read_at_first_row = len(self._read)
        return super().append_row(name, kinds, scalars, vectors)


def test_threaded_run_reads_input_lazily():
    cfg = Config(io={"input_path": "-", "output_path": "-"}, run={"workers": 2, "diagnostics_level": 0})
    read = []

    def records():
        rng = np.random.default_rng(4)
        for i in range(200):
            read.append(i)
            yield synth_event(i, BANDS, rng=rng)

    sink = _ReadCountingSink(read)
    declare_tables(sink, cfg)
    summary = process_events(records(), sink, cfg)
    assert summary.events == 200
    assert sink.read_at_first_row <= 4
    assert sink.row_count("events") == 200
