from __future__ import annotations

import os
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path
from typing import Callable, Deque, Iterable, Iterator, Optional

import typer

try:
    from tqdm import tqdm  # optional, for progress bars
except Exception:  # pragma: no cover
    tqdm = None  # noqa

from mutrack.config.load import load_config, snapshot_config_toml
from mutrack.config.schemas import Config
from mutrack.filters.convert import (
    cut_hits_to_table,
    extra_to_table,
    gen_particles_to_table,
    hits_to_table,
    primaries_to_table,
)
from mutrack.filters.cuts import CutDiagnostics
from mutrack.io.adapters import make_adapter
from mutrack.io.ntuple import EventNtuple, PrimaryNtuple
from mutrack.io.sink import AnalysisSink, H5Sink
from mutrack.io.store import save_settings, settings_from_lists, write_init
from mutrack.io.tables import ColumnTable
from mutrack.physics.events import EventRecord
from mutrack.utils.logging import get_logger, level_for_diagnostics, setup_logger

log = get_logger(__name__)


class SinkError(RuntimeError):
    """The analysis sink refused a table declaration or a row."""


@dataclass
class EventTables:
    event_id: int
    hits: ColumnTable
    gen_particles: ColumnTable
    primaries: ColumnTable
    extra: ColumnTable
    cut: Optional[CutDiagnostics] = None


@dataclass
class RunSummary:
    output_path: Optional[Path] = None
    events: int = 0
    hit_rows: int = 0
    gen_rows: int = 0
    primary_rows: int = 0
    cut: CutDiagnostics = field(default_factory=CutDiagnostics)


def convert_event(record: EventRecord, cfg: Config, diag: Optional[CutDiagnostics] = None) -> EventTables:
    """
    All tables for one event. With the layer cut enabled, the hit table is
    either the whole collection or empty, and the volume map is not used.
    """
    if cfg.cut.enabled:
        hits = cut_hits_to_table(record.hits, cfg.cut.layer_bounds, True, diag=diag)
    else:
        hits = hits_to_table(record.hits, cfg.detectors.volume_map)
    return EventTables(
        event_id=record.event_id,
        hits=hits,
        gen_particles=gen_particles_to_table(record.gen_particles, cfg.run.save_all_gen),
        primaries=primaries_to_table(record.vertices),
        extra=extra_to_table(record.extra),
    )


def declare_tables(sink: AnalysisSink, cfg: Config) -> None:
    for nt in (EventNtuple(cfg.ntuple.events), PrimaryNtuple(cfg.ntuple.primaries)):
        if not nt.declare(sink):
            raise SinkError(f"could not declare table {nt.name!r}")


def write_event(sink: AnalysisSink, tables: EventTables, cfg: Config) -> None:
    events = EventNtuple(cfg.ntuple.events)
    if not events.fill(sink, tables.hits, tables.gen_particles, tables.extra):
        raise SinkError(f"could not append event {tables.event_id} to {events.name!r}")
    primaries = PrimaryNtuple(cfg.ntuple.primaries)
    if not primaries.fill(sink, tables.primaries):
        raise SinkError(f"could not append event {tables.event_id} to {primaries.name!r}")


def process_events(
    records: Iterable[EventRecord],
    sink: AnalysisSink,
    cfg: Config,
) -> RunSummary:
    """
    Convert and store every record. Each record is handled start to finish
    by one worker thread; the sink is the only shared object.
    """
    summary = RunSummary()
    dump = cfg.run.print_hits and cfg.run.diagnostics_level >= 2

    def _one(record: EventRecord) -> EventTables:
        if dump:
            log.debug("%s", record.hits.format())
        diag = CutDiagnostics()
        tables = convert_event(record, cfg, diag=diag)
        tables.cut = diag
        write_event(sink, tables, cfg)
        record.hits.clear()
        return tables

    if cfg.run.max_events > 0:
        records = islice(records, cfg.run.max_events)

    workers = cfg.run.workers
    if workers == "auto":
        workers = max(1, os.cpu_count() or 1)

    if workers == 0:
        results: Iterator[EventTables] = map(_one, records)
        _collect(summary, results, cfg)
    else:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            _collect(summary, _bounded_map(ex, _one, records, window=2 * workers), cfg)
    return summary


def _bounded_map(
    ex: ThreadPoolExecutor,
    fn: Callable[[EventRecord], EventTables],
    records: Iterable[EventRecord],
    window: int,
) -> Iterator[EventTables]:
    """
    Like ex.map, but keeps at most `window` records in flight so input is
    read as workers free up rather than all at once. Results keep input order.
    """
    it = iter(records)
    pending: Deque[Future] = deque()
    try:
        for record in islice(it, window):
            pending.append(ex.submit(fn, record))
        while pending:
            tables = pending.popleft().result()
            for record in islice(it, 1):
                pending.append(ex.submit(fn, record))
            yield tables
    finally:
        for fut in pending:
            fut.cancel()


def _collect(summary: RunSummary, results: Iterator[EventTables], cfg: Config) -> None:
    pbar = tqdm(desc="events", unit="evt") if (cfg.run.progress and tqdm) else None
    try:
        for tables in results:
            summary.events += 1
            summary.hit_rows += tables.hits.row_count
            summary.gen_rows += tables.gen_particles.row_count
            summary.primary_rows += tables.primaries.row_count
            if tables.cut is not None:
                summary.cut.merge(tables.cut)
            if pbar is not None:
                pbar.update(1)
    finally:
        if pbar is not None:
            pbar.close()


def run_pipeline(
    cfg_path: str,
    *,
    cut: Optional[bool] = None,
    save_all: Optional[bool] = None,
    workers: Optional[int] = None,
) -> RunSummary:
    """
    Orchestrate the full pipeline from a TOML config file.

    CLI flags (--cut/--no-cut, --save-all/--no-save-all, --workers) override
    the corresponding config fields when not None.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if cut is not None:
        cfg.cut.enabled = cut
    if save_all is not None:
        cfg.run.save_all_gen = save_all
    if workers is not None:
        cfg.run.workers = workers

    setup_logger(level=level_for_diagnostics(cfg.run.diagnostics_level), log_file=cfg.run.log_file)
    log.info("[run] config = %s", cfg_path)
    log.info("[run] cut=%s save_all_gen=%s workers=%s",
             cfg.cut.enabled, cfg.run.save_all_gen, cfg.run.workers)
    log.info("[run] input=%s -> output=%s", cfg.io.input_path, cfg.io.output_path)

    if cfg.cut.enabled and len(cfg.cut.layer_bounds) < 3:
        log.warning("[run] layer cut enabled with %d layer bounds; every event will be rejected",
                    len(cfg.cut.layer_bounds))

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    f = write_init(out_path, snapshot_config_toml(cfg_path))
    try:
        names = list(cfg.settings)
        save_settings(f, settings_from_lists(names, [cfg.settings[n] for n in names]))

        sink = H5Sink(f, group=cfg.ntuple.group)
        declare_tables(sink, cfg)

        adapter = make_adapter(cfg.io.adapter)
        summary = process_events(adapter.iter_events(cfg.io.input_path), sink, cfg)
    finally:
        f.close()

    summary.output_path = out_path
    log.info("[pipeline] Wrote %d events (%d hit rows, %d gen rows, %d primary rows)",
             summary.events, summary.hit_rows, summary.gen_rows, summary.primary_rows)
    if cfg.cut.enabled:
        log.info("[cut] passed=%d rejected=%d candidates=%d",
                 summary.cut.passed, summary.cut.rejected, summary.cut.candidates)
    return summary


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Convert simulated tracking events into analysis ntuples (mutrack.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    cut: Optional[bool] = typer.Option(
        None,
        "--cut / --no-cut",
        help="Enable or disable the tracker layer cut; overrides [cut].enabled when set",
    ),
    save_all: Optional[bool] = typer.Option(
        None,
        "--save-all / --no-save-all",
        help="Keep generator particles never handed to transport; overrides [run].save_all_gen",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-j",
        help="Worker threads (0 = serial); overrides [run].workers",
    ),
):
    """
    Run the conversion pipeline for a single config.
    """
    summary = run_pipeline(cfg_path, cut=cut, save_all=save_all, workers=workers)
    typer.echo(str(summary.output_path))


if __name__ == "__main__":
    app()
