from __future__ import annotations

import typer
from typing import Optional

from mutrack.io.adapters import StepTableAdapter

app = typer.Typer(help="Print the per-event hit listing of a step table")

@app.command()
def dump(
    steps_path: str = typer.Argument(..., help="Step table (.csv/.parquet/.h5)"),
    event: Optional[int] = typer.Option(None, "--event", "-e", help="Only print this event id"),
    pre: bool = typer.Option(False, "--pre", help="Build hits from pre-step points instead of post-step"),
):
    """Echo each event's hit collection as the banner-and-rows listing."""
    found = False
    for record in StepTableAdapter(post=not pre).iter_events(steps_path):
        if event is not None and record.event_id != event:
            continue
        found = True
        typer.echo(record.hits.format(), nl=False)
    if event is not None and not found:
        typer.echo(f"[dump] event {event} not found in {steps_path}", err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
