from __future__ import annotations
import json
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .anilist import AniListClient
from .config import Config, load_config
from .db.session import init_db
from .driver import EpisodeCatalogDriver
from .logging_setup import setup_logging
from .paths import get_dirs
from .retention import run_retention
from .store import open_store

console = Console()

app = typer.Typer(no_args_is_help=True)

ConfigOpt = typer.Option(None, "--config", "-c", help="Path to config.yaml")


def _load(config: Optional[str], log_level: str = "INFO") -> Config:
    setup_logging(log_level)
    return load_config(config)


@app.command()
def init(
    config: Optional[str] = ConfigOpt,
    db_url: str = typer.Option(None, help="SQLAlchemy URL; default local SQLite"),
):
    """Create the catalog tables."""
    cfg = _load(config)
    init_db(db_url or cfg.db_url or None)
    print("[green]Database initialized[/green]")


@app.command("paths")
def show_paths():
    """Show where animehub stores DB, logs, cache, config."""
    t = Table(title="animehub paths")
    t.add_column("Kind"); t.add_column("Location")
    for k, p in get_dirs().items():
        t.add_row(k, str(p))
    console.print(t)


@app.command()
def ingest(
    config: Optional[str] = ConfigOpt,
    as_json: bool = typer.Option(False, "--json", help="Print the run summary as JSON"),
):
    """Run one ingestion cycle against the configured store."""
    cfg = _load(config)
    store = open_store(cfg)
    client = AniListClient(cfg.anilist_url, timeout=cfg.request_timeout)
    summary = EpisodeCatalogDriver(cfg, client, store).run()

    if as_json:
        typer.echo(json.dumps(summary.as_dict(), indent=2))
    else:
        t = Table(title=f"ingest: {summary.state.value}")
        t.add_column("Metric"); t.add_column("Value", justify="right")
        for key in ("pages", "fetched", "unique", "created", "advanced",
                    "refreshed", "skipped", "newly_seen"):
            t.add_row(key, str(getattr(summary, key)))
        t.add_row("errors", str(len(summary.errors)))
        console.print(t)
        for sid, err in summary.errors.items():
            print(f"[yellow]{sid}[/yellow]: {err}")
        if summary.cause:
            print(f"[red]{summary.cause}[/red]")
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command()
def sweep(
    config: Optional[str] = ConfigOpt,
    dry_run: bool = typer.Option(False, "--dry-run", help="Report decisions without deleting"),
):
    """Delete catalog records that no longer have any recency signal."""
    cfg = _load(config)
    summary = run_retention(open_store(cfg), cfg, dry_run=dry_run)

    t = Table(title="retention (dry run)" if dry_run else "retention")
    t.add_column("ID"); t.add_column("Title"); t.add_column("Action"); t.add_column("Reason")
    for sid, title, action, reason in summary.decisions:
        style = "green" if action == "KEEP" else "red"
        t.add_row(sid, title, f"[{style}]{action}[/{style}]", reason)
    console.print(t)
    print(f"kept={summary.kept} deleted={summary.deleted} seen_pruned={summary.seen_pruned}")
    if not summary.ok:
        print(f"[red]{summary.error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def records(
    config: Optional[str] = ConfigOpt,
    limit: int = typer.Option(50, help="Max rows to show"),
):
    """List catalog records, most recently added first."""
    cfg = _load(config, "WARNING")
    rows = sorted(
        open_store(cfg).scan(),
        key=lambda r: (r.episode_added_at is not None, r.episode_added_at),
        reverse=True,
    )
    t = Table(title=f"catalog ({len(rows)} series)")
    for col in ("ID", "Title", "Ep", "Aired", "Added", "Refreshed", "Status"):
        t.add_column(col)
    def fmt(d):
        return d.strftime("%Y-%m-%d %H:%M") if d else "-"

    for r in rows[:limit]:
        t.add_row(r.series_id, r.title, str(r.latest_episode), fmt(r.episode_aired_at),
                  fmt(r.episode_added_at), fmt(r.last_refreshed_at), r.status or "-")
    console.print(t)


@app.command()
def schedule(config: Optional[str] = ConfigOpt):
    """Run ingestion and retention on their schedules (blocking)."""
    from .scheduler import start_scheduler
    cfg = _load(config)
    start_scheduler(cfg)
