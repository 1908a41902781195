# health_export/cli.py
from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Optional

import typer
import structlog

from .auth import ensure_authorized, request_authorization
from .config import get_settings
from .errors import HealthExportError
from .exporter import Exporter
from .log import configure_logging
from .models import CATEGORIES
from .stores import AppleExportStore
from .utils import UNIT_POLICY, DEFAULT_POLICY, day_bounds, get_tz

app = typer.Typer(no_args_is_help=True, help="health-export CLI")
log = structlog.get_logger()


# ---------- helpers ----------

def _parse_date(value: Optional[str], default: dt.date) -> dt.date:
    if not value:
        return default
    try:
        return dt.date.fromisoformat(value.strip())
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}")


def _open_store(source: Optional[Path]) -> AppleExportStore:
    path = source or get_settings().EXPORT_SOURCE
    if path is None:
        raise typer.BadParameter("no export.xml given; pass --source or set EXPORT_SOURCE in .env")
    return AppleExportStore(path)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    s = get_settings()
    configure_logging("DEBUG" if verbose else s.LOG_LEVEL, json=s.LOG_JSON)


# ---------- commands ----------

@app.command()
def diag() -> None:
    """Print the effective configuration."""
    s = get_settings()
    source = s.EXPORT_SOURCE
    typer.echo(f"TZ: {s.TZ}")
    typer.echo(f"EXPORT_DIR: {s.EXPORT_DIR}")
    typer.echo(f"EXPORT_SOURCE: {source}  (exists={bool(source and Path(source).is_file())})")
    typer.echo(f"QUERY_TIMEOUT_SECONDS: {s.QUERY_TIMEOUT_SECONDS}")
    typer.echo(f"QUERY_PAGE_LIMIT: {s.QUERY_PAGE_LIMIT or 'none'}")


@app.command()
def categories() -> None:
    """List exported categories in export order."""
    for c in CATEGORIES:
        unit = "-" if not c.is_quantity else UNIT_POLICY.get(c.label, DEFAULT_POLICY)[1]
        typer.echo(f"{c.label:<18} {unit:<12} {c.identifier}")


@app.command()
def authorize(
    source: Optional[Path] = typer.Option(None, help="Apple Health export.xml"),
) -> None:
    """Request read access for every exported category."""
    store = _open_store(source)
    try:
        ok = request_authorization(store, CATEGORIES)
    except HealthExportError as e:
        typer.echo(f"Auth error: {e}")
        raise typer.Exit(code=1)
    typer.echo("Authorized" if ok else "Authorization failed")
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def export(
    start: Optional[str] = typer.Option(None, help="First day YYYY-MM-DD (default: DEFAULT_LOOKBACK_DAYS ago)"),
    end: Optional[str] = typer.Option(None, help="Last day YYYY-MM-DD, inclusive (default: today)"),
    source: Optional[Path] = typer.Option(None, help="Apple Health export.xml"),
    out_dir: Optional[Path] = typer.Option(None, help="Output directory (default: EXPORT_DIR)"),
    timeout: Optional[float] = typer.Option(None, min=0.1, help="Seconds to wait per category"),
    page_limit: Optional[int] = typer.Option(None, min=1, help="Samples per page"),
    strict: bool = typer.Option(False, help="Abort on the first category that fails"),
) -> None:
    """Export the date range to one NDJSON file."""
    s = get_settings()
    tz = get_tz(s.TZ)
    today = dt.datetime.now(tz).date()
    start_date = _parse_date(start, today - dt.timedelta(days=s.DEFAULT_LOOKBACK_DAYS))
    end_date = _parse_date(end, today)
    if start_date > end_date:
        raise typer.BadParameter("start date is after end date")

    store = _open_store(source)
    lo, hi = day_bounds(start_date, end_date, tz)
    exporter = Exporter(
        store,
        output_dir=out_dir or s.EXPORT_DIR,
        timeout=timeout or s.QUERY_TIMEOUT_SECONDS,
        page_limit=page_limit or s.QUERY_PAGE_LIMIT,
        strict=strict,
    )

    typer.echo("Starting export...")
    try:
        ensure_authorized(store, exporter.categories, timeout=exporter.timeout)
        session = exporter.run(lo, hi)
    except HealthExportError as e:
        log.error("export_command_failed", error=str(e))
        typer.echo(f"Export failed: {e}")
        raise typer.Exit(code=1)

    for c in session.categories:
        if c.error:
            status = f"failed ({c.error})"
        elif c.timed_out:
            status = f"{c.records} (timed out)"
        else:
            status = str(c.records)
        typer.echo(f"  {c.category:<18} {status}")
    if session.path is not None:
        typer.echo(f"Exported to: {session.path.name}")


if __name__ == "__main__":
    app()
