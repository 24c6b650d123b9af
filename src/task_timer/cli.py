"""Command-line interface for the task timer."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from .config import TrackerSettings, get_db_path
from .db import database_connection, fetch_config, store_config
from .errors import InvalidConfigError

app = typer.Typer(help="Project/task time tracker with idle detection.")
config_app = typer.Typer(help="Show or change the activity configuration.")
app.add_typer(config_app, name="config")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the tracker SQLite database."
    ),
    tick_seconds: float = typer.Option(
        1.0,
        "--tick",
        min=0.1,
        help="Status tick interval in seconds.",
    ),
    poll_seconds: float = typer.Option(
        10.0,
        "--idle-poll",
        min=1.0,
        help="Idle sampling interval in seconds.",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
) -> None:
    """Serve the tracking API with background idle detection."""
    from .server_runner import run_dashboard

    settings = TrackerSettings.from_intervals(
        tick_seconds=tick_seconds, poll_seconds=poll_seconds
    )
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        open_browser=open_browser,
    )


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the tracker SQLite database.",
    ),
) -> None:
    """Print tracked time for a specific day."""
    from .reporting import SummaryPrinter

    target = datetime.strptime(date, "%Y-%m-%d") if date else datetime.now()
    summary_printer = SummaryPrinter(db_path=db_path or get_db_path())
    summary_printer.print_daily_summary(target)


@config_app.command("show")
def config_show(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the tracker SQLite database."
    ),
) -> None:
    """Print the stored activity configuration."""
    with database_connection(db_path or get_db_path()) as conn:
        config = fetch_config(conn)
    for key, value in config.to_dict().items():
        typer.echo(f"{key} = {value}")


@config_app.command("set")
def config_set(
    idle_threshold: Optional[int] = typer.Option(
        None, "--idle-threshold", help="Minutes of inactivity before time counts as idle (1-60)."
    ),
    idle_detection: Optional[bool] = typer.Option(
        None, "--idle-detection/--no-idle-detection", help="Enable idle detection."
    ),
    require_reason: Optional[bool] = typer.Option(
        None, "--require-reason/--no-require-reason", help="Require a reason to keep idle time."
    ),
    keyboard: Optional[bool] = typer.Option(
        None, "--keyboard/--no-keyboard", help="Count keyboard input as activity."
    ),
    mouse: Optional[bool] = typer.Option(
        None, "--mouse/--no-mouse", help="Count mouse input as activity."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the tracker SQLite database."
    ),
) -> None:
    """Update the stored activity configuration."""
    candidates: dict[str, Any] = {
        "idle_threshold_minutes": idle_threshold,
        "idle_detection_enabled": idle_detection,
        "require_idle_reason": require_reason,
        "track_keyboard": keyboard,
        "track_mouse": mouse,
    }
    patch = {key: value for key, value in candidates.items() if value is not None}
    if not patch:
        typer.echo("Nothing to change.")
        raise typer.Exit()

    with database_connection(db_path or get_db_path()) as conn:
        try:
            config = fetch_config(conn).merged(patch)
        except InvalidConfigError as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(code=2) from exc
        store_config(conn, config)
    for key, value in config.to_dict().items():
        typer.echo(f"{key} = {value}")
