"""Command-line entry point."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from textual.logging import TextualHandler

from dotdiff.app import DotdiffApp
from dotdiff.config import ConfigError, Settings, load_settings
from dotdiff.constants import APP_SUBTITLE, MISSING_CELL
from dotdiff.models import DiffRow, EnvFile, RowStatus
from dotdiff.session import Session
from dotdiff.storage.files import ReadError

logger = logging.getLogger(__name__)

app = typer.Typer(
    help=f"dotdiff: {APP_SUBTITLE}.",
    add_completion=False,
)

_FILES_HELP = "Two or more env files to compare, shown left to right."
_SUMMARY_HELP = "Print the diff as a table and exit (status 1 if any key differs)."
_DEBOUNCE_HELP = "Quiet period in milliseconds before a file change is picked up."

_STATUS_STYLES = {
    RowStatus.IDENTICAL: "green",
    RowStatus.DIFFERENT: "yellow",
    RowStatus.MISSING: "red",
}


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Route records to the Textual console, and optionally to a file."""
    handlers: list[logging.Handler] = [TextualHandler()]
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )


def build_summary_table(files: list[EnvFile], rows: list[DiffRow]) -> Table:
    table = Table(title=" vs ".join(f.filename for f in files), show_lines=False)
    table.add_column("Key", style="bold")
    for file in files:
        table.add_column(file.filename)
    table.add_column("Status")
    for row in rows:
        style = _STATUS_STYLES[row.status]
        cells = [MISSING_CELL if value is None else escape(value) for value in row.values]
        table.add_row(escape(row.key), *cells, f"[{style}]{row.status.name.lower()}[/]")
    return table


def print_summary(session: Session, console: Console | None = None) -> bool:
    """Print the diff table.  Returns True when every key is identical."""
    console = console or Console()
    rows = session.rows
    console.print(build_summary_table(session.files, rows))
    stats = session.stats()
    console.print(
        f"{stats[RowStatus.IDENTICAL]} identical, "
        f"{stats[RowStatus.DIFFERENT]} different, "
        f"{stats[RowStatus.MISSING]} missing"
    )
    return all(row.status is RowStatus.IDENTICAL for row in rows)


@app.command()
def run(
    files: list[Path] = typer.Argument(  # noqa: B008
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help=_FILES_HELP,
    ),
    summary: bool = typer.Option(False, "--summary", help=_SUMMARY_HELP),
    no_watch: bool = typer.Option(False, "--no-watch", help="Do not watch the files for external edits."),
    debounce_ms: int | None = typer.Option(  # noqa: B008
        None,
        "--debounce-ms",
        min=0,
        help=_DEBOUNCE_HELP,
    ),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write log records to this file."),  # noqa: B008
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at debug level."),
) -> None:
    """Compare env files side by side."""
    if len(files) < 2:
        raise typer.BadParameter("at least two files are required", param_hint="FILES")

    configure_logging(verbose, log_file)
    paths = [str(path) for path in files]

    if summary:
        try:
            session = Session.load(paths)
        except ReadError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=2) from e
        if not print_summary(session):
            raise typer.Exit(code=1)
        return

    try:
        settings = load_settings()
    except ConfigError as e:
        typer.echo(f"Warning: {e}; using defaults", err=True)
        settings = Settings()
    overrides: dict[str, object] = {}
    if no_watch:
        overrides["watch"] = False
    if debounce_ms is not None:
        overrides["debounce_ms"] = debounce_ms
    if overrides:
        settings = settings.model_copy(update=overrides)

    tui = DotdiffApp(paths, settings=settings, _use_config=True)
    try:
        tui.run()
    finally:
        tui.stop_watcher()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
