"""Typer-based CLI for KBMirror."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from KBMirror.config import load_config
from KBMirror.config.loader import CONFIG_PATH_ENV_VAR
from KBMirror.errors import FatalMirrorError
from KBMirror.logging_utils import setup_logging
from KBMirror.models import EntryResult, Outcome
from KBMirror.progress import read_progress_log
from KBMirror.runner import MirrorResult, MirrorRun
from KBMirror.state import RunState

console = Console()
app = typer.Typer(help="Mirror a remote knowledge base into a local directory tree")


def _print_error(error: BaseException, prefix: str = "✗ Error") -> None:
    console.print(f"[red]{prefix}: {escape(str(error))}[/red]")


def _render_result(result: MirrorResult) -> None:
    if result.already_complete:
        console.print(
            Panel(
                "[bold green]✓ Already complete[/bold green]\n"
                f"{escape(str(result.book_path.resolve()))}",
                title=escape(result.book_name) or "KBMirror",
            )
        )
        return

    report = result.report
    status = (
        "[bold green]✓ Complete[/bold green]"
        if result.is_complete
        else "[bold yellow]Partially complete[/bold yellow]"
    )
    console.print(
        Panel(
            f"{status}\n"
            f"Processed: {result.completed_count}/{result.total_entries}\n"
            f"Articles attempted: {report.total_article_attempts}\n"
            f"Failed: {report.error_count}\n"
            f"External links: {report.warning_count}\n"
            f"Summary: {escape(str(result.summary_path))}",
            title=escape(result.book_name) or "KBMirror",
        )
    )
    if report.errors:
        table = Table(title="Failed articles")
        table.add_column("Path", style="cyan")
        table.add_column("URL", style="magenta")
        table.add_column("Error", style="red")
        for error in report.errors:
            table.add_row(
                escape(error.item.path), escape(error.article_url), escape(error.message)
            )
        console.print(table)
        console.print("[yellow]Re-run the same command to retry; saved articles are kept.[/yellow]")


@app.command()
def download(
    url: str = typer.Argument(..., help="Public URL of the knowledge base"),
    dist_dir: Optional[Path] = typer.Option(
        None, "--dist-dir", "-d", help="Directory the book is mirrored into"
    ),
    ignore_img: bool = typer.Option(False, "--ignore-img", help="Do not download images"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
        envvar=CONFIG_PATH_ENV_VAR,
    ),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Write JSONL logs here"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Download a knowledge base, resuming any interrupted run."""
    setup_logging(level="DEBUG" if verbose else "INFO", log_dir=log_dir)

    try:
        cli_overrides: dict = {"dist_dir": dist_dir}
        if ignore_img:
            cli_overrides["ignore_images"] = True
        cfg = load_config(path=config, cli_overrides=cli_overrides)

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Preparing", total=None)

            def on_start(state: RunState) -> None:
                progress.update(
                    task_id,
                    total=state.total_entries,
                    completed=state.completed_count,
                    description="Downloading",
                )

            def on_entry(result: EntryResult, state: RunState) -> None:
                progress.update(
                    task_id,
                    completed=state.completed_count,
                    description=escape(result.entry.title[:40]),
                )

            with MirrorRun(cfg, on_start=on_start, on_entry=on_entry) as run:
                result = run.execute(url)

        _render_result(result)

    except (FatalMirrorError, ValueError) as e:
        _print_error(e)
        if verbose:
            raise
        raise typer.Exit(code=1)
    except Exception as e:
        _print_error(e, prefix="✗ Unexpected error")
        if verbose:
            raise
        console.print("[dim]Re-run with --verbose for the traceback[/dim]")
        raise typer.Exit(code=1)


@app.command()
def status(
    book_dir: Path = typer.Argument(..., help="Directory of a mirrored book"),
    progress_file: Optional[str] = typer.Option(
        None, "--progress-file", help="Log file name (default: from config)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
        envvar=CONFIG_PATH_ENV_VAR,
    ),
    raw: bool = typer.Option(False, "--raw", help="Raw JSON"),
) -> None:
    """Show what an earlier run recorded for a book."""
    try:
        cfg = load_config(path=config, cli_overrides={"progress_file": progress_file})
        log = read_progress_log(book_dir / cfg.progress_file)
    except (FatalMirrorError, ValueError, OSError) as e:
        _print_error(e)
        raise typer.Exit(code=1)

    counts = Counter(item.outcome for item in log.items)
    data = {outcome.value: counts.get(outcome, 0) for outcome in Outcome}
    data["total"] = len(log.items)
    data["torn_tail"] = log.torn_tail

    if raw:
        typer.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Progress for {escape(str(book_dir))}")
    table.add_column("Outcome", style="cyan")
    table.add_column("Entries", style="green", justify="right")
    for outcome in Outcome:
        table.add_row(outcome.value, str(counts.get(outcome, 0)))
    table.add_row("total", str(len(log.items)))
    console.print(table)
    if log.torn_tail:
        console.print("[yellow]⚠ The last record is incomplete and will be discarded[/yellow]")


@app.command()
def print_config(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
        envvar=CONFIG_PATH_ENV_VAR,
    ),
) -> None:
    """Print merged effective config."""
    try:
        cfg = load_config(path=config)
    except ValueError as e:
        _print_error(e)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(cfg.model_dump(mode="json"), indent=2))


def main() -> None:
    """Entry point for CLI."""
    logging.captureWarnings(True)
    app()


if __name__ == "__main__":
    main()
