"""Command-line entry point for machine-index."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig, IndexerConfig
from .errors import IndexerError
from .logging_conf import INDEXER_LOG, configure_logging, tail_log
from .orchestrator import IndexSummary, Orchestrator
from .ui import ProgressReporter

app = typer.Typer(
    help="Build and search a full-text index of an emulator's machine catalog.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Inspect configuration.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect log files.", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    orchestrator: Orchestrator


def build_state(verbose: bool, config_path: Path | None = None) -> AppState:
    repository = ConfigRepository(path=config_path)
    config = repository.load_global_config()
    configure_logging(verbose=verbose or config.debug, log_dir=repository.locator.logs_dir)
    return AppState(
        repository=repository,
        config=config,
        orchestrator=Orchestrator(config.indexer),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _fatal(exc: IndexerError) -> NoReturn:
    console.print(f"fatal: {exc}", style="red", markup=False, highlight=False)
    raise typer.Exit(code=1)


def _render_summary(summary: IndexSummary) -> Table:
    table = Table(title="Indexing complete", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Prefixes", str(summary.prefixes))
    table.add_row("Records", str(summary.records))
    table.add_row("Batches", str(summary.commits))
    table.add_row("Workers", str(summary.workers))
    table.add_row("Elapsed (s)", f"{summary.elapsed:.2f}")
    return table


app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Configuration file (YAML or JSON).", dir_okay=False
    ),
) -> None:
    ctx.obj = build_state(verbose, config_path)


@app.command("index", help="Rebuild the index from the catalog tool.")
def index_command(
    ctx: typer.Context,
    binary: Optional[Path] = typer.Option(None, "--binary", help="Path to the catalog tool binary."),
    root: Optional[Path] = typer.Option(None, "--root", help="Data root passed to the tool."),
    index_path: Optional[Path] = typer.Option(None, "--index", help="Index store location."),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Parallel workers."),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=0, help="Batch commit threshold."),
    prefix_length: Optional[int] = typer.Option(None, "--prefix-length", min=1, help="Characters per prefix."),
    rebuild: bool = typer.Option(False, "--rebuild", help="Delete the existing index first."),
    quiet: bool = typer.Option(False, "--quiet", help="Only print a one-line result."),
) -> None:
    state = _get_state(ctx)
    overrides = {
        "binary_path": binary,
        "root_data_path": root,
        "index_path": index_path,
        "parallelism": workers,
        "batch_threshold": batch_size,
        "prefix_length": prefix_length,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    orchestrator = state.orchestrator
    if overrides:
        payload = state.config.indexer.model_dump() | overrides
        orchestrator = Orchestrator(IndexerConfig.model_validate(payload))

    progress_flag = state.config.enable_progress_bar and _progress_default_enabled() and not quiet
    try:
        summary = orchestrator.reindex(progress=ProgressReporter(enabled=progress_flag), rebuild=rebuild)
    except IndexerError as exc:
        _fatal(exc)
    if quiet:
        console.print(
            f"Indexed {summary.records} records from {summary.prefixes} prefixes "
            f"in {summary.commits} batches"
        )
        return
    console.print(_render_summary(summary))


@app.command("search", help="Run a full-text query against the index.")
def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="FTS5 query string."),
    size: Optional[int] = typer.Option(None, "--size", min=1, help="Maximum hits to show."),
    fields: Optional[list[str]] = typer.Option(None, "--field", help="Stored field to display (repeatable)."),
) -> None:
    state = _get_state(ctx)
    selected = fields or state.config.search.fields
    try:
        result = state.orchestrator.search(query, fields=selected, size=size or state.config.search.size)
    except IndexerError as exc:
        _fatal(exc)
    table = Table(
        title=f"{result.total} matches for {query!r} ({result.took * 1000:.1f} ms)",
        box=box.SIMPLE_HEAD,
    )
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Score", style="magenta", justify="right")
    for name in selected:
        table.add_column(name.replace("_", " ").title(), overflow="fold")
    for hit in result.hits:
        table.add_row(hit.name, f"{hit.score:.3f}", *(hit.fields.get(name, "") for name in selected))
    console.print(table)


@app.command("delete", help="Remove the index store.")
def delete_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    index_path = state.config.indexer.index_path
    if not yes and not typer.confirm(f"Delete the index at {index_path}?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    if state.orchestrator.delete_index():
        console.print(f"Removed index at {index_path}.", style="green")
    else:
        console.print(f"No index found at {index_path}.", style="yellow")


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(f"# {state.repository.path}", style="dim")
    console.print(
        yaml.safe_dump(state.config.model_dump(mode="json"), allow_unicode=True, sort_keys=False),
        markup=False,
        highlight=False,
    )


@log_app.command("tail", help="Show the last lines of the indexer log.")
def log_tail(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.logs_dir / INDEXER_LOG
    entries = tail_log(path, lines)
    if not entries:
        console.print("Log is empty.", style="dim")
        return
    for entry in entries:
        console.print(entry.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
