"""
CLI for vaultstats.

Provides command-line interface for measuring a vault once or keeping its
statistics live while it changes.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.syntax import Syntax
from rich.table import Table

from vaultstats.cli.formatters import format_metrics
from vaultstats.core.config import VaultStatsConfig, load_config
from vaultstats.core.metrics import VaultMetrics
from vaultstats.infrastructure.file_watcher import FileWatcher
from vaultstats.services import ServicesContainer, WatchService, create_services

# Initialize Rich Console
console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="vaultstats",
    help="Vault statistics - incremental word, link and tag counts for markdown vaults",
    add_completion=False,
)


def _configure_logging(config: VaultStatsConfig, verbose: bool = False) -> None:
    """Route vaultstats logs to stderr through rich."""
    logger = logging.getLogger("vaultstats")
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper(), logging.INFO)
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=err_console, show_path=False)
        handler.setFormatter(logging.Formatter(config.logging.format))
        logger.addHandler(handler)


def _load(config_path: Optional[Path], exclude: Optional[str]) -> VaultStatsConfig:
    cfg = load_config(config_path)
    if exclude is not None:
        cfg.collector.exclude_directories = exclude
    return cfg


def _validate_vault_path(path: Path) -> None:
    if not path.exists():
        raise ValueError(f"Path does not exist: {path}")
    if not path.is_dir():
        raise ValueError(f"Path is not a directory: {path}")


def _metrics_table(metrics: VaultMetrics, title: str) -> Panel:
    grid = Table.grid(padding=1)
    grid.add_column(style="bold")
    grid.add_column(justify="right")
    for label, value in format_metrics(metrics):
        grid.add_row(f"{label}:", value)
    return Panel(grid, title=title, border_style="blue", expand=False)


async def _scan(container: ServicesContainer, progress: Progress) -> None:
    collector = container.collector
    collector.restart()
    total = len(collector.backlog)
    task = progress.add_task("Measuring documents...", total=total or 1)
    while collector.backlog:
        await collector.process_backlog()
        progress.update(task, completed=total - len(collector.backlog))
    progress.update(task, completed=total or 1)


@app.command()
def scan(
    path: Path = typer.Argument(..., help="Vault directory to measure"),
    exclude: Optional[str] = typer.Option(
        None, "--exclude", "-e", help="Comma-separated top-level directories to exclude"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (.yaml, .yml or .json)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the totals as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Measure every document in a vault once and print the totals."""
    try:
        cfg = _load(config_path, exclude)
        _configure_logging(cfg, verbose)
        _validate_vault_path(path)

        container = create_services(path, config=cfg)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=err_console,
            transient=True,
            disable=json_output,
        ) as progress:
            asyncio.run(_scan(container, progress))

        metrics = container.aggregate.snapshot()
        stats = container.collector.stats

        if json_output:
            typer.echo(json.dumps(metrics.to_dict(), indent=2))
            return

        console.print(_metrics_table(metrics, f"Vault Statistics: {path}"))
        if stats.errors:
            console.print(f"[yellow]{stats.errors} documents could not be measured[/yellow]")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def watch(
    path: Path = typer.Argument(..., help="Vault directory to watch"),
    exclude: Optional[str] = typer.Option(
        None, "--exclude", "-e", help="Comma-separated top-level directories to exclude"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (.yaml, .yml or .json)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Keep the statistics of a vault live and print them whenever they settle."""
    try:
        cfg = _load(config_path, exclude)
        _configure_logging(cfg, verbose)
        _validate_vault_path(path)

        container = create_services(path, config=cfg)

        def report(metrics: VaultMetrics) -> None:
            console.print(_metrics_table(metrics, f"Vault Statistics: {path}"))

        service = WatchService(
            collector=container.collector,
            file_watcher=FileWatcher(ignore_patterns=cfg.vault.ignore_patterns),
            watch_path=path,
            config=cfg.watch,
            on_snapshot=report,
        )

        async def run() -> None:
            await service.start()
            try:
                await asyncio.Event().wait()
            finally:
                await service.stop()

        console.print(f"[bold]Watching[/bold] {path} (Ctrl+C to stop)")
        try:
            asyncio.run(run())
        except KeyboardInterrupt:
            console.print("Stopped watching.")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (.yaml, .yml or .json)"
    ),
):
    """Show the effective configuration."""
    try:
        cfg = load_config(config_path)
        console.print(Syntax(cfg.to_yaml(), "yaml", theme="ansi_dark"))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
