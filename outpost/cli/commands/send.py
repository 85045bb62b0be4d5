"""``outpost send`` / ``outpost relay`` — forward events to every enabled output.

``send`` reads a single JSON event; ``relay`` reads newline-delimited JSON
events until end of input.  Both print the per-destination statistics
when done.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from prometheus_client import CollectorRegistry
from prometheus_client.core import REGISTRY
from pydantic import ValidationError
from rich.console import Console

from outpost.cli.renderer import StatsRenderer
from outpost.config import OutpostSettings
from outpost.core.metrics import MetricsEmitter, PrometheusBackend, serve_metrics
from outpost.core.stats import Statistics
from outpost.models.event import SecurityEvent
from outpost.outputs.dispatcher import DispatcherConfigError, OutputDispatcher

logger = logging.getLogger(__name__)

console = Console()


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.is_file():
        console.print(f"[bold red]Event file not found:[/bold red] {source}")
        raise typer.Exit(code=1)
    return path.read_text(encoding="utf-8")


@contextmanager
def _dispatcher(
    settings: OutpostSettings, stats: Statistics, registry: CollectorRegistry
) -> Iterator[OutputDispatcher]:
    """Build the dispatcher and its metrics pipeline; exit 1 on bad config."""
    with MetricsEmitter(
        PrometheusBackend(registry), maxsize=settings.metrics_queue_size
    ) as metrics:
        try:
            dispatcher = OutputDispatcher.from_config(settings, stats, metrics)
        except DispatcherConfigError as exc:
            console.print(f"[bold red]Configuration error:[/bold red] {exc}")
            raise typer.Exit(code=1) from exc

        with dispatcher:
            if not dispatcher.outputs:
                console.print("[bold red]No outputs enabled.[/bold red]")
                console.print("[dim]Run 'outpost outputs' to inspect the configuration.[/dim]")
                raise typer.Exit(code=1)
            yield dispatcher


def send_cmd(
    event_file: str = typer.Argument(
        "-",
        help="Path to a JSON event, or '-' to read from stdin.",
    ),
) -> None:
    """Forward one event to every enabled output."""
    raw = _read_source(event_file)
    try:
        event = SecurityEvent.model_validate_json(raw)
    except ValidationError as exc:
        console.print(f"[bold red]Invalid event:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    settings = OutpostSettings()
    stats = Statistics()
    with _dispatcher(settings, stats, CollectorRegistry()) as dispatcher:
        dispatcher.dispatch(event)

    StatsRenderer(console=console).print_stats(stats.snapshot())


def relay_cmd(
    source: str = typer.Argument(
        "-",
        help="Path to a file of newline-delimited JSON events, or '-' for stdin.",
    ),
) -> None:
    """Forward a stream of events (one JSON object per line)."""
    stream = sys.stdin if source == "-" else None
    if stream is None and not Path(source).is_file():
        console.print(f"[bold red]Event file not found:[/bold red] {source}")
        raise typer.Exit(code=1)

    settings = OutpostSettings()
    stats = Statistics()

    registry = CollectorRegistry()
    if settings.enable_metrics:
        registry = REGISTRY
        serve_metrics(stats, settings.metrics_port, registry=registry)

    relayed = 0
    rejected = 0
    with _dispatcher(settings, stats, registry) as dispatcher:
        handle = stream or open(source, encoding="utf-8")
        try:
            for lineno, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    event = SecurityEvent.model_validate_json(line)
                except ValidationError as exc:
                    rejected += 1
                    logger.error("Line %d: invalid event: %s", lineno, exc)
                    continue
                dispatcher.dispatch(event)
                relayed += 1
        finally:
            if handle is not sys.stdin:
                handle.close()

    console.print(f"[bold]Relayed:[/bold] {relayed}  [bold]Rejected:[/bold] {rejected}")
    StatsRenderer(console=console).print_stats(stats.snapshot())
