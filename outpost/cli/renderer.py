"""Rich terminal rendering for delivery statistics and configured outputs.

Color scheme
------------
- green  : ok counts, enabled outputs
- red    : error counts
- dim    : disabled / unconfigured outputs
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from outpost.config import OutpostSettings
    from outpost.core.stats import CounterSnapshot


class StatsRenderer:
    """Renders counters and output configuration as Rich tables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_stats(self, snapshot: dict[str, CounterSnapshot]) -> Table:
        table = Table(title="Delivery Statistics")
        table.add_column("Destination", style="cyan")
        table.add_column("Total", justify="right")
        table.add_column("OK", justify="right", style="green")
        table.add_column("Error", justify="right")

        for destination, counters in snapshot.items():
            error = (
                f"[bold red]{counters.error}[/bold red]"
                if counters.error
                else str(counters.error)
            )
            table.add_row(destination, str(counters.total), str(counters.ok), error)
        return table

    def render_outputs(self, settings: OutpostSettings) -> Table:
        table = Table(title="Configured Outputs")
        table.add_column("Output", style="cyan")
        table.add_column("Enabled", justify="center")
        table.add_column("Address")
        table.add_column("Minimum Priority")

        for name in ("elasticsearch", "mqtt", "webhook"):
            destination = getattr(settings, name)
            enabled = (
                "[green]Yes[/green]" if destination.is_enabled else "[dim]No[/dim]"
            )
            address = destination.address or "[dim]-[/dim]"
            table.add_row(name, enabled, address, destination.minimum_priority.value)
        return table

    def print_stats(self, snapshot: dict[str, CounterSnapshot]) -> None:
        if not snapshot:
            self.console.print("[dim]No delivery attempts recorded.[/dim]")
            return
        self.console.print(self.render_stats(snapshot))

    def print_outputs(self, settings: OutpostSettings) -> None:
        self.console.print(self.render_outputs(settings))
