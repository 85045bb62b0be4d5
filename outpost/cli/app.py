"""Main Typer application — imports and registers all CLI commands.

Entry point: ``outpost`` (configured via pyproject.toml console_scripts).

Commands: send, relay, outputs.
"""

from __future__ import annotations

import logging

import typer

from outpost.cli.commands.send import relay_cmd, send_cmd

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(
    name="outpost",
    help="Outpost: forward security events to search indices, brokers and webhooks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Override OUTPOST_LOG_LEVEL and OUTPOST_DEBUG (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging before any command runs."""
    from outpost.config import OutpostSettings

    level = log_level.upper() if log_level else OutpostSettings().effective_log_level
    logging.basicConfig(level=level, format=LOG_FORMAT)


# Register subcommands
app.command(name="send", help="Forward one JSON event to every enabled output.")(send_cmd)
app.command(name="relay", help="Forward newline-delimited JSON events.")(relay_cmd)


@app.command(name="outputs", help="List configured outputs.")
def outputs_cmd() -> None:
    """Show every destination, whether it is enabled, and its address."""
    from rich.console import Console

    from outpost.cli.renderer import StatsRenderer
    from outpost.config import OutpostSettings

    StatsRenderer(console=Console()).print_outputs(OutpostSettings())


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
