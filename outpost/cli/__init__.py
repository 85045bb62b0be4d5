"""Outpost CLI — Typer-based command-line interface.

Provides the ``outpost`` command with subcommands for forwarding one event,
relaying a stream of events, and listing configured outputs.

All output uses Rich for formatted terminal display.
"""
