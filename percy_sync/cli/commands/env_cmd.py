"""``percy-sync env`` — show the resolved CI and commit context.

Useful for checking which provider was detected and where each value
came from before running an upload in CI.
"""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from percy_sync.config import load_env_files
from percy_sync.core.environment import Environment

console = Console()


def env_cmd(
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the context as JSON instead of a table.",
    ),
) -> None:
    """Print the build context resolved from the environment and git."""
    load_env_files()
    context = Environment().commit_context()

    if as_json:
        console.print_json(json.dumps(context.model_dump()))
        return

    table = Table(title="Build Context")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in context.model_dump().items():
        shown = "[dim]-[/dim]" if value is None else str(value)
        table.add_row(field, shown)
    console.print(table)
