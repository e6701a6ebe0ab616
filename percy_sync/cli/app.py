"""Main Typer application — imports and registers all CLI commands.

Entry point: ``percy-sync`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from percy_sync.cli.commands.env_cmd import env_cmd
from percy_sync.cli.commands.upload import upload_cmd

app = typer.Typer(
    name="percy-sync",
    help="percy-sync: upload static builds for visual comparison.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="env", help="Show the CI and commit context for this build.")(env_cmd)
app.command(name="upload", help="Upload a directory of static assets as a build.")(upload_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
