"""percy-sync CLI — Typer-based command-line interface.

Provides the ``percy-sync`` command with subcommands for inspecting the
resolved CI context and uploading a directory of static assets as a build.

All output uses Rich for formatted terminal display.
"""
