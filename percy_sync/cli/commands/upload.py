"""``percy-sync upload DIR`` — sync a directory of static assets as a build.

Gathers every file under DIR as a resource, creates a build, uploads the
resources the service is missing, registers one snapshot per HTML page
(optional), and finalizes the build.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel

from percy_sync.api.errors import ApiError
from percy_sync.client import PercyClient
from percy_sync.config import ClientSettings, load_env_files
from percy_sync.core.walker import gather_build_resources
from percy_sync.logging_config import configure_logging
from percy_sync.models.build import BuildSession
from percy_sync.models.resource import Resource

console = Console()

_HTML_SUFFIXES = (".html", ".htm")


def _snapshot_id(body: Any) -> str | None:
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict) or data.get("id") in (None, ""):
        return None
    return str(data["id"])


def _snapshot_resources(page: Resource, assets: list[Resource]) -> list[Resource]:
    return [page.model_copy(update={"is_root": True}), *assets]


def upload_cmd(
    root_dir: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Directory of compiled static assets.",
    ),
    base_url: str = typer.Option(
        "",
        "--base-url",
        "-b",
        help="URL path prefix for every resource, e.g. /assets.",
    ),
    skip: list[str] = typer.Option(
        [],
        "--skip",
        "-s",
        help="Regex of resource URLs to leave out. Repeatable.",
    ),
    widths: list[int] = typer.Option(
        [],
        "--width",
        "--widths",
        "-w",
        help="Viewport width to render snapshots at. Repeatable.",
    ),
    snapshot_name: str = typer.Option(
        None,
        "--snapshot-name",
        "-n",
        help="Prefix for snapshot names; each is named <prefix><page URL>.",
    ),
    minimum_height: int = typer.Option(
        None,
        "--min-height",
        help="Minimum snapshot height in pixels.",
    ),
    enable_javascript: bool = typer.Option(
        False,
        "--enable-javascript/--no-enable-javascript",
        help="Run JavaScript when rendering snapshots.",
    ),
    snapshots: bool = typer.Option(
        True,
        "--snapshots/--no-snapshots",
        help="Create one snapshot per HTML file.",
    ),
    all_shards: bool = typer.Option(
        False,
        "--all-shards",
        help="Finalize every shard of a parallel build.",
    ),
    token: str = typer.Option(
        None,
        "--token",
        envvar="PERCY_TOKEN",
        help="Project token.",
    ),
) -> None:
    """Upload DIR as a build and finalize it."""
    load_env_files()
    settings = ClientSettings()
    configure_logging(settings.log_level)

    resources = gather_build_resources(
        root_dir,
        base_url_path=base_url,
        skipped_path_regexes=skip,
    )
    if not resources:
        console.print(f"[yellow]No resources found under[/yellow] {root_dir}")
        raise typer.Exit(code=1)

    try:
        client = PercyClient(token=token, settings=settings)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    pages = [r for r in resources if r.resource_url.lower().endswith(_HTML_SUFFIXES)]
    assets = [r for r in resources if r not in pages]

    try:
        with client:
            response = client.create_build(resources=resources)
            build = BuildSession.from_response(response.body or {}, resources)
            uploaded = client.upload_missing_resources(build.build_id, response, resources)

            snapshot_count = 0
            if snapshots:
                for page in pages:
                    page_resources = _snapshot_resources(page, assets)
                    snapshot = client.create_snapshot(
                        build.build_id,
                        page_resources,
                        name=f"{snapshot_name or ''}{page.resource_url}",
                        widths=widths or None,
                        minimum_height=minimum_height,
                        enable_javascript=enable_javascript,
                    )
                    client.upload_missing_resources(build.build_id, snapshot, page_resources)
                    snapshot_id = _snapshot_id(snapshot.body)
                    if snapshot_id is None:
                        console.print(
                            f"[bold red]Snapshot response has no id[/bold red] for {page.resource_url}"
                        )
                        raise typer.Exit(code=1)
                    client.finalize_snapshot(snapshot_id)
                    snapshot_count += 1

            client.finalize_build(build.build_id, all_shards=all_shards)
            build.finalized = True
    except ApiError as exc:
        console.print(
            f"[bold red]Request failed[/bold red] (status {exc.status_code}): {exc.message}"
        )
        if exc.body is not None:
            console.print(exc.body)
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            "\n".join([
                "[bold green]Build finalized[/bold green]",
                "",
                f"[bold]Build ID:[/bold]   {build.build_id}",
                f"[bold]Resources:[/bold]  {len(build.resources)} ({len(uploaded)} uploaded)",
                f"[bold]Snapshots:[/bold]  {snapshot_count}",
                f"[bold]URL:[/bold]        {build.web_url or '-'}",
            ]),
            title="[bold]percy-sync[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
