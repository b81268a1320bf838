"""Thin CLI wrapper for appgen.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

from appgen import __version__
from appgen.config import configure_logging, get_settings, print_settings_json

if TYPE_CHECKING:
    from appgen.builds.service import BuildService

app = typer.Typer(
    name="appgen",
    help="App Generation Server - create builds and download generated apps",
    no_args_is_help=True,
)
console = Console()


STATUS_COLORS = {
    "completed": "green",
    "failed": "red",
    "active": "blue",
    "waiting": "yellow",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"appgen version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level"),
    ] = None,
) -> None:
    """App Generation Server - create builds and download generated apps."""
    configure_logging(log_level.upper() if log_level else None)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Artifacts directory: {settings.artifacts_dir}")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Background jobs:[/bold]")
        console.print(f"  Mode:                {settings.background_mode}")
        console.print(f"  Base URL:            {settings.background_base_url}")
        console.print(f"  Timeout (seconds):   {settings.background_timeout}")
        console.print(f"  Max workers:         {settings.max_background_workers}")


@contextmanager
def _build_service() -> Iterator["BuildService"]:
    """Open a session and yield an assembled BuildService.

    Queued background jobs are drained before the context exits.
    """
    from appgen.builds.jobs import create_background_service, create_build_service
    from appgen.db import create_all_tables, get_engine, get_session_factory

    settings = get_settings()
    engine = get_engine(settings.db_url)
    create_all_tables(engine)
    factory = get_session_factory(engine)
    background = create_background_service(settings, factory)

    try:
        with factory() as session:
            yield create_build_service(session, settings, background)
    finally:
        background.shutdown(wait=True)
        engine.dispose()


def _print_build(build_data: dict) -> None:
    color = STATUS_COLORS.get(build_data["status"], "white")
    console.print(f"  [{color}]Build {build_data['id']}[/{color}]")
    console.print(f"    App: {build_data['app_id']}")
    console.print(f"    User: {build_data['user_id']}")
    console.print(f"    Version: {build_data['version']}")
    console.print(f"    Status: {build_data['status']}")
    console.print(f"    Created: {build_data['created_at'] or 'N/A'}")
    if build_data["message"]:
        console.print(f"    Message: {build_data['message']}")
    console.print()


builds_app = typer.Typer(help="Create, run and download builds")
app.add_typer(builds_app, name="builds")


@builds_app.command("list")
def builds_list(
    app_id: Annotated[
        str | None,
        typer.Option("--app", "-a", help="Filter by app ID"),
    ] = None,
    user_id: Annotated[
        str | None,
        typer.Option("--user", "-u", help="Filter by user ID"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option(
            "--status", "-s", help="Filter by status (waiting/active/completed/failed)"
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List build records."""
    from appgen.builds.service import build_to_dict
    from appgen.types import BuildStatus

    status_filter: BuildStatus | None = None
    if status:
        try:
            status_filter = BuildStatus(status)
        except ValueError:
            console.print(f"[red]Invalid status: {status}[/red]")
            console.print("Valid values: waiting, active, completed, failed")
            raise typer.Exit(code=1) from None

    with _build_service() as service:
        builds = [
            build_to_dict(b)
            for b in service.find_many(
                app_id=app_id, user_id=user_id, status=status_filter, limit=limit
            )
        ]

    if not builds:
        if json_output:
            console.print("[]")
        else:
            console.print("[yellow]No build records found[/yellow]")
        return

    if json_output:
        console.print(json.dumps(builds, indent=2), soft_wrap=True)
    else:
        console.print(f"[bold]Found {len(builds)} build(s):[/bold]")
        console.print()
        for build_data in builds:
            _print_build(build_data)


@builds_app.command("show")
def builds_show(
    build_id: Annotated[str, typer.Argument(help="Build ID to show")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show details of a specific build."""
    from appgen.builds.service import build_to_dict

    with _build_service() as service:
        build = service.find_one(build_id)
        build_data = build_to_dict(build) if build is not None else None

    if build_data is None:
        console.print(f"[red]Build not found: {build_id}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        console.print(json.dumps(build_data, indent=2), soft_wrap=True)
    else:
        _print_build(build_data)


@builds_app.command("create")
def builds_create(
    app_id: Annotated[str, typer.Option("--app", "-a", help="App to build")],
    user_id: Annotated[str, typer.Option("--user", "-u", help="Requesting user")],
    version: Annotated[str, typer.Option("--version", "-v", help="Build version")],
    message: Annotated[
        str,
        typer.Option("--message", "-m", help="Build message"),
    ] = "",
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Create a build and queue its generation.

    With the local background mode the command waits for the generation
    job to finish before exiting.
    """
    from appgen.builds.errors import BuildServiceError
    from appgen.builds.service import BuildCreateInput, build_to_dict

    try:
        with _build_service() as service:
            build = service.create(
                BuildCreateInput(
                    user_id=user_id, app_id=app_id, version=version, message=message
                )
            )
            build_id = build.id
    except BuildServiceError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    # Re-read after the queued job had a chance to run
    with _build_service() as service:
        build = service.find_one(build_id)
        build_data = build_to_dict(build) if build is not None else {}

    if json_output:
        console.print(json.dumps(build_data, indent=2), soft_wrap=True)
    else:
        console.print("[green]Build created[/green]")
        _print_build(build_data)


@builds_app.command("run")
def builds_run(
    build_id: Annotated[str, typer.Argument(help="Waiting build to execute")],
) -> None:
    """Execute a waiting build in the foreground."""
    from appgen.builds.errors import BuildServiceError

    try:
        with _build_service() as service:
            service.build(build_id)
    except BuildServiceError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None
    except Exception as e:
        console.print(f"[red]Build {build_id} failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    console.print(f"[green]Build {build_id} completed[/green]")


@builds_app.command("download")
def builds_download(
    build_id: Annotated[str, typer.Argument(help="Completed build to download")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output file (default: <build_id>.zip)"),
    ] = None,
) -> None:
    """Download the generated app archive of a completed build."""
    from appgen.builds.errors import BuildServiceError

    destination = output or Path(f"{build_id}.zip")
    try:
        with _build_service() as service:
            stream = service.download(build_id)
            with stream, destination.open("wb") as f:
                shutil.copyfileobj(stream, f)
    except BuildServiceError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    console.print(f"[green]Saved {destination}[/green]")


if __name__ == "__main__":
    app()
