"""
CLI commands for Canvas catalog sync.

Commands:
- lms-sync init-db   : Create catalog tables
- lms-sync verify    : Verify a Canvas token and store it for a user
- lms-sync sync      : Sync a user's Canvas courses and files
- lms-sync courses   : Show the synced catalog for a user
"""
from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from config import get_settings
from lms_sync.core.logging import configure_logging
from lms_sync.db.catalog_store import SqlCatalogStore
from lms_sync.db.database import dispose_engine, get_session_factory, init_db
from lms_sync.lms.canvas_client import CanvasClient
from lms_sync.lms.errors import (
    LmsSyncError,
    MissingCredentialError,
    RemoteApiError,
    RemoteUnavailableError,
)
from lms_sync.lms.models import SyncResult
from lms_sync.lms.sync_service import CatalogSyncService

console = Console()

app = typer.Typer(
    name="lms-sync",
    help="Canvas LMS catalog synchronization",
    no_args_is_help=True,
)


def _failure_message(error: LmsSyncError) -> str:
    if isinstance(error, MissingCredentialError):
        return "No Canvas token stored. Run `lms-sync verify` first."
    if isinstance(error, RemoteApiError) and error.is_auth_error:
        return "Canvas rejected the token. Reconnect your Canvas account with `lms-sync verify`."
    if isinstance(error, RemoteUnavailableError):
        return "Canvas is unreachable. Check your connection and try again."
    return f"Canvas sync failed: {error}"


async def _with_service(action):
    """Run ``action(service)`` with a Canvas client and the app store."""
    store = SqlCatalogStore(get_session_factory())
    try:
        async with CanvasClient.from_settings() as client:
            return await action(CatalogSyncService(client=client, store=store))
    finally:
        await dispose_engine()


# ============================================================================
# COMMANDS
# ============================================================================


@app.command("init-db")
def init_db_command():
    """Create the catalog tables if they do not exist."""

    async def run():
        try:
            await init_db()
        finally:
            await dispose_engine()

    asyncio.run(run())
    console.print("[green]Catalog tables ready[/green]")


@app.command("verify")
def verify(
    user: str = typer.Option(..., "--user", "-u", help="Application user id"),
    token: str = typer.Option(..., "--token", "-t", help="Canvas access token"),
):
    """
    Verify a Canvas access token and store it for USER.

    A rejected token leaves any previously stored token in place.
    """
    try:
        valid = asyncio.run(
            _with_service(lambda service: service.verify_and_store_credential(user, token))
        )
    except LmsSyncError as e:
        console.print(f"[red]{_failure_message(e)}[/red]")
        raise typer.Exit(code=1)

    if not valid:
        console.print("[red]Canvas rejected this token.[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Canvas account connected for {user}[/green]")


@app.command("sync")
def sync(
    user: str = typer.Option(..., "--user", "-u", help="Application user id"),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Canvas access token (defaults to the stored one)"
    ),
):
    """
    Pull new Canvas courses and files into the catalog.

    Examples:
        lms-sync sync -u alice             # Use stored token
        lms-sync sync -u alice -t 1234~ab  # Use an explicit token
    """

    async def action(service: CatalogSyncService) -> SyncResult:
        if token:
            return await service.sync_courses(user, token)
        return await service.sync_with_stored_credential(user)

    try:
        with console.status("Syncing Canvas catalog..."):
            result = asyncio.run(_with_service(action))
    except LmsSyncError as e:
        console.print(f"[red]{_failure_message(e)}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Canvas Sync", box=box.ROUNDED)
    table.add_column("Entity", style="cyan")
    table.add_column("Added", justify="right", style="green")
    table.add_row("Courses", str(result.courses_added))
    table.add_row("Files", str(result.files_added))
    console.print(table)


@app.command("courses")
def courses(
    user: str = typer.Option(..., "--user", "-u", help="Application user id"),
):
    """Show the synced courses and file counts for USER."""

    async def run():
        store = SqlCatalogStore(get_session_factory())
        try:
            rows = []
            for course in await store.list_courses(user):
                rows.append((course, len(await store.list_files(course.id))))
            return rows
        finally:
            await dispose_engine()

    rows = asyncio.run(run())
    if not rows:
        console.print("[dim]No courses synced yet[/dim]")
        return

    table = Table(title=f"Courses for {user}", box=box.ROUNDED)
    table.add_column("Course", style="cyan")
    table.add_column("Canvas ID", style="dim")
    table.add_column("Files", justify="right")
    for course, file_count in rows:
        table.add_row(course.name, course.canvas_id or "-", str(file_count))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings(), level="WARNING")
    app()


if __name__ == "__main__":
    main()
