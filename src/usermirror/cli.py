"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .appctx import AppContext
from .errors import SettingsError, StoreError, SyncError, UserMirrorError, UserNotFoundError
from .domain.models import UserQuery, UserRecord
from .settings.manager import SettingsManager
from .utils.logging import PACKAGE_LOGGER, ensure_console_logger

app = typer.Typer(help="Offline-first mirror of a remote user directory")
console = Console()


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (SyncError, StoreError, UserNotFoundError, SettingsError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except UserMirrorError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


@app.callback()
def main(
    ctx: typer.Context,
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings JSON file"),
    db: Optional[Path] = typer.Option(None, "--db", help="Override the database location"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
) -> None:
    """Configure logging and remember where settings live."""

    if verbose:
        ensure_console_logger(logging.getLogger(PACKAGE_LOGGER), "usermirror-cli", level=logging.DEBUG)
    ctx.obj = {"settings_path": settings_path, "db": db, "app": None}


def _context(ctx: typer.Context) -> AppContext:
    state = ctx.ensure_object(dict)
    if state.get("app") is None:
        try:
            settings = SettingsManager(path=state.get("settings_path"))
            settings.load()
            app_ctx = AppContext(settings=settings, db_path=state.get("db"))
        except (SettingsError, StoreError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        state["app"] = app_ctx
        ctx.call_on_close(app_ctx.close)
    return state["app"]


def _users_table(users: Iterable[UserRecord], title: Optional[str] = None) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Username")
    table.add_column("Email")
    table.add_column("City")
    for user in users:
        table.add_row(str(user.id), user.name, user.username, user.email, user.address.city)
    return table


def _dump(payload) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
@_handle_errors
def sync(ctx: typer.Context) -> None:
    """Fetch the remote directory and replace the local mirror."""

    result = _context(ctx).sync_engine.refresh()
    print(f"[green]Synced {result.count} users at {result.synced_at.isoformat()}")


@app.command("list")
@_handle_errors
def list_users(
    ctx: typer.Context,
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by name or email"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="1-based page number"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Print one page of the cached users."""

    app_ctx = _context(ctx)
    size = app_ctx.page_size
    users = app_ctx.repository.page(query, size, (page - 1) * size)
    if as_json:
        _dump([user.to_dict() for user in users])
        return
    total = app_ctx.repository.count(UserQuery(term=query))
    console.print(_users_table(users, title=f"Users - page {page} ({total} matching)"))


@app.command()
@_handle_errors
def show(
    ctx: typer.Context,
    user_id: int = typer.Argument(..., help="User id"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show every cached field of one user."""

    detail = _context(ctx).create_detail_viewmodel()
    failures: list[str] = []
    stop_listening = detail.error_occurred.connect(failures.append)
    try:
        user = detail.load(user_id)
    finally:
        stop_listening()
        detail.dispose()
    if failures:
        raise StoreError(failures[0])
    if user is None:
        raise UserNotFoundError(f"No cached user with id {user_id}")
    if as_json:
        _dump(user.to_dict())
        return
    print(f"[bold]{user.name}[/bold] (@{user.username}) #{user.id}")
    print(f"  Email:    {user.email}")
    print(f"  Phone:    {user.phone}")
    print(f"  Website:  {user.website}")
    print(
        f"  Address:  {user.address.street}, {user.address.suite}, "
        f"{user.address.city} {user.address.zipcode} "
        f"({user.address.geo.lat}, {user.address.geo.lng})"
    )
    print(f"  Company:  {user.company.name} - {user.company.catch_phrase} ({user.company.bs})")
    if user.last_synced_at:
        print(f"  Synced:   {user.last_synced_at.isoformat()}")


@app.command()
@_handle_errors
def status(ctx: typer.Context) -> None:
    """Report what the local mirror holds."""

    app_ctx = _context(ctx)
    count = app_ctx.repository.count(UserQuery())
    synced = app_ctx.repository.last_synced_at()
    print(
        f"Database:    {app_ctx.db_path}\n"
        f"Users:       {count}\n"
        f"Last synced: {synced.isoformat() if synced else 'never'}"
    )


@app.command()
@_handle_errors
def browse(
    ctx: typer.Context,
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by name or email"),
    pages: int = typer.Option(0, "--pages", min=0, help="Load this many pages after the first paint"),
    refresh: bool = typer.Option(True, "--refresh/--offline", help="Try a remote sync first"),
    timeout: float = typer.Option(60.0, "--timeout", help="Seconds to wait for background work"),
) -> None:
    """Drive the list view once and print the resulting state."""

    app_ctx = _context(ctx)
    app_ctx.error_handler.register_ui_callback(
        lambda message, severity: typer.echo(f"{severity.value.upper()}: {message}", err=True)
    )
    vm = app_ctx.create_list_viewmodel(autostart=False)
    try:
        vm.set_query(query)
        if refresh:
            vm.refresh()
        vm.wait_idle(timeout)
        for _ in range(pages):
            if vm.load_more() is None:
                break
            vm.wait_idle(timeout)
        state = vm.state.value
    finally:
        vm.dispose()

    if state.fatal_error:
        typer.echo(f"Error: {state.fatal_error}", err=True)
        raise typer.Exit(1)
    if state.degraded_error:
        print(f"[yellow]{state.degraded_error}; showing cached users")
    console.print(_users_table(state.users, title=f"{len(state.users)} users"))
    if state.end_reached:
        print("[dim]End of list")


if __name__ == "__main__":  # pragma: no cover
    app()
