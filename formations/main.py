"""
Main application entry point for formations.

Provides a CLI over the formation listing, detail and token operations.
"""

import sys
import traceback
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from formations.cli_commands.doctor import doctor
from formations.core.config import (
    get_settings,
    print_configuration_summary,
    validate_required_settings,
)
from formations.core.exceptions import AuthenticationError, FormationsError
from formations.core.logging import set_correlation_id, setup_logging
from formations.core.models import FormationDetail, FormationPage
from formations.data.auth_client import AuthClient, SessionStore
from formations.data.backend_client import BackendClient
from formations.services import FormationService, TokenService

console = Console()

LISTING_COLUMNS = ("id", "etablissement", "filiere", "ville", "departement", "voie")


def _backend() -> BackendClient:
    settings = get_settings()
    return BackendClient(settings.backend, timeout=settings.request_timeout)


def _session_store() -> SessionStore:
    return SessionStore(get_settings().session_path)


def _fail(ctx, label: str, error: Exception) -> None:
    console.print(f"[red]{label}:[/red] {error}")
    if ctx.obj and ctx.obj.get("debug"):
        console.print(traceback.format_exc())
    sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines instead of rich output")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, json_logs: bool, correlation_id: Optional[str]):
    """Browse formations, read their notes and manage your tokens."""
    ctx.ensure_object(dict)

    setup_logging(debug=debug, rich_output=not json_logs)

    if correlation_id:
        set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug
    ctx.obj["correlation_id"] = correlation_id


main.add_command(doctor)


@main.command()
@click.option("--email", prompt=True, help="Account email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx, email: str, password: str):
    """Sign in and remember the session."""
    try:
        with _backend() as backend:
            session = AuthClient(backend).sign_in_with_password(email, password)
        _session_store().save(session)
        console.print(f"[green]Signed in as {email}[/green]")
    except FormationsError as e:
        _fail(ctx, "Sign-in Error", e)


@main.command()
@click.pass_context
def logout(ctx):
    """Sign out and forget the stored session."""
    store = _session_store()
    session = store.load()
    if session is not None:
        with _backend() as backend:
            AuthClient(backend).sign_out(session)
    store.clear()
    console.print("[green]Signed out[/green]")


@main.command(name="list")
@click.option("--page", type=int, default=1, show_default=True, help="Page number (1-based)")
@click.option("--page-size", type=int, default=50, show_default=True, help="Rows per page")
@click.option("--search", help="Free-text search on institution, program and city")
@click.option("--type", "types", multiple=True, help="Track category (repeatable)")
@click.option("--autre", help="Catch-all track category")
@click.option("--departement", help="Exact department")
@click.option("--ville", help="Exact city")
@click.option("--sort-by", help="Column to sort by")
@click.option(
    "--sort-direction",
    type=click.Choice(["asc", "desc"]),
    default="desc",
    show_default=True,
)
@click.pass_context
def list_formations(
    ctx,
    page: int,
    page_size: int,
    search: Optional[str],
    types: Tuple[str, ...],
    autre: Optional[str],
    departement: Optional[str],
    ville: Optional[str],
    sort_by: Optional[str],
    sort_direction: str,
):
    """List formations matching the filters."""
    filters = {
        "search": search,
        "type": list(types),
        "autre": autre,
        "departement": departement,
        "ville": ville,
    }
    try:
        with _backend() as backend:
            result = FormationService(backend).list_formations(
                page=page,
                page_size=page_size,
                filters=filters,
                sort_by=sort_by,
                sort_direction=sort_direction,
                session=_session_store().load(),
            )
        _display_page(result)
    except FormationsError as e:
        _fail(ctx, "Listing Error", e)


@main.command()
@click.argument("formation_id", type=int)
@click.pass_context
def show(ctx, formation_id: int):
    """Show one formation with its notes when unlocked."""
    try:
        with _backend() as backend:
            detail = FormationService(backend).get_formation(
                formation_id, session=_session_store().load()
            )
        _display_detail(detail)
    except FormationsError as e:
        _fail(ctx, "Formation Error", e)


@main.command()
@click.pass_context
def tokens(ctx):
    """Show the signed-in user's token balance."""
    with _backend() as backend:
        balance = TokenService(backend).get_user_tokens(session=_session_store().load())
    console.print(f"Tokens: [bold]{balance}[/bold]")


@main.command(name="use-token")
@click.argument("formation_id", type=int)
@click.pass_context
def use_token(ctx, formation_id: int):
    """Spend one token to unlock a formation's notes."""
    try:
        with _backend() as backend:
            result = TokenService(backend).use_token(
                formation_id, session=_session_store().load()
            )
        console.print("[green]Token used[/green]")
        console.print(result)
    except AuthenticationError as e:
        console.print(f"[red]Authentication Error:[/red] {e}. Run 'formations login' first.")
        sys.exit(1)
    except FormationsError as e:
        _fail(ctx, "Token Error", e)


@main.command()
def config():
    """Display current configuration."""
    console.print("[blue]Formations Configuration[/blue]")

    missing = validate_required_settings()
    if missing:
        console.print("[red]Configuration Issues:[/red]")
        for item in missing:
            console.print(f"  • Missing: {item}")
        console.print()
    else:
        console.print("[green]Configuration Valid[/green]")
        console.print()

    print_configuration_summary()
    sys.exit(0 if not missing else 1)


def _display_page(result: FormationPage) -> None:
    table = Table(title=f"Formations (page {result.page})")
    for column in LISTING_COLUMNS:
        table.add_column(column, style="cyan" if column == "id" else "white")

    for formation in result.data:
        row = formation.model_dump()
        table.add_row(*(str(row.get(column) or "") for column in LISTING_COLUMNS))

    console.print(table)
    total = result.count if result.count is not None else "?"
    console.print(f"{len(result.data)} shown, {total} total")


def _display_detail(detail: FormationDetail) -> None:
    table = Table(title=f"Formation {detail.id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    for key, value in detail.model_dump(exclude={"notes", "locked", "error"}).items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)

    if detail.locked:
        console.print("[yellow]Notes locked[/yellow]")
        if detail.error:
            console.print(f"  {detail.error}")
    else:
        console.print("[bold]Notes:[/bold]")
        console.print(detail.notes)


if __name__ == "__main__":
    main()
