"""
"Doctor" command: configuration and connectivity diagnostics.

Runs a series of checks and prints a concise report:
 - Config summary and required keys
 - Backend health
 - Stored session state
"""

from __future__ import annotations

import click

from formations.core.config import (
    get_settings,
    print_configuration_summary,
    validate_required_settings,
)
from formations.data.auth_client import AuthClient, SessionStore
from formations.data.backend_client import BackendClient


@click.command()
def doctor():
    """Run diagnostics and print a summary report."""
    click.echo("Formations Doctor")
    click.echo("=" * 40)

    print_configuration_summary()

    cfg = get_settings()

    missing = validate_required_settings(cfg.backend)
    if missing:
        click.echo("\n✗ Missing settings: " + ", ".join(missing))
        click.echo("  Backend calls will fail until these are set.")
    else:
        click.echo("\n✓ Required settings present")

    with BackendClient(cfg.backend, timeout=cfg.request_timeout) as backend:
        h = backend.health_check()
        if h.get("status") == "healthy":
            click.echo(f"✓ Backend healthy ({h.get('url')})")
        else:
            click.echo(f"✗ Backend unhealthy: {h.get('error', 'unknown')}")

        session = SessionStore(cfg.session_path).load()
        if session is None:
            click.echo("- No stored session (anonymous)")
        elif session.is_expired:
            click.echo("✗ Stored session expired, run 'formations login'")
        else:
            user = AuthClient(backend).get_user(session)
            if user:
                click.echo(f"✓ Signed in as {user.email or user.id}")
            else:
                click.echo("✗ Stored session rejected by the backend")

    click.echo("\nDone.")
