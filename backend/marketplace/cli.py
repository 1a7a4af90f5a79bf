# Overview: Flask CLI command groups for bootstrap and account administration.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# - python -m flask --app marketplace system init-db
#   Create all tables (idempotent).
# - python -m flask --app marketplace system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app marketplace accounts create-admin --email admin@marketplace.local --password "Password123"
#   Create a verified admin account (prompts if options are omitted).
# - python -m flask --app marketplace accounts list [--role seller]
#   List accounts with role and verification state.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import MarketplaceError
from .models import Role
from .services.auth_service import create_admin
from .services.reporting_service import list_accounts as query_accounts


@click.group('system')
def system_group():
    """Database bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('accounts')
def accounts_group():
    """Account inspection and bootstrap commands."""


@accounts_group.command('create-admin')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def create_admin_command(email, password):
    """Create an already-verified admin account."""
    try:
        account = create_admin(email, password)
    except MarketplaceError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin {account.email} (ID: {account.id})")


@accounts_group.command('list')
@click.option('--role', type=click.Choice([role.value for role in Role]), default=None)
@with_appcontext
def list_accounts(role):
    """List accounts with role and verification state."""
    accounts = query_accounts(role)
    if not accounts:
        click.echo("No accounts found")
        return

    for account in accounts:
        state = "verified" if account.is_verified else "unverified"
        click.echo(f"{account.id:>5}  {account.role:<7} {state:<11} {account.email}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
