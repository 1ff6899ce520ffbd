# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/storeledger/cli.py
# Commands Legend (run from the repository root):
# - flask --app storeledger init-db
#   Create all tables (idempotent). Use `flask --app storeledger db upgrade` for migrations.
# - flask --app storeledger admins create --username boss --email boss@store.ma --name "Boss" --role super_admin --password "Password123!"
#   Create a back-office admin (prompts if options are omitted).
# - flask --app storeledger admins list
#   List admins with role and active status.
# - flask --app storeledger inventory valuation
#   Total stock value across the catalogue (weighted average cost).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .roles import AdminRole
from .services.auth_service import create_admin, list_admins
from .services.costing_service import get_inventory_valuation


@click.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('admins')
def admins_group():
    """Back-office admin accounts."""


@admins_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice([r.value for r in AdminRole]), prompt=True, help='Role')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(username, email, name, role, password):
    """
    Create an admin account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        admin = create_admin(username=username, email=email, name=name, role=role, password=password)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin: {admin.username} ({admin.email}) with role '{admin.role}'")


@admins_group.command('list')
@with_appcontext
def list_admins_cli():
    """List all admins."""
    admins = list_admins()
    if not admins:
        click.echo("No admins found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<14} {'Active'}")
    click.echo("="*80)
    for admin in admins:
        active_str = "Yes" if admin.is_active else "No"
        click.echo(f"{admin.id:<5} {admin.username:<20} {admin.email:<30} {admin.role:<14} {active_str}")
    click.echo("="*80 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory reports."""


@inventory_group.command('valuation')
@with_appcontext
def valuation_cli():
    """Show total stock value at weighted average cost."""
    valuation = get_inventory_valuation()
    currency = current_app.config.get("CURRENCY", "MAD")
    click.echo(f"Products:    {valuation['product_count']}")
    click.echo(f"Units:       {valuation['total_units']}")
    click.echo(f"Stock value: {valuation['total_stock_value']} {currency}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(init_db)
    app.cli.add_command(admins_group)
    app.cli.add_command(inventory_group)
