# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/toolcrib/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; migrations are preferred in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name alice --password "secret1" --role admin
#   Create a user (prompts if options are omitted). The only way to create user-admin accounts.
#
# Catalog inspection:
# - python -m flask items list [--status Outside]
#   List items, optionally filtered by status.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired/revoked sessions.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models.catalog import ITEM_STATUSES
from .permissions import ROLES
from .services import auth_service, catalog_service, maintenance_service, user_service
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the transaction ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an admin.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Login name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, password, role):
    """Create a user with any role (bypasses HTTP role rules)."""
    try:
        user = auth_service.create_user(name, password, role)
    except ServiceError as e:
        raise click.ClickException(f"FAIL {e.message}")

    click.echo(f"PASS Created user: {user.name} (ID: {user.id}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Role':<12} {'Active':<8}")
    click.echo("="*70)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<30} {user.role:<12} {active_str:<8}")

    click.echo("="*70 + "\n")


@click.group('items')
def items_group():
    """Catalog inspection commands."""


@items_group.command('list')
@click.option('--status', type=click.Choice(list(ITEM_STATUSES)), help='Filter by status')
@with_appcontext
def list_items_cli(status):
    """List items with their current status and holder."""
    items = catalog_service.list_items(status=status)

    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Code':<12} {'Name':<30} {'Category':<15} {'Status':<8} {'Holder':<20} {'Updated'}")
    click.echo("="*100)

    for item in items:
        holder = item.checkout_person or "-"
        click.echo(
            f"{item.code:<12} {item.name[:30]:<30} {item.category[:15]:<15} "
            f"{item.status:<8} {holder[:20]:<20} {to_utc_z(item.last_updated)}"
        )

    click.echo("="*100 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Data retention and cleanup commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired and revoked sessions."""
    deleted = maintenance_service.cleanup_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(maintenance_group)
