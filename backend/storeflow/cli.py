# Overview: Flask CLI command groups for bootstrap, user inspection and demand notice maintenance.

# backend/storeflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "storeflow:create_app" (PowerShell: $env:FLASK_APP="storeflow:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-username admin] [--admin-password "Password123!"]
#   Idempotent: creates tables, the commission setting row and a default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role salesperson]
# - python -m flask users create --username sam --password "Password123!" --role salesperson
#   Managers take capabilities: --permission manage_orders --permission view_reports
#
# Demand notices:
# - python -m flask demand-notices sync-stock [--product-id 12]
#   Re-derive open notice statuses from current stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import demand_notice_service, settings_service
from .services.auth_service import create_user, list_users
from .statuses import UserRole
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the default admin')
@click.option('--admin-password', default='Password123!', help='Password of the default admin')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Initialize the database and a default admin.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing storeflow...")

    db.create_all()
    click.echo("PASS Tables created")

    settings_service.get_commission_setting()
    click.echo("PASS Commission setting ready")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(username=admin_username, password=admin_password, role=UserRole.ADMIN.value)
            click.echo(f"PASS Created admin user: {admin_username}")
        except ValidationError as e:
            click.echo(f"FAIL Failed to create admin '{admin_username}': {str(e)}")

    click.echo("DONE storeflow initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping every table')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=None)
@with_appcontext
def list_users_cli(role):
    """List users with role and active status."""
    users = list_users(role=role)
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<14} {'Active':<8} {'Permissions'}")
    click.echo("=" * 72)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        perms = ", ".join(user.permissions or []) or "-"
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<14} {active_str:<8} {perms}")
    click.echo("=" * 72 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), prompt=True, help='Role')
@click.option('--permission', 'permissions', multiple=True, help='Manager capability (repeatable)')
@with_appcontext
def create_user_cli(username, password, role, permissions):
    """Create a user."""
    try:
        user = create_user(username=username, password=password, role=role, permissions=list(permissions))
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, role: {user.role})")


# =============================================================================
# DEMAND NOTICE COMMANDS
# =============================================================================

@click.group('demand-notices')
def demand_notices_group():
    """Demand notice maintenance commands."""


@demand_notices_group.command('sync-stock')
@click.option('--product-id', type=int, default=None, help='Only notices of this product')
@with_appcontext
def sync_stock_cli(product_id):
    """Re-derive open notice statuses from current stock."""
    try:
        changed = demand_notice_service.sync_stock_status(product_id)
    except NotFoundError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    for notice in changed:
        click.echo(f"PASS {notice.document_number}: {notice.status} ({notice.quantity_fulfilled}/{notice.quantity_requested})")
    click.echo(f"DONE {len(changed)} demand notice(s) updated")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(demand_notices_group)
