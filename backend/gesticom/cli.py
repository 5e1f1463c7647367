# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/gesticom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users create --name "Ana" --rut 11.111.111-1 --email ana@tienda.cl --password "clave1234" --role owner
#   Create a user (prompts if options are omitted).
#
# Permission inspection:
# - python -m flask perms list --role worker
#   List permissions granted to each role.
#
# Notifications:
# - python -m flask notifications evaluate
#   Re-evaluate stock thresholds for every product.

import click
from flask.cli import with_appcontext

from .errors import GestiComError
from .extensions import db
from .models import User
from .models.auth import ROLE_OWNER, ROLE_WORKER
from .permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSION_DEFINITIONS
from .services import notification_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an owner.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Full name')
@click.option('--rut', prompt=True, help='RUT, e.g. 12.345.678-5')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_OWNER, ROLE_WORKER]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, rut, email, password, role):
    """Create a new user. The first owner must be created this way."""
    try:
        user = user_service.create_user(name=name, national_id=rut, email=email, password=password, role=role)
    except GestiComError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and status."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'RUT':<14} {'Email':<30} {'Role':<8} {'Status'}")
    click.echo("="*100)

    for user in users:
        click.echo(
            f"{user.id:<5} {user.name:<25} {user.national_id:<14} {user.email:<30} {user.role:<8} {user.status}"
        )

    click.echo("="*100 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice([ROLE_OWNER, ROLE_WORKER]), help='Filter by role')
@click.option('--category', help='Filter by category')
def list_permissions_cli(role, category):
    """List permissions, optionally filtered by role or category."""
    granted = set(DEFAULT_ROLE_PERMISSIONS[role]) if role else None

    for code, name, description, perm_category in PERMISSION_DEFINITIONS:
        if category and perm_category != category.upper():
            continue
        if granted is not None and code not in granted:
            continue
        click.echo(f"{perm_category:<14} {code:<22} {description}")


@click.group('notifications')
def notifications_group():
    """Notification maintenance commands."""


@notifications_group.command('evaluate')
@with_appcontext
def evaluate_notifications():
    """Re-evaluate stock thresholds for every product."""
    result = notification_service.evaluate_thresholds()
    click.echo(f"PASS Stock alerts created: {result.created}, archived: {result.archived}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(notifications_group)
