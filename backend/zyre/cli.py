# Overview: Flask CLI command groups for bootstrap, users, HRMS sync and scheduled maintenance.

# backend/zyre/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email admin@zyre.local --password "Password123!"
#   Idempotent: creates roles, the default store and a SUPERADMIN user.
# - python -m flask system init-roles
#   Create default roles only (SUPERADMIN, ADMIN, USER).
#
# Users:
# - python -m flask users create --fullname "Jane Doe" --email jane@zyre.local --role ADMIN
# - python -m flask users list
#
# HRMS:
# - python -m flask psr sync
#   Pull PSRs from the HRMS and upsert new/changed rows.
#
# Maintenance (schedule these with cron):
# - python -m flask maintenance expire-batches
#   Mark past-expiry batches/items EXPIRED and write EXPIRED movements.
# - python -m flask maintenance cleanup-csrf
#   Clear CSRF tokens whose expiry has passed.

import click
from flask.cli import with_appcontext

from .errors import ConflictError, ValidationError
from .extensions import db
from .models import Role, User
from .services import expiry_service, psr_service, session_service
from .services.auth_service import create_default_roles, register_user
from .services.store_service import get_or_create_default_store


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--fullname', default='System Administrator', show_default=True)
@click.option('--email', default='admin@zyre.local', show_default=True)
@click.option('--password', default='Password123!', show_default=True, help='Change immediately in production')
@with_appcontext
def init_system(fullname, email, password):
    """Create roles, the default store and a SUPERADMIN user (idempotent)."""
    click.echo("START Initializing Zyre...")

    create_default_roles()
    roles = db.session.query(Role).order_by(Role.id.asc()).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    store = get_or_create_default_store()
    click.echo(f"PASS Default store: {store.name} (ID: {store.id})")

    user = db.session.query(User).filter_by(email=email).first()
    if user:
        click.echo(f"PASS Using existing user: {user.email}")
    else:
        superadmin = db.session.query(Role).filter_by(name="SUPERADMIN").one()
        try:
            user = register_user(fullname=fullname, email=email, password=password, role_id=superadmin.id)
        except ValidationError as exc:
            raise click.ClickException(exc.message)
        click.echo(f"PASS Created SUPERADMIN: {user.email}")

    if store not in user.stores:
        user.stores.append(store)
        db.session.commit()

    click.echo("DONE")


@system_group.command('init-roles')
@with_appcontext
def init_roles():
    """Create default roles only."""
    roles = create_default_roles()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--fullname', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['SUPERADMIN', 'ADMIN', 'USER'], case_sensitive=False), prompt=True)
@with_appcontext
def create_user_cli(fullname, email, password, role):
    """
    Create a user.

    Password must have 8+ chars, upper, lower, digit and one of @$!%*?&.
    """
    role_row = db.session.query(Role).filter_by(name=role.upper()).first()
    if not role_row:
        raise click.ClickException("Roles missing. Run 'python -m flask system init-roles' first.")

    try:
        user = register_user(fullname=fullname, email=email, password=password, role_id=role_row.id)
    except (ValidationError, ConflictError) as exc:
        raise click.ClickException(exc.message)

    click.echo(f"PASS Created user: {user.email} with role '{role_row.name}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List users with role and active flag."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role_name or '-':<12} {status}")


@click.group('psr')
def psr_group():
    """HRMS PSR commands."""


@psr_group.command('sync')
@click.option('--actor-id', type=int, default=None, help='User recorded as creator/updater')
@with_appcontext
def sync_psr_cli(actor_id):
    """Pull PSRs from the HRMS and upsert new or changed rows."""
    result = psr_service.sync_psrs(actor_id)
    click.echo(
        f"PSR sync: {result.created} created, {result.updated} updated, "
        f"{result.unchanged} unchanged ({len(result.psrs)} total)"
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('expire-batches')
@with_appcontext
def expire_batches_cli():
    """Mark past-expiry batches and items EXPIRED."""
    result = expiry_service.expire_batches()
    if not result.ok:
        raise click.ClickException("Expiry sweep failed; see the application log.")
    click.echo(
        f"Expired {result.batches_expired} batches, {result.items_expired} items "
        f"({result.movements_created} movements)."
    )


@maintenance_group.command('cleanup-csrf')
@with_appcontext
def cleanup_csrf_cli():
    """Clear CSRF tokens whose expiry has passed."""
    cleared = session_service.cleanup_expired_csrf_tokens()
    click.echo(f"Cleared {cleared} expired CSRF tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(psr_group)
    app.cli.add_command(maintenance_group)
