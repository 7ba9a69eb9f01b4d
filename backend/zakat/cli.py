# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/zakat/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-phone 081234567890 --admin-password "admin123"]
#   Idempotent bootstrap: creates tables, allocation locks, default zakat rates and an admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions --retention-days 30
#   Delete expired or revoked session tokens older than the retention window.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List committee users with role and active status.
# - python -m flask users create --name "Panitia 1" --phone 081200000001 --password "secret1" --role panitia
#   Create a user (prompts if options are omitted).
#
# Zakat rates:
# - python -m flask rates list
#   List master zakat rates.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import MasterZakatRate, User
from .models.auth import ROLE_ADMIN, ROLE_PANITIA, VALID_ROLES
from .numbers import format_rupiah
from .services import session_service
from .services.auth_service import create_user, normalize_phone
from .services.distribution_service import ensure_allocation_locks
from .validation import ZakatError

DEFAULT_RATES = [
    ("Beras Standar", Decimal("45000"), Decimal("2.5")),
    ("Uang Standar", Decimal("45000"), Decimal("0")),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', help='Name of the default admin')
@click.option('--admin-phone', default='081234567890', help='WhatsApp number of the default admin')
@click.option('--admin-password', default='admin123', help='Password of the default admin')
@with_appcontext
def init_system(admin_name, admin_phone, admin_password):
    """
    Initialize the zakat fitrah database.

    Creates:
    - All tables (if missing)
    - One allocation lock row per zakat kind
    - Default rates "Beras Standar" (45000 / 2.5 kg) and "Uang Standar" (45000)
    - An admin user, unless an admin already exists

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing zakat fitrah database...")
    db.create_all()

    ensure_allocation_locks()
    db.session.commit()
    click.echo("PASS Allocation locks ready")

    for name, unit_price, unit_weight_kg in DEFAULT_RATES:
        if db.session.query(MasterZakatRate).filter_by(name=name).first():
            click.echo(f"SKIP Rate exists: {name}")
            continue
        db.session.add(MasterZakatRate(name=name, unit_price=unit_price, unit_weight_kg=unit_weight_kg))
        db.session.commit()
        click.echo(f"PASS Created rate: {name} ({format_rupiah(unit_price)}, {unit_weight_kg} kg)")

    admin = db.session.query(User).filter_by(role=ROLE_ADMIN).first()
    if admin:
        click.echo(f"SKIP Admin exists: {admin.name} ({admin.phone})")
    else:
        try:
            admin = create_user(admin_name, admin_phone, admin_password, ROLE_ADMIN)
        except ZakatError as e:
            raise click.ClickException(str(e))
        click.echo(f"PASS Created admin: {admin.name} ({admin.phone})")

    click.echo("\nDONE System initialized.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@system_group.command('cleanup-sessions')
@click.option('--retention-days', default=30, show_default=True, type=int)
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete expired or revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session(s)")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.name.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.name:<30} {user.phone:<16} {user.role:<8} {status}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--phone', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), default=ROLE_PANITIA, show_default=True)
@with_appcontext
def create_user_command(name, phone, password, role):
    try:
        user = create_user(name, normalize_phone(phone), password, role)
    except ZakatError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.name} ({user.phone}) as {user.role}")


@click.group('rates')
def rates_group():
    """Master zakat rate inspection."""


@rates_group.command('list')
@with_appcontext
def list_rates():
    rates = db.session.query(MasterZakatRate).order_by(MasterZakatRate.name.asc()).all()
    if not rates:
        click.echo("No zakat rates found. Run 'python -m flask system init'.")
        return
    for rate in rates:
        click.echo(
            f"{rate.id:>4}  {rate.name:<30} {format_rupiah(rate.unit_price):<14} "
            f"{rate.unit_weight_kg} kg  ({rate.kind})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(rates_group)
