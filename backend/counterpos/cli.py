# Overview: Flask CLI command groups for bootstrap, staff and tax rate maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@counterpos.local] [--admin-pin 1234] [--tax-rate 0]
#   Idempotent bootstrap: creates tables, a "Standard" default tax rate and an Admin staff account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff:
# - python -m flask staff list
# - python -m flask staff create --name "Ayesha" --role Cashier --email ayesha@shop.local --pin 4321
# - python -m flask staff logout-all [--staff-id 3]
#   End every open register session (for one staff member or everyone).
#
# Tax rates:
# - python -m flask tax-rates list
# - python -m flask tax-rates set-default 2

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .money import format_currency
from .models import Staff, TaxRate
from .services import session_service, staff_service, tax_rate_service
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', show_default=True, help='Admin display name')
@click.option('--admin-email', default='admin@counterpos.local', show_default=True, help='Admin sign-in email')
@click.option('--admin-pin', help='Admin PIN (4-6 digits); prompted when omitted')
@click.option('--tax-rate', 'tax_rate', default='0', show_default=True, help='Standard tax rate (0.17 or 17)')
@with_appcontext
def init_system(admin_name, admin_email, admin_pin, tax_rate):
    """
    Initialize CounterPOS: tables, default tax rate and the first Admin.

    Safe to re-run; existing records are left alone.
    """
    click.echo("START Initializing CounterPOS...")

    db.create_all()
    click.echo("PASS Database tables ready")

    if db.session.query(TaxRate).count() == 0:
        try:
            rate = tax_rate_service.create_tax_rate("Standard", tax_rate, is_default=True)
        except PosError as e:
            click.echo(f"FAIL Could not create tax rate: {e}")
            return
        click.echo(f"PASS Created default tax rate: {rate.name} ({rate.rate:.4f})")
    else:
        promoted = tax_rate_service.ensure_default_exists()
        if promoted is not None:
            click.echo(f"PASS Promoted {promoted.name} to default tax rate")
        else:
            click.echo("PASS Tax rates already configured")

    if db.session.query(Staff).filter_by(email=admin_email).first():
        click.echo(f"PASS Admin account exists: {admin_email}")
    else:
        if not admin_pin:
            admin_pin = click.prompt("Admin PIN", hide_input=True, confirmation_prompt=True)
        try:
            admin = staff_service.create_staff({
                "name": admin_name,
                "role": "Admin",
                "email": admin_email,
                "pin": admin_pin,
            })
        except PosError as e:
            click.echo(f"FAIL Could not create admin: {e}")
            return
        click.echo(f"PASS Created Admin staff: {admin.email} (ID: {admin.id})")

    click.echo("DONE CounterPOS is ready.")


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


@click.group('staff')
def staff_group():
    """Staff inspection and session maintenance."""


@staff_group.command('list')
@with_appcontext
def list_staff():
    """List staff with role, status and sign-in state."""
    members = staff_service.list_staff()
    if not members:
        click.echo("No staff found.")
        return

    click.echo("\n" + "="*112)
    click.echo(f"{'ID':<5} {'Name':<22} {'Role':<11} {'Email':<30} {'Status':<10} {'Logged in':<10} {'Sales'}")
    click.echo("="*112)
    for s in members:
        logged_in = "Yes" if s.is_logged_in else "No"
        click.echo(f"{s.id:<5} {s.name:<22} {s.role:<11} {(s.email or '-'):<30} {s.status:<10} {logged_in:<10} {format_currency(s.total_sales)}")
    click.echo("="*112 + "\n")


@staff_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(['Cashier', 'Manager', 'Supervisor', 'Admin']), prompt=True, help='Role')
@click.option('--email', default='', help='Sign-in email (required to log in at the register)')
@click.option('--phone', default='', help='Phone number')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='PIN (4-6 digits)')
@with_appcontext
def create_staff_cli(name, role, email, phone, pin):
    """Create a staff member."""
    try:
        staff = staff_service.create_staff({
            "name": name,
            "role": role,
            "email": email or None,
            "phone": phone or None,
            "pin": pin,
        })
    except PosError as e:
        click.echo(f"FAIL Failed to create staff: {e}")
        return
    click.echo(f"PASS Created staff: {staff.name} (ID: {staff.id}, Role: {staff.role})")


@staff_group.command('logout-all')
@click.option('--staff-id', type=int, help='Only this staff member')
@with_appcontext
def logout_all(staff_id):
    """End open register sessions."""
    query = db.session.query(Staff).filter(Staff.is_logged_in.is_(True))
    if staff_id:
        query = query.filter(Staff.id == staff_id)

    revoked = 0
    now = utcnow()
    for staff in query.all():
        revoked += session_service.revoke_all_staff_sessions(staff.id, reason="Admin logout")
        session_service.sync_login_flags(staff)
        staff.last_logout = now
    db.session.commit()
    click.echo(f"PASS Revoked {revoked} session(s)")


@click.group('tax-rates')
def tax_rates_group():
    """Tax rate registry commands."""


@tax_rates_group.command('list')
@with_appcontext
def list_tax_rates():
    rates = tax_rate_service.list_tax_rates()
    if not rates:
        click.echo("No tax rates configured.")
        return
    for rate in rates:
        marker = "*" if rate.is_default else " "
        click.echo(f"{marker} {rate.id:<5} {rate.name:<30} {rate.rate * 100:>7.2f}%")


@tax_rates_group.command('set-default')
@click.argument('tax_rate_id', type=int)
@with_appcontext
def set_default(tax_rate_id):
    try:
        rate = tax_rate_service.set_default_tax_rate(tax_rate_id)
    except PosError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Default tax rate is now {rate.name}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(tax_rates_group)
