# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Garage Central"]
#   Idempotent bootstrap: tables, default taxes, company settings, admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email caisse@backoffice.local --password "Password123!" --role cashier
#
# Reference data:
# - python -m flask taxes list

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError
from .services.settings_service import get_company_settings
from .services.tax_service import ensure_default_taxes, list_taxes
from .validation import ConflictError, ValidationError

DEFAULT_ADMIN_EMAIL = "admin@backoffice.local"
DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Ma Société', help='Company name printed on documents')
@with_appcontext
def init_system(company_name):
    """
    Initialize the back office: schema, default taxes, company settings and an admin user.

    Default admin: admin@backoffice.local / Password123!

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Tables created")

    created = ensure_default_taxes()
    click.echo(f"PASS Default taxes: {created} created")

    settings = get_company_settings()
    if not settings.name:
        settings.name = company_name
        db.session.commit()
    click.echo(f"PASS Company settings: {settings.name}")

    if db.session.query(User).filter_by(email=DEFAULT_ADMIN_EMAIL).first():
        click.echo(f"WARN  User '{DEFAULT_ADMIN_EMAIL}' already exists, skipping...")
    else:
        create_user(DEFAULT_ADMIN_EMAIL, DEFAULT_PASSWORD, full_name="Administrateur", role="admin")
        click.echo(f"PASS Created admin user: {DEFAULT_ADMIN_EMAIL} / {DEFAULT_PASSWORD}")

    click.echo("DONE Back office initialized")


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

    click.echo("PASS Database reset complete. Run 'flask system init' to bootstrap.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'cashier']), prompt=True, help='Role')
@click.option('--full-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(email, password, role, full_name):
    """
    Create a new user.

    Password must meet strength requirements:
    8+ chars, uppercase, lowercase, digit, special char.
    """
    try:
        user = create_user(email, password, full_name=full_name, role=role)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Active':<8}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<10} {active_str:<8}")
    click.echo("="*80 + "\n")


@click.group('taxes')
def taxes_group():
    """Tax reference data."""


@taxes_group.command('list')
@with_appcontext
def list_taxes_cli():
    """List taxes and whether they apply to new documents."""
    taxes = list_taxes()
    if not taxes:
        click.echo("No taxes configured.")
        return
    for tax in taxes:
        data = tax.to_dict()
        active_str = "active" if tax.is_active else "inactive"
        click.echo(f"{tax.id:<5} {tax.name:<20} {data['rate']:<8} {tax.type:<12} {active_str}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(taxes_group)
