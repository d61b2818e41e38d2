# Overview: Flask CLI command groups for bootstrap and business management.

# backend/mindsync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business management:
# - python -m flask business create --user-id u-123 --name "Ada's Store" [--industry Retail] [--seed-accounts]
# - python -m flask business list
# - python -m flask business seed-accounts --business-id 1
#   Add the default chart of accounts (existing names are kept).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import BusinessProfile, Customer, Invoice, Product
from .services import accounting_service, tenant_service
from .validation import ConflictError, ValidationError


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

    click.echo("PASS Database reset complete. Run 'python -m flask business create' to add a business.")


@click.group('business')
def business_group():
    """Business (tenant) management commands."""


@business_group.command('create')
@click.option('--user-id', required=True, help='External user reference that owns the business')
@click.option('--name', required=True, help='Business name')
@click.option('--phone', default=None)
@click.option('--email', 'business_email', default=None)
@click.option('--industry', default=None)
@click.option('--whatsapp', 'whatsapp_number', default=None)
@click.option('--seed-accounts', is_flag=True, help='Also create the default chart of accounts')
@with_appcontext
def create_business_cli(user_id, name, phone, business_email, industry, whatsapp_number, seed_accounts):
    """Create a business profile."""
    fields = {
        k: v for k, v in {
            "phone": phone,
            "business_email": business_email,
            "industry": industry,
            "whatsapp_number": whatsapp_number,
        }.items() if v
    }
    try:
        business = tenant_service.create_business(user_id=user_id, business_name=name, **fields)
    except (ValidationError, ConflictError) as exc:
        click.echo(f"FAIL {exc}")
        return

    click.echo(f"PASS Created business: {business.business_name} (ID: {business.id})")
    if seed_accounts:
        added = accounting_service.seed_default_accounts(business.id)
        click.echo(f"PASS Seeded {added} default accounts")


@business_group.command('list')
@with_appcontext
def list_businesses_cli():
    """List all businesses."""
    businesses = tenant_service.list_businesses()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'User':<16} {'Products':<9} {'Customers':<10} {'Invoices'}")
    click.echo("="*80)

    for b in businesses:
        products = db.session.query(Product).filter_by(business_id=b.id).count()
        customers = db.session.query(Customer).filter_by(business_id=b.id).count()
        invoices = db.session.query(Invoice).filter_by(business_id=b.id).count()
        click.echo(f"{b.id:<5} {b.business_name[:30]:<30} {b.user_id[:16]:<16} {products:<9} {customers:<10} {invoices}")

    click.echo("="*80 + "\n")


@business_group.command('seed-accounts')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def seed_accounts_cli(business_id):
    """Add the default chart of accounts to a business."""
    if db.session.get(BusinessProfile, business_id) is None:
        click.echo(f"FAIL Business ID {business_id} not found")
        return
    added = accounting_service.seed_default_accounts(business_id)
    click.echo(f"PASS Seeded {added} default accounts for business {business_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(business_group)
