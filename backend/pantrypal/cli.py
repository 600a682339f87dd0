# Overview: Flask CLI command groups for bootstrap, tenant management and stock inspection.

# backend/pantrypal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="pantrypal:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` elsewhere).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations.
# - python -m flask orgs create --name "Corner Store" --code "CORNER"
#   Create a new organization (tenant).
#
# Stock:
# - python -m flask inventory stock-in --org-id <uuid> --product-id 1 --quantity 24 --reference-type purchase
#   Book received stock through the ledger.
# - python -m flask inventory low-stock --org-id <uuid>
#   List products below their minimum stock level.
# - python -m flask inventory near-expiry --org-id <uuid> --days 7
#   List products expiring within the window.

import click
from flask.cli import with_appcontext

from .errors import CoreError
from .extensions import db
from .models import Organization, Product
from .services import inventory_service
from .services.inventory_service import STOCK_IN_REFERENCES


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

    click.echo("PASS Database reset complete.")


# =============================================================================
# ORGANIZATION MANAGEMENT COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.name.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<38} {'Name':<25} {'Code':<12} {'Active':<8} {'Products'}")
    click.echo("="*90)

    for org in orgs:
        product_count = db.session.query(Product).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<38} {org.name:<25} {org.code or '-':<12} {active_str:<8} {product_count}")

    click.echo("="*90 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# STOCK COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Stock ledger commands."""


@inventory_group.command('stock-in')
@click.option('--org-id', required=True, help='Organization ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--quantity', type=int, required=True, help='Units received')
@click.option('--reference-type', type=click.Choice(sorted(STOCK_IN_REFERENCES)), default='purchase', show_default=True)
@click.option('--reference-id', default=None, help='External reference (e.g., supplier invoice)')
@click.option('--notes', default=None)
@with_appcontext
def stock_in_cli(org_id, product_id, quantity, reference_type, reference_id, notes):
    """Book received stock for a product."""
    try:
        tx = inventory_service.stock_in(
            org_id=org_id,
            product_id=product_id,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )
    except CoreError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(
        f"PASS Stocked in {tx.quantity} of product {product_id}; "
        f"now {tx.product.quantity_in_stock} in stock"
    )


@inventory_group.command('low-stock')
@click.option('--org-id', required=True, help='Organization ID')
@with_appcontext
def low_stock_cli(org_id):
    """List products below their minimum stock level."""
    products = inventory_service.find_low_stock(org_id=org_id)

    if not products:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'In stock':<10} {'Minimum'}")
    for p in products:
        click.echo(f"{p.id:<6} {p.name:<30} {p.quantity_in_stock:<10} {p.min_stock_level}")


@inventory_group.command('near-expiry')
@click.option('--org-id', required=True, help='Organization ID')
@click.option('--days', type=int, default=None, help='Window in days (defaults to NEAR_EXPIRY_DEFAULT_DAYS)')
@with_appcontext
def near_expiry_cli(org_id, days):
    """List products expiring within the window."""
    products = inventory_service.find_near_expiry(org_id=org_id, days=days)

    if not products:
        click.echo("No products near expiry.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Expires':<12} {'In stock'}")
    for p in products:
        click.echo(f"{p.id:<6} {p.name:<30} {p.expiry_date.isoformat():<12} {p.quantity_in_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(inventory_group)
