# Overview: Flask CLI command groups for bootstrap, seeding, and stock inspection.

# backend/shopdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopdesk (PowerShell: $env:FLASK_APP="shopdesk").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Seeding:
# - python -m flask users create --email owner@shop.local --password "secret1" --name "Owner"
# - python -m flask stores create --owner-email owner@shop.local --name "Corner Shop" --category Grocery \
#       --address "1 Main St" --country US --city Springfield
# - python -m flask products create --store-id 1 --name "Coffee" --price 4.00 --sell-price 6.50 --quantity 10
#
# Stock inspection:
# - python -m flask stock audit --store-id 1
#   List products whose available stock disagrees with active sale items.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ServiceError
from .models import Store, User
from .services import catalog_service
from .services.auth_service import create_user
from .services.store_service import create_store_for_user
from .validation import validate_product_payload, validate_registration, validate_store_payload


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema ready")


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
    click.echo("BUILD Recreating schema...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--name', default=None)
@with_appcontext
def create_user_cli(email, password, name):
    """Create a store owner account."""
    try:
        fields = validate_registration({"email": email, "password": password, "name": name})
        user = create_user(fields["email"], fields["password"], fields["name"])
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.email} (ID: {user.id})")


@click.group('stores')
def stores_group():
    """Store bootstrap commands."""


@stores_group.command('create')
@click.option('--owner-email', required=True)
@click.option('--name', required=True)
@click.option('--category', required=True)
@click.option('--address', required=True)
@click.option('--country', required=True)
@click.option('--city', required=True)
@click.option('--phone', default=None)
@with_appcontext
def create_store_cli(owner_email, name, category, address, country, city, phone):
    """Create a store for an existing user."""
    user = db.session.query(User).filter_by(email=owner_email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User {owner_email} not found")
    try:
        fields = validate_store_payload({
            "name": name,
            "category": category,
            "address": address,
            "country": country,
            "city": city,
            "phone": phone,
        })
    except ServiceError as e:
        raise click.ClickException(e.message)
    store = create_store_for_user(user.id, fields)
    click.echo(f"PASS Created store {store.name} (ID: {store.id}) for {user.email}")


@click.group('products')
def products_group():
    """Catalog seeding commands."""


@products_group.command('create')
@click.option('--store-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--price', required=True, help='Unit cost')
@click.option('--sell-price', required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--category', default=None)
@with_appcontext
def create_product_cli(store_id, name, price, sell_price, quantity, category):
    """Add a product to a store's catalog."""
    if not db.session.get(Store, store_id):
        raise click.ClickException(f"Store {store_id} not found")
    try:
        fields = validate_product_payload({
            "name": name,
            "price": price,
            "sell_price": sell_price,
            "quantity": quantity,
            "category": category,
        })
    except ServiceError as e:
        raise click.ClickException(e.message)
    product = catalog_service.create_product(store_id, fields)
    click.echo(f"PASS Created product {product.name} (ID: {product.id}), {product.quantity} in stock")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('audit')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def audit_stock_cli(store_id):
    """Check available_quantity against active sale items; exits 1 on drift."""
    discrepancies = catalog_service.audit_stock(store_id)
    if not discrepancies:
        click.echo("PASS Stock consistent")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Qty':>6} {'Avail':>6} {'Sold':>6} {'Expected':>8}")
    for row in discrepancies:
        click.echo(
            f"{row['product_id']:<6} {row['name'][:30]:<30} {row['quantity']:>6} "
            f"{row['available_quantity']:>6} {row['sold_quantity']:>6} {row['expected_available_quantity']:>8}"
        )
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
