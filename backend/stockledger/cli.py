# Overview: Flask CLI command groups for bootstrap, master data and stock inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer 'flask db upgrade' for real deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data:
# - python -m flask stores create --name "Main" --zone A --zone B
# - python -m flask stores list
# - python -m flask items create --name "Widget" --category "Hardware" --purchase-price 10 [--sale-price 15] [--initial-stock 5 --store-id 1]
# - python -m flask items list
#
# Stock inspection/repair:
# - python -m flask stock show --store-id 1
#   Print the store's inventory (non-zero products only).
# - python -m flask stock rebuild-balances [--dry-run]
#   Recompute every stock balance row from the movement log and report drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import InventoryError
from .services import catalog_service, stock_service


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


@click.group('stores')
def stores_group():
    """Store master data."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name (unique)')
@click.option('--zone', multiple=True, help='Zone label; repeat for several zones')
@with_appcontext
def create_store_cli(name, zone):
    """Create a store with a generated ST-NNN code."""
    try:
        store = catalog_service.create_store(name=name, zone=list(zone))
    except InventoryError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")


@stores_group.command('list')
@with_appcontext
def list_stores_cli():
    """List all stores."""
    stores = catalog_service.list_stores()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Code':<10} {'Name':<30} {'Zones'}")
    click.echo("=" * 70)
    for store in stores:
        click.echo(f"{store.id:<5} {store.code:<10} {store.name:<30} {', '.join(store.zone or [])}")


@click.group('items')
def items_group():
    """Item master data."""


@items_group.command('create')
@click.option('--name', required=True, help='Item name')
@click.option('--category', required=True, help='Item category')
@click.option('--purchase-price', type=float, required=True)
@click.option('--sale-price', type=float, default=None)
@click.option('--initial-stock', type=float, default=0, help='Opening quantity (needs --store-id)')
@click.option('--store-id', type=int, default=None, help='Store receiving the opening quantity')
@with_appcontext
def create_item_cli(name, category, purchase_price, sale_price, initial_stock, store_id):
    """Create an item, optionally with opening stock."""
    try:
        item = catalog_service.create_item(
            name=name,
            category=category,
            purchase_price=purchase_price,
            sale_price=sale_price,
            initial_stock=initial_stock,
            store_id=store_id,
        )
    except InventoryError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created item: {item.name} (ID: {item.id})")


@items_group.command('list')
@click.option('--all', 'include_archived', is_flag=True, help='Include archived items')
@with_appcontext
def list_items_cli(include_archived):
    """List items."""
    items = catalog_service.list_items(include_archived=include_archived)
    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Category':<20} {'Buy':>10} {'Sell':>10}")
    click.echo("=" * 80)
    for item in items:
        sale_price = "-" if item.sale_price is None else f"{item.sale_price:.2f}"
        click.echo(
            f"{item.id:<5} {item.name:<30} {item.category:<20} "
            f"{item.purchase_price:>10.2f} {sale_price:>10}"
        )


@click.group('stock')
def stock_group():
    """Stock inspection and repair."""


@stock_group.command('show')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def show_stock_cli(store_id):
    """Print current stock for a store."""
    try:
        rows = stock_service.store_inventory(store_id)
    except InventoryError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)

    if not rows:
        click.echo("No stock on hand.")
        return

    for row in rows:
        click.echo(f"{row['product_id']:<5} {row['name']:<30} {row['current_stock']:>10g}")


@stock_group.command('rebuild-balances')
@click.option('--dry-run', is_flag=True, help='Report drift without writing')
@with_appcontext
def rebuild_balances_cli(dry_run):
    """Recompute stock balances from the movement log."""
    corrected = stock_service.rebuild_balances()
    if dry_run:
        db.session.rollback()
    else:
        db.session.commit()

    if not corrected:
        click.echo("PASS All balances match the movement log.")
        return

    for row in corrected:
        click.echo(
            f"{'WOULD FIX' if dry_run else 'FIXED'} product {row['product_id']} "
            f"store {row['store_id']}: {row['previous']} -> {row['current']}"
        )
    click.echo(f"{len(corrected)} balance(s) {'drifted' if dry_run else 'corrected'}.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(items_group)
    app.cli.add_command(stock_group)
