# Overview: Flask CLI command groups for bootstrap, catalog upkeep, and maintenance.

# backend/commerce/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog list [--all]
#   List products with stock (hidden products only with --all).
# - python -m flask catalog create --name "Linen Shirt" --price-cents 4500 --stock 10
#   Create a product (--unlimited for made-to-order items).
# - python -m flask catalog set-stock 3 25
#   Overwrite a product's stock.
#
# Admin:
# - python -m flask admin hash-password
#   Prompt for a password and print the bcrypt hash for ADMIN_PASSWORD_HASH.
#
# Orders:
# - python -m flask orders list [--status pending]
#   List orders, newest first.
# - python -m flask orders delete-all --yes
#   Delete every order and return their units to stock.
#
# Maintenance:
# - python -m flask maintenance purge-codes --older-than-hours 24
#   Delete login codes that expired or were consumed before the cutoff.

import click
from datetime import timedelta
from flask.cli import with_appcontext
from sqlalchemy import or_

from .extensions import db
from .models import OneTimeCode, Product
from .services import inventory_service, order_service, reversal_service
from .services.token_service import hash_password
from .time_utils import utcnow
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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


@click.group('catalog')
def catalog_group():
    """Product catalog commands."""


@catalog_group.command('list')
@click.option('--all', 'include_hidden', is_flag=True, help='Include hidden products')
@with_appcontext
def list_products(include_hidden):
    """List products with price and stock."""
    query = db.session.query(Product)
    if not include_hidden:
        query = query.filter(Product.is_hidden.is_(False))
    products = query.order_by(Product.name).all()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6} {'Name':<32} {'Price':>10} {'Stock':>10} {'Hidden':<6}")
    click.echo("-" * 68)
    for p in products:
        stock = "unlimited" if p.unlimited_stock else str(p.stock)
        click.echo(f"{p.id:<6} {p.name[:32]:<32} {p.price_cents / 100:>10.2f} {stock:>10} {'yes' if p.is_hidden else 'no':<6}")


@catalog_group.command('create')
@click.option('--name', required=True)
@click.option('--price-cents', type=int, required=True)
@click.option('--stock', type=int, default=0, show_default=True)
@click.option('--unlimited', is_flag=True, help='Never check or decrement stock')
@click.option('--description', default=None)
@click.option('--image-url', default=None)
@click.option('--hidden', is_flag=True)
@with_appcontext
def create_product(name, price_cents, stock, unlimited, description, image_url, hidden):
    """Create a catalog product."""
    if price_cents < 0 or stock < 0:
        raise click.BadParameter("price and stock must be non-negative")

    product = Product(
        name=name,
        price_cents=price_cents,
        stock=stock,
        unlimited_stock=unlimited,
        description=description,
        image_url=image_url,
        is_hidden=hidden,
    )
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product {product.id}: {product.name}")


@catalog_group.command('set-stock')
@click.argument('product_id', type=int)
@click.argument('stock', type=int)
@with_appcontext
def set_stock(product_id, stock):
    """Overwrite a product's stock count."""
    try:
        stored = inventory_service.set_stock(product_id, stock)
    except (ValidationError, LookupError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Product {product_id} stock = {stored}")


@click.group('admin')
def admin_group():
    """Store administrator commands."""


@admin_group.command('hash-password')
@click.password_option()
def hash_password_cli(password):
    """Print a bcrypt hash to use as ADMIN_PASSWORD_HASH."""
    click.echo(hash_password(password))


@click.group('orders')
def orders_group():
    """Order inspection and cleanup."""


@orders_group.command('list')
@click.option('--status', default=None)
@click.option('--payment-status', default=None)
@with_appcontext
def list_orders(status, payment_status):
    orders = order_service.list_orders(status=status, payment_status=payment_status)
    if not orders:
        click.echo("No orders found.")
        return
    for o in orders:
        click.echo(
            f"{o.id:<6} {o.status:<10} {o.payment_status:<16} {o.payment_method:<13} "
            f"{o.total_price_cents / 100:>10.2f}  {o.email or '-'}"
        )


@orders_group.command('delete-all')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_all_orders(yes):
    """Delete every order and restore the stock it took."""
    if not yes:
        click.confirm("WARN This will delete ALL orders. Are you sure?", abort=True)

    report = reversal_service.delete_all_orders()
    click.echo(f"PASS Deleted {report.deleted_count} orders, restored {len(report.restored)} lines.")
    for d in report.discrepancies:
        click.echo(f"WARN Order {d['order_id']}: product {d['product_id']} x{d['quantity']} not restored ({d['reason']})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-codes')
@click.option('--older-than-hours', type=int, default=24, show_default=True)
@with_appcontext
def purge_codes(older_than_hours):
    """Delete login codes that expired or were consumed before the cutoff."""
    cutoff = utcnow() - timedelta(hours=older_than_hours)
    deleted = db.session.query(OneTimeCode).filter(
        OneTimeCode.created_at < cutoff,
        or_(OneTimeCode.consumed.is_(True), OneTimeCode.expires_at < utcnow()),
    ).delete(synchronize_session=False)
    db.session.commit()
    click.echo(f"Deleted {deleted} login codes older than {older_than_hours} hours.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(admin_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(maintenance_group)
