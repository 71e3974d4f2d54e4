# Overview: Flask CLI command groups for bootstrap and sales/inventory inspection.

# backend/retail_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables and the sale number counter (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sales inspection:
# - python -m flask sales stats --start 2026-10-01 --end 2026-10-31 [--store-id 1]
#   Count, revenue and average sale for the range (all active sales by default).
# - python -m flask sales daily --days 7
#   Per-day count and revenue for the trailing window, newest first.
#
# Inventory inspection:
# - python -m flask inventory low-stock
#   List active products at or below their low-stock threshold.

import click
from flask.cli import with_appcontext

from .errors import SaleEngineError
from .extensions import db
from .services.inventory_service import InventoryLedger
from .services.reporting_service import SalesStatistics
from .services.sequence_service import ensure_sale_sequence
from .time_utils import parse_range_bound


def _cents(value: int) -> str:
    return f"{value / 100:.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables and the sale number counter if they are missing."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()
    seq = ensure_sale_sequence(db.session)
    db.session.commit()
    click.echo(f"PASS Database ready. Next sale number: {seq.next_number}")


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
    ensure_sale_sequence(db.session)
    db.session.commit()

    click.echo("PASS Database reset complete.")


@click.group('sales')
def sales_group():
    """Sales inspection commands."""


@sales_group.command('stats')
@click.option('--start', default=None, help='Range start (ISO-8601 date or datetime)')
@click.option('--end', default=None, help='Range end, inclusive (ISO-8601 date or datetime)')
@click.option('--store-id', type=int, default=None, help='Restrict to one store')
@with_appcontext
def sales_stats(start, end, store_id):
    """Print count, revenue and average sale value."""
    try:
        start_dt = parse_range_bound(start)
        end_dt = parse_range_bound(end, end=True)
    except ValueError:
        raise click.BadParameter("start and end must be ISO-8601 dates")

    statistics = SalesStatistics(db.session)
    try:
        if store_id is not None:
            stats = statistics.get_sales_stats(start_dt, end_dt, store_id)
        else:
            stats = statistics.get_stats(start_dt, end_dt)
    except SaleEngineError as e:
        raise click.ClickException(e.message)

    click.echo(f"Sales:    {stats.total_sales}")
    click.echo(f"Revenue:  {_cents(stats.total_revenue_cents)}")
    click.echo(f"Average:  {_cents(stats.average_sale_cents)}")
    if stats.total_items_sold is not None:
        click.echo(f"Items:    {stats.total_items_sold}")


@sales_group.command('daily')
@click.option('--days', type=click.IntRange(min=1, max=366), default=7, show_default=True)
@with_appcontext
def sales_daily(days):
    """Print per-day sales for the trailing window."""
    rows = SalesStatistics(db.session).get_daily_sales(days)
    if not rows:
        click.echo(f"No sales in the last {days} day(s)")
        return

    click.echo(f"{'Date':<12} {'Sales':>6} {'Revenue':>12}")
    click.echo("-" * 32)
    for row in rows:
        click.echo(f"{row.date:<12} {row.sales_count:>6} {_cents(row.revenue_cents):>12}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their low-stock threshold."""
    products = InventoryLedger(db.session).list_low_stock()
    if not products:
        click.echo("No products are low on stock")
        return

    click.echo(f"{'ID':<6} {'SKU':<20} {'Stock':>6} {'Threshold':>9}  Name")
    click.echo("-" * 64)
    for product in products:
        click.echo(
            f"{product.id:<6} {product.sku:<20} {product.stock_quantity:>6} "
            f"{product.low_stock_threshold:>9}  {product.name}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(inventory_group)
