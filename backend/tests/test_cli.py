# Overview: Pytest coverage for the Flask CLI command groups.

from datetime import datetime

from conftest import make_request, set_created_at
from retail_pos.models import SaleSequence


def test_init_db_creates_sale_counter(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init-db"])

    assert result.exit_code == 0, result.output
    assert "Next sale number: 1000" in result.output
    assert db_session.get(SaleSequence, "sale").next_number == 1000


def test_init_db_is_idempotent(app, db_session, engine, customer, product):
    engine.create(make_request(customer.id, (product.id, 1)))

    result = app.test_cli_runner().invoke(args=["system", "init-db"])

    assert result.exit_code == 0, result.output
    assert "Next sale number: 1001" in result.output


def test_sales_stats(app, db_session, engine, customer, product):
    sale = engine.create(make_request(customer.id, (product.id, 3)))
    set_created_at(db_session, sale.id, datetime(2026, 2, 14, 10, 0))

    runner = app.test_cli_runner()
    result = runner.invoke(args=["sales", "stats", "--start", "2026-02-01", "--end", "2026-02-28"])

    assert result.exit_code == 0, result.output
    assert "Sales:    1" in result.output
    assert "Revenue:  3.00" in result.output

    empty = runner.invoke(args=["sales", "stats", "--start", "2026-03-01", "--end", "2026-03-31"])
    assert "Sales:    0" in empty.output


def test_sales_stats_rejects_bad_dates(app, db_session):
    result = app.test_cli_runner().invoke(args=["sales", "stats", "--start", "soon"])
    assert result.exit_code != 0


def test_sales_daily(app, db_session, engine, customer, product):
    runner = app.test_cli_runner()
    assert "No sales" in runner.invoke(args=["sales", "daily"]).output

    engine.create(make_request(customer.id, (product.id, 2)))
    result = runner.invoke(args=["sales", "daily", "--days", "3"])

    assert result.exit_code == 0, result.output
    assert "2.00" in result.output


def test_inventory_low_stock(app, db_session, product, second_product):
    result = app.test_cli_runner().invoke(args=["inventory", "low-stock"])

    assert result.exit_code == 0, result.output
    assert "SB-2CH" in result.output
    assert "TV-32-HD" not in result.output
