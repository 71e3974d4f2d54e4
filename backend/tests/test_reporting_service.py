# Overview: Pytest coverage for sales statistics.

from datetime import datetime, timedelta

import pytest

from conftest import make_request, set_created_at
from retail_pos.errors import InvalidInput
from retail_pos.services.reporting_service import SalesStatistics, average_cents
from retail_pos.time_utils import utcnow


def test_average_cents_rounds_half_up():
    assert average_cents(0, 0) == 0
    assert average_cents(1000, 3) == 333
    assert average_cents(1001, 2) == 501
    assert average_cents(999, 2) == 500


class TestGetStats:
    def test_empty_store_is_all_zeros(self, db_session):
        stats = SalesStatistics(db_session).get_stats()
        assert stats.to_dict() == {
            "total_sales": 0,
            "total_revenue_cents": 0,
            "average_sale_cents": 0,
        }

    def test_totals_over_active_sales(self, engine, db_session, customer, product):
        engine.create(make_request(customer.id, (product.id, 1)))
        engine.create(make_request(customer.id, (product.id, 2)))
        reversed_sale = engine.create(make_request(customer.id, (product.id, 3)))
        engine.delete(reversed_sale.id)

        stats = SalesStatistics(db_session).get_stats()
        assert stats.total_sales == 2
        assert stats.total_revenue_cents == 300
        assert stats.average_sale_cents == 150

    def test_range_bounds_are_inclusive(self, engine, db_session, customer, product):
        march = engine.create(make_request(customer.id, (product.id, 1)))
        april = engine.create(make_request(customer.id, (product.id, 2)))
        set_created_at(db_session, march.id, datetime(2026, 3, 31, 23, 59))
        set_created_at(db_session, april.id, datetime(2026, 4, 1, 0, 0))

        stats = SalesStatistics(db_session).get_stats(datetime(2026, 3, 1), datetime(2026, 3, 31, 23, 59))
        assert stats.total_sales == 1
        assert stats.total_revenue_cents == 100

    def test_inverted_range(self, db_session):
        with pytest.raises(InvalidInput):
            SalesStatistics(db_session).get_stats(datetime(2026, 5, 1), datetime(2026, 4, 1))


class TestGetSalesStats:
    def test_counts_items_and_scopes_by_store(self, engine, db_session, customer, store, product, second_product):
        engine.create(
            make_request(customer.id, (product.id, 2), (second_product.id, 1), store_id=store.id)
        )
        engine.create(make_request(customer.id, (product.id, 5)))

        now = utcnow()
        stats = SalesStatistics(db_session).get_sales_stats(
            now - timedelta(hours=1), now + timedelta(hours=1), store.id
        )
        assert stats.total_sales == 1
        assert stats.total_revenue_cents == 2700
        assert stats.total_items_sold == 3

        everywhere = SalesStatistics(db_session).get_sales_stats(
            now - timedelta(hours=1), now + timedelta(hours=1)
        )
        assert everywhere.total_sales == 2
        assert everywhere.total_items_sold == 8
        assert everywhere.total_revenue_cents == 3200

    def test_empty_range(self, db_session):
        stats = SalesStatistics(db_session).get_sales_stats(datetime(2026, 1, 1), datetime(2026, 1, 31))
        assert stats.to_dict() == {
            "total_sales": 0,
            "total_revenue_cents": 0,
            "average_sale_cents": 0,
            "total_items_sold": 0,
        }


class TestGetDailySales:
    def test_groups_by_day_newest_first(self, engine, db_session, customer, product):
        today = utcnow().replace(hour=0, minute=30, second=0, microsecond=0)
        yesterday = today - timedelta(days=1)
        long_ago = today - timedelta(days=30)

        for when, qty in ((today, 1), (today, 2), (yesterday, 3), (long_ago, 4)):
            sale = engine.create(make_request(customer.id, (product.id, qty)))
            set_created_at(db_session, sale.id, when)

        rows = SalesStatistics(db_session).get_daily_sales(7)
        assert [row.to_dict() for row in rows] == [
            {"date": today.date().isoformat(), "sales_count": 2, "revenue_cents": 300},
            {"date": yesterday.date().isoformat(), "sales_count": 1, "revenue_cents": 300},
        ]

    def test_window_of_one_day_is_today_only(self, engine, db_session, customer, product):
        today = utcnow().replace(hour=0, minute=30, second=0, microsecond=0)
        for when in (today, today - timedelta(days=1)):
            sale = engine.create(make_request(customer.id, (product.id, 1)))
            set_created_at(db_session, sale.id, when)

        rows = SalesStatistics(db_session).get_daily_sales(1)
        assert [row.date for row in rows] == [today.date().isoformat()]

    def test_no_sales_is_empty(self, db_session):
        assert SalesStatistics(db_session).get_daily_sales(7) == []

    @pytest.mark.parametrize("days", [0, -3, True])
    def test_rejects_bad_window(self, db_session, days):
        with pytest.raises(InvalidInput):
            SalesStatistics(db_session).get_daily_sales(days)
