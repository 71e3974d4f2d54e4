# Overview: Read-only sales statistics over active sales.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ..errors import InvalidInput
from ..models import Sale, SaleLine
from retail_pos.time_utils import utcnow


def average_cents(revenue_cents: int, count: int) -> int:
    """Mean sale value, nearest-cent rounding (half-up). Zero when there are no sales."""
    if count <= 0:
        return 0
    return (revenue_cents + (count // 2)) // count


@dataclass(frozen=True)
class SalesStats:
    total_sales: int
    total_revenue_cents: int
    average_sale_cents: int
    total_items_sold: int | None = None

    def to_dict(self) -> dict:
        data = {
            "total_sales": self.total_sales,
            "total_revenue_cents": self.total_revenue_cents,
            "average_sale_cents": self.average_sale_cents,
        }
        if self.total_items_sold is not None:
            data["total_items_sold"] = self.total_items_sold
        return data


@dataclass(frozen=True)
class DailySales:
    date: str
    sales_count: int
    revenue_cents: int

    def to_dict(self) -> dict:
        return {"date": self.date, "sales_count": self.sales_count, "revenue_cents": self.revenue_cents}


class SalesStatistics:
    """
    Aggregates derived from the sales table.

    Every aggregate counts active sales only and treats an empty result as
    zeros, never as an error.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_stats(self, start: datetime | None = None, end: datetime | None = None) -> SalesStats:
        count, revenue = self._totals(start, end, store_id=None)
        return SalesStats(
            total_sales=count,
            total_revenue_cents=revenue,
            average_sale_cents=average_cents(revenue, count),
        )

    def get_sales_stats(
        self,
        start: datetime,
        end: datetime,
        store_id: int | None = None,
    ) -> SalesStats:
        """Store-scoped variant; adds the number of units sold."""
        count, revenue = self._totals(start, end, store_id=store_id)

        # Header totals and line quantities are summed separately; joining
        # lines into the revenue query would count each header once per line.
        items_query = (
            self.session.query(func.coalesce(func.sum(SaleLine.quantity), 0))
            .select_from(SaleLine)
            .join(Sale, SaleLine.sale_id == Sale.id)
        )
        items_sold = int(self._filtered(items_query, start, end, store_id).scalar() or 0)

        return SalesStats(
            total_sales=count,
            total_revenue_cents=revenue,
            average_sale_cents=average_cents(revenue, count),
            total_items_sold=items_sold,
        )

    def get_daily_sales(self, days: int) -> list[DailySales]:
        """
        One row per UTC day with at least one sale in the trailing window
        (today inclusive), most recent day first. Days without sales are
        absent, so an empty list is a valid answer.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidInput("days must be a positive integer", details={"days": days})

        window_start = datetime.combine(utcnow().date() - timedelta(days=days - 1), time.min)
        day = func.date(Sale.created_at)

        rows = (
            self.session.query(
                day.label("day"),
                func.count(Sale.id).label("sales_count"),
                func.coalesce(func.sum(Sale.total_cents), 0).label("revenue_cents"),
            )
            .filter(Sale.is_active.is_(True), Sale.created_at >= window_start)
            .group_by(day)
            .order_by(day.desc())
            .all()
        )
        return [
            DailySales(
                date=str(row.day),
                sales_count=int(row.sales_count),
                revenue_cents=int(row.revenue_cents),
            )
            for row in rows
        ]

    def _totals(self, start, end, store_id) -> tuple[int, int]:
        query = self.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
        )
        count, revenue = self._filtered(query, start, end, store_id).one()
        return int(count or 0), int(revenue or 0)

    def _filtered(self, query: Query, start, end, store_id) -> Query:
        if start is not None and end is not None and start > end:
            raise InvalidInput("start must not be after end")
        query = query.filter(Sale.is_active.is_(True))
        if store_id is not None:
            query = query.filter(Sale.store_id == store_id)
        if start is not None:
            query = query.filter(Sale.created_at >= start)
        if end is not None:
            query = query.filter(Sale.created_at <= end)
        return query
