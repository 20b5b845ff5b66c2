# Overview: Aggregates the admin dashboard figures from orders, tables, payments and inventory.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import DiningTable, Order, Payment
from ..reconciliation import ORDER_PENDING
from ..time_utils import day_bounds, utcnow
from .inventory_service import count_low_stock
from .order_service import recent_orders

RECENT_ORDER_LIMIT = 5


def sales_for_day(day: date) -> int:
    """Sum of payments taken during the UTC day, in cents."""
    start, end = day_bounds(day)
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Payment.amount_cents), 0))
        .filter(Payment.created_at >= start, Payment.created_at < end)
        .scalar()
    )
    return int(total or 0)


def dashboard_stats(day: date | None = None) -> dict:
    """
    Headline figures for the dashboard.

    Returns:
        - pending_orders: Orders still in "pending"
        - occupied_tables: Tables marked occupied
        - sales_cents / sales_date: Payments taken on the day (UTC, default today)
        - low_stock_count: Inventory items at or below their minimum level
        - recent_orders: The most recent orders, newest first
    """
    if day is None:
        day = utcnow().date()

    pending_orders = db.session.query(Order).filter(Order.status == ORDER_PENDING).count()
    occupied_tables = db.session.query(DiningTable).filter(DiningTable.status == "occupied").count()

    return {
        "pending_orders": pending_orders,
        "occupied_tables": occupied_tables,
        "sales_date": day.isoformat(),
        "sales_cents": sales_for_day(day),
        "low_stock_count": count_low_stock(),
        "recent_orders": [o.to_dict(include_lines=False) for o in recent_orders(RECENT_ORDER_LIMIT)],
    }
