# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import AttendanceRecord, Notification, Product, Sale, SaleLine, StockThreshold, User
from ..models.communications import STATUS_ACTIVE
from ..models.sales import SALE_ACTIVE
from .notification_service import default_threshold
from gesticom.time_utils import today_utc


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """[start 00:00, end+1 00:00) so both end dates are inclusive."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def _money(value) -> float:
    return float(value or 0)


def inventory_value() -> Decimal:
    value = db.session.query(func.coalesce(func.sum(Product.price * Product.stock), 0)).scalar()
    return Decimal(value or 0)


def dashboard_metrics() -> dict:
    """Headline numbers for the dashboard."""
    today = today_utc()
    day_start, day_end = _day_bounds(today, today)
    fallback = default_threshold()
    effective_min = func.coalesce(StockThreshold.min_stock, fallback)

    product_count = db.session.query(func.count(Product.id)).scalar() or 0
    low_stock = (
        db.session.query(func.count(Product.id))
        .outerjoin(StockThreshold, StockThreshold.product_id == Product.id)
        .filter(Product.stock > 0, Product.stock <= effective_min)
        .scalar()
    ) or 0
    out_of_stock = db.session.query(func.count(Product.id)).filter(Product.stock == 0).scalar() or 0

    active_notifications = (
        db.session.query(func.count(Notification.id)).filter(Notification.status == STATUS_ACTIVE).scalar()
    ) or 0

    sales_today = (
        db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
        .filter(Sale.status == SALE_ACTIVE, Sale.created_at >= day_start, Sale.created_at < day_end)
        .one()
    )

    present_today = (
        db.session.query(func.count(AttendanceRecord.id))
        .filter(AttendanceRecord.work_date == today, AttendanceRecord.check_in.isnot(None))
        .scalar()
    ) or 0

    return {
        "product_count": product_count,
        "low_stock_count": low_stock,
        "out_of_stock_count": out_of_stock,
        "inventory_value": _money(inventory_value()),
        "active_notifications": active_notifications,
        "sales_today_count": sales_today[0] or 0,
        "sales_today_amount": _money(sales_today[1]),
        "present_today": present_today,
        "date": today.isoformat(),
    }


def sales_report(*, start: date | None, end: date | None) -> dict:
    """
    Aggregate active sales between two dates (inclusive).

    Voided sales are excluded from every figure.
    """
    if start is None or end is None:
        raise ReportError("Start and end dates are required")
    if start > end:
        raise ReportError("Start date must be on or before end date")

    range_start, range_end = _day_bounds(start, end)
    in_range = (
        Sale.status == SALE_ACTIVE,
        Sale.created_at >= range_start,
        Sale.created_at < range_end,
    )

    count, amount = (
        db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
        .filter(*in_range)
        .one()
    )
    units = (
        db.session.query(func.coalesce(func.sum(SaleLine.quantity), 0))
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(*in_range)
        .scalar()
    )

    day_expr = func.date(Sale.created_at)
    per_day = (
        db.session.query(
            day_expr.label("day"),
            func.count(Sale.id).label("sales_count"),
            func.coalesce(func.sum(Sale.total), 0).label("amount"),
        )
        .filter(*in_range)
        .group_by(day_expr)
        .order_by(day_expr)
        .all()
    )

    per_seller = (
        db.session.query(
            User.id,
            User.name,
            func.count(Sale.id).label("sales_count"),
            func.coalesce(func.sum(Sale.total), 0).label("amount"),
        )
        .join(Sale, Sale.user_id == User.id)
        .filter(*in_range)
        .group_by(User.id, User.name)
        .order_by(func.sum(Sale.total).desc())
        .all()
    )

    per_category = (
        db.session.query(
            Product.category,
            func.count(Product.id).label("product_count"),
            func.coalesce(func.sum(Product.stock), 0).label("units"),
            func.coalesce(func.sum(Product.price * Product.stock), 0).label("value"),
        )
        .group_by(Product.category)
        .order_by(Product.category)
        .all()
    )

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "sales_count": count or 0,
        "total_amount": _money(amount),
        "units_sold": int(units or 0),
        "average_sale": round(_money(amount) / count, 2) if count else 0.0,
        "by_day": [
            {"day": str(row.day), "sales_count": row.sales_count, "amount": _money(row.amount)}
            for row in per_day
        ],
        "by_seller": [
            {"user_id": row.id, "name": row.name, "sales_count": row.sales_count, "amount": _money(row.amount)}
            for row in per_seller
        ],
        "inventory_by_category": [
            {
                "category": row.category,
                "product_count": row.product_count,
                "units": int(row.units or 0),
                "value": _money(row.value),
            }
            for row in per_category
        ],
    }
