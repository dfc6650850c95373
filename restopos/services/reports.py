"""
Reports & Analytics

Read-only aggregates over the completed orders of one outlet; the orders
list also shows open and cancelled orders, and the outlet-wise report spans
every outlet. Date arguments are calendar days in UTC; a range covers
``start_date`` 00:00 up to the end of ``end_date``. Money is returned as
float rounded to two decimals.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotFound, ValidationFailed
from restopos.models import (
    Order,
    OrderItem,
    OrderStatus,
    Outlet,
    PaymentMethod,
    User,
    utcnow,
)
from restopos.services.pricing import to_money

logger = logging.getLogger(__name__)


def day_window(start: date, end: Optional[date] = None) -> tuple[datetime, datetime]:
    """[start 00:00, day after end 00:00) in UTC."""
    end = end or start
    if end < start:
        raise ValidationFailed("end_date must not be before start_date")
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper


def trailing_window(days: int) -> tuple[datetime, datetime]:
    now = utcnow()
    return now - timedelta(days=days), now


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes that are already UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _money(value: Any) -> float:
    return float(to_money(value or 0))


def _completed(outlet_id: uuid.UUID, lower: datetime, upper: datetime):
    return (
        Order.outlet_id == outlet_id,
        Order.status == OrderStatus.COMPLETED,
        Order.created_at >= lower,
        Order.created_at < upper,
    )


# =============================================================================
# REPORTS
# =============================================================================

async def daily_report(db: AsyncSession, outlet_id: uuid.UUID, day: date) -> dict[str, Any]:
    lower, upper = day_window(day)
    result = await db.execute(
        select(Order).where(*_completed(outlet_id, lower, upper)).order_by(Order.created_at.desc())
    )
    orders = list(result.scalars().all())

    return {
        "date": day.isoformat(),
        "total_sales": _money(sum((o.total for o in orders), Decimal("0"))),
        "total_orders": len(orders),
        "orders": orders,
    }


async def itemwise_report(
    db: AsyncSession, outlet_id: uuid.UUID, start: date, end: date
) -> list[dict[str, Any]]:
    """Quantity and revenue per item, highest revenue first."""
    lower, upper = day_window(start, end)
    revenue = func.sum(OrderItem.price * OrderItem.quantity)
    result = await db.execute(
        select(
            OrderItem.item_id,
            func.max(OrderItem.item_name),
            func.sum(OrderItem.quantity),
            revenue,
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(*_completed(outlet_id, lower, upper))
        .group_by(OrderItem.item_id)
        .order_by(revenue.desc())
    )
    return [
        {
            "item_id": str(item_id) if item_id else None,
            "item_name": name,
            "quantity": int(quantity or 0),
            "revenue": _money(total),
        }
        for item_id, name, quantity, total in result.all()
    ]


async def staff_report(
    db: AsyncSession, outlet_id: uuid.UUID, start: date, end: date
) -> list[dict[str, Any]]:
    lower, upper = day_window(start, end)
    sales = func.sum(Order.total)
    result = await db.execute(
        select(Order.user_id, func.max(User.name), func.count(Order.id), sales)
        .outerjoin(User, User.id == Order.user_id)
        .where(*_completed(outlet_id, lower, upper))
        .group_by(Order.user_id)
        .order_by(sales.desc())
    )
    return [
        {
            "user_id": str(user_id) if user_id else None,
            "user_name": name or "Unknown",
            "orders": count,
            "total_sales": _money(total),
        }
        for user_id, name, count, total in result.all()
    ]


# =============================================================================
# ANALYTICS
# =============================================================================

async def sales_summary(
    db: AsyncSession, outlet_id: uuid.UUID, start: date, end: date
) -> dict[str, Any]:
    """Counts include every order created in the window; sales only completed ones."""
    lower, upper = day_window(start, end)
    result = await db.execute(
        select(Order.status, func.count(Order.id), func.sum(Order.total))
        .where(Order.outlet_id == outlet_id, Order.created_at >= lower, Order.created_at < upper)
        .group_by(Order.status)
    )
    counts: dict[OrderStatus, int] = {}
    total_sales = Decimal("0")
    for status, count, total in result.all():
        counts[status] = count
        if status == OrderStatus.COMPLETED:
            total_sales = to_money(total)

    total_orders = sum(counts.values())
    completed = counts.get(OrderStatus.COMPLETED, 0)
    cancelled = counts.get(OrderStatus.CANCELLED, 0)

    return {
        "total_sales": _money(total_sales),
        "total_orders": total_orders,
        "completed_orders": completed,
        "cancelled_orders": cancelled,
        "average_order_value": _money(total_sales / completed) if completed else 0.0,
        "cancellation_rate": round(cancelled * 100 / total_orders, 2) if total_orders else 0.0,
    }


async def payment_totals(
    db: AsyncSession, outlet_id: uuid.UUID, lower: datetime, upper: datetime
) -> dict[str, float]:
    """Completed sales per payment method; every method is present."""
    result = await db.execute(
        select(Order.payment_method, func.sum(Order.total))
        .where(*_completed(outlet_id, lower, upper))
        .group_by(Order.payment_method)
    )
    breakdown = {method.value: 0.0 for method in PaymentMethod}
    for method, total in result.all():
        if method is not None:
            breakdown[method.value] = _money(total)
    return breakdown


async def payment_breakdown(
    db: AsyncSession, outlet_id: uuid.UUID, lower: datetime, upper: datetime
) -> list[dict[str, Any]]:
    totals = await payment_totals(db, outlet_id, lower, upper)
    return [{"method": method, "amount": amount} for method, amount in totals.items() if amount > 0]


async def top_items(
    db: AsyncSession, outlet_id: uuid.UUID, days: int = 30, limit: int = 5
) -> dict[str, list[dict[str, Any]]]:
    """Best and worst sellers by revenue over the trailing ``days``."""
    now = utcnow()
    start = (now - timedelta(days=days)).date()
    items = await itemwise_report(db, outlet_id, start, now.date())
    items = [item for item in items if item["item_id"] is not None]
    return {
        "top": items[:limit],
        "low": sorted(items, key=lambda item: item["revenue"])[:limit],
    }


async def outlet_summary(db: AsyncSession, outlet_id: uuid.UUID, days: int = 30) -> dict[str, Any]:
    outlet = await db.get(Outlet, outlet_id)
    if outlet is None:
        raise NotFound(f"Outlet {outlet_id} not found")

    lower, upper = trailing_window(days)
    result = await db.execute(
        select(func.count(Order.id), func.sum(Order.total)).where(*_completed(outlet_id, lower, upper))
    )
    count, total = result.one()
    total_sales = to_money(total or 0)

    return {
        "outlet": outlet,
        "summary": {
            "total_sales": float(total_sales),
            "total_orders": count,
            "avg_order_value": _money(total_sales / count) if count else 0.0,
            "payment_breakdown": await payment_totals(db, outlet_id, lower, upper),
            "period": f"{days} days",
        },
    }


async def _completed_sales(
    db: AsyncSession, outlet_id: uuid.UUID, lower: datetime, upper: datetime
) -> list[tuple[datetime, Decimal]]:
    result = await db.execute(
        select(Order.created_at, Order.total)
        .where(*_completed(outlet_id, lower, upper))
        .order_by(Order.created_at)
    )
    return [(_as_utc(created_at), total) for created_at, total in result.all()]


TREND_PERIODS = ("today", "week", "month", "year")


async def sales_trend(
    db: AsyncSession, outlet_id: uuid.UUID, start: date, end: date, period: str = "month"
) -> dict[str, Any]:
    """
    Completed sales bucketed for a chart, with empty buckets filled in:

        today -> 24 hourly points on ``start``
        week  -> 7 daily points from ``start``
        month -> 30 daily points from ``start``
        year  -> 12 monthly points of ``start``'s year

    Totals cover every completed order between ``start`` and ``end``, even
    those that fall outside the charted buckets.
    """
    if period not in TREND_PERIODS:
        raise ValidationFailed(f"period must be one of {list(TREND_PERIODS)}")

    lower, upper = day_window(start, end)
    sales = await _completed_sales(db, outlet_id, lower, upper)

    buckets: dict[Any, list[Decimal]] = {}
    for created_at, total in sales:
        if period == "today":
            key = created_at.hour
        elif period == "year":
            key = created_at.month
        else:
            key = created_at.date()
        buckets.setdefault(key, []).append(total)

    def point(key: Any, **labels: Any) -> dict[str, Any]:
        totals = buckets.get(key, [])
        return {**labels, "sales": _money(sum(totals, Decimal("0"))), "order_count": len(totals)}

    if period == "today":
        data = [point(hour, date=start.isoformat(), time=f"{hour:02d}:00") for hour in range(24)]
    elif period == "year":
        data = [point(month, date=f"{start.year}-{month:02d}") for month in range(1, 13)]
    else:
        span = 7 if period == "week" else 30
        days = [start + timedelta(days=offset) for offset in range(span)]
        data = [point(day, date=day.isoformat()) for day in days]

    return {
        "data": data,
        "period": period,
        "total_orders": len(sales),
        "total_sales": _money(sum((total for _, total in sales), Decimal("0"))),
    }


async def peak_hours(db: AsyncSession, outlet_id: uuid.UUID, days: int = 30) -> list[dict[str, Any]]:
    """Completed orders per hour of day (UTC) since midnight ``days`` ago."""
    today = utcnow().date()
    lower, upper = day_window(today - timedelta(days=days), today)
    counts = [0] * 24
    for created_at, _ in await _completed_sales(db, outlet_id, lower, upper):
        counts[created_at.hour] += 1
    return [{"hour": f"{hour}:00", "orders": count} for hour, count in enumerate(counts)]


async def staff_performance(
    db: AsyncSession, outlet_id: uuid.UUID, days: int = 30, limit: int = 5
) -> list[dict[str, Any]]:
    today = utcnow().date()
    rows = await staff_report(db, outlet_id, today - timedelta(days=days), today)
    ranked = [row for row in rows if row["user_id"] is not None][:limit]
    return [
        {"user_id": row["user_id"], "name": row["user_name"], "orders": row["orders"], "sales": row["total_sales"]}
        for row in ranked
    ]


async def orders_list(
    db: AsyncSession, outlet_id: uuid.UUID, start: date, end: date, group_by: str = "none"
) -> dict[str, Any]:
    """Every order in the window, newest first, optionally grouped per UTC day."""
    lower, upper = day_window(start, end)
    result = await db.execute(
        select(Order)
        .where(Order.outlet_id == outlet_id, Order.created_at >= lower, Order.created_at < upper)
        .order_by(Order.created_at.desc())
    )
    entries = [
        {
            "id": order.id,
            "order_number": f"ORD-{order.id.hex[:8].upper()}",
            "total": _money(order.total),
            "status": order.status,
            "payment_method": order.payment_method,
            "created_at": order.created_at,
            "items": [
                {"name": line.item_name, "quantity": line.quantity, "price": _money(line.price)}
                for line in order.items
            ],
        }
        for order in result.scalars().all()
    ]
    summary = {
        "total_orders": len(entries),
        "total_sales": round(sum(entry["total"] for entry in entries), 2),
    }

    if group_by not in ("date", "day"):
        return {"orders": entries, **summary}

    groups: dict[date, list[dict[str, Any]]] = {}
    for entry in entries:
        groups.setdefault(_as_utc(entry["created_at"]).date(), []).append(entry)
    return {
        "grouped": [
            {
                "date": day,
                "orders": day_entries,
                "total_sales": round(sum(entry["total"] for entry in day_entries), 2),
                "order_count": len(day_entries),
            }
            for day, day_entries in groups.items()
        ],
        **summary,
    }


async def outletwise_report(db: AsyncSession, start: date, end: date) -> list[dict[str, Any]]:
    """Completed sales per outlet across the whole business, highest first."""
    lower, upper = day_window(start, end)
    sales = func.sum(Order.total)
    result = await db.execute(
        select(Order.outlet_id, func.max(Outlet.name), func.count(Order.id), sales)
        .join(Outlet, Outlet.id == Order.outlet_id)
        .where(
            Order.status == OrderStatus.COMPLETED,
            Order.created_at >= lower,
            Order.created_at < upper,
        )
        .group_by(Order.outlet_id)
        .order_by(sales.desc())
    )
    return [
        {"outlet_id": outlet_id, "outlet_name": name, "orders": count, "total_sales": _money(total)}
        for outlet_id, name, count, total in result.all()
    ]
