"""
Reports & analytics tests.

Tests:
  1. Daily report counts completed orders only
  2. Item-wise and staff aggregates
  3. Sales summary rates and payment breakdown
  4. Chart series: sales trend, peak hours, staff performance
  5. Orders list and the cross-outlet report
  6. Date window validation
"""
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from restopos.core.errors import NotFound, ValidationFailed
from restopos.models import MenuItem, OrderStatus, PaymentMethod, utcnow
from restopos.services import billing, order_workflow, reports
from tests.factories import seat_order


@pytest.fixture
def today():
    return utcnow().date()


async def billed(db, outlet, lines, actor, user, method=PaymentMethod.CASH):
    order = await seat_order(db, outlet, None, lines, user=user)
    result = await billing.generate_bill(db, order.id, method, actor, Decimal("0.05"))
    return result.order


@pytest_asyncio.fixture
async def sales_day(db, outlet, paneer, lassi, cashier, cashier_actor):
    """Two bills (CASH 420, UPI 168), one open order, one cancellation."""
    await billed(db, outlet, [(paneer, 2)], cashier_actor, cashier)
    await billed(db, outlet, [(lassi, 2)], cashier_actor, cashier, PaymentMethod.UPI)
    await seat_order(db, outlet, None, [(paneer, 1)], user=cashier)
    cancelled = await seat_order(db, outlet, None, [(lassi, 1)], user=cashier)
    await order_workflow.transition_order(db, cancelled.id, OrderStatus.CANCELLED, cashier_actor, "Duplicate")


# ─── Reports ───────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_daily_report(db, outlet, sales_day, today):
    report = await reports.daily_report(db, outlet.id, today)

    assert report["date"] == today.isoformat()
    assert report["total_orders"] == 2
    assert report["total_sales"] == 588.0
    assert all(o.status == OrderStatus.COMPLETED for o in report["orders"])


@pytest.mark.asyncio
async def test_daily_report_for_another_day_is_empty(db, outlet, sales_day, today):
    report = await reports.daily_report(db, outlet.id, today - timedelta(days=1))

    assert report["total_orders"] == 0
    assert report["total_sales"] == 0.0


@pytest.mark.asyncio
async def test_itemwise_report_orders_by_revenue(db, outlet, sales_day, paneer, today):
    rows = await reports.itemwise_report(db, outlet.id, today, today)

    assert [(r["item_name"], r["quantity"], r["revenue"]) for r in rows] == [
        ("Paneer Tikka", 2, 400.0),
        ("Sweet Lassi", 2, 160.0),
    ]
    assert rows[0]["item_id"] == str(paneer.id)


@pytest.mark.asyncio
async def test_staff_report(db, outlet, sales_day, today):
    rows = await reports.staff_report(db, outlet.id, today, today)

    assert rows == [
        {"user_id": rows[0]["user_id"], "user_name": "Ravi Cashier", "orders": 2, "total_sales": 588.0}
    ]


# ─── Analytics ─────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sales_summary(db, outlet, sales_day, today):
    summary = await reports.sales_summary(db, outlet.id, today, today)

    assert summary == {
        "total_sales": 588.0,
        "total_orders": 4,
        "completed_orders": 2,
        "cancelled_orders": 1,
        "average_order_value": 294.0,
        "cancellation_rate": 25.0,
    }


@pytest.mark.asyncio
async def test_sales_summary_without_orders(db, outlet, today):
    summary = await reports.sales_summary(db, outlet.id, today, today)

    assert summary["total_orders"] == 0
    assert summary["average_order_value"] == 0.0
    assert summary["cancellation_rate"] == 0.0


@pytest.mark.asyncio
async def test_payment_breakdown_omits_unused_methods(db, outlet, sales_day, today):
    lower, upper = reports.day_window(today)

    totals = await reports.payment_totals(db, outlet.id, lower, upper)
    rows = await reports.payment_breakdown(db, outlet.id, lower, upper)

    assert totals == {"CASH": 420.0, "UPI": 168.0, "CARD": 0.0}
    assert rows == [{"method": "CASH", "amount": 420.0}, {"method": "UPI", "amount": 168.0}]


@pytest.mark.asyncio
async def test_top_items(db, outlet, sales_day):
    data = await reports.top_items(db, outlet.id, days=7, limit=1)

    assert [r["item_name"] for r in data["top"]] == ["Paneer Tikka"]
    assert [r["item_name"] for r in data["low"]] == ["Sweet Lassi"]


@pytest.mark.asyncio
async def test_outlet_summary(db, outlet, sales_day):
    data = await reports.outlet_summary(db, outlet.id, days=30)

    assert data["outlet"].id == outlet.id
    assert data["summary"]["total_orders"] == 2
    assert data["summary"]["avg_order_value"] == 294.0
    assert data["summary"]["period"] == "30 days"


@pytest.mark.asyncio
async def test_outlet_summary_unknown_outlet(db):
    with pytest.raises(NotFound):
        await reports.outlet_summary(db, uuid.uuid4())


# ─── Chart series ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sales_trend_today_has_every_hour(db, outlet, sales_day, today):
    trend = await reports.sales_trend(db, outlet.id, today, today, "today")

    assert [p["time"] for p in trend["data"]][:2] == ["00:00", "01:00"]
    assert len(trend["data"]) == 24
    assert sum(p["order_count"] for p in trend["data"]) == 2
    assert round(sum(p["sales"] for p in trend["data"]), 2) == 588.0
    assert (trend["total_orders"], trend["total_sales"]) == (2, 588.0)


@pytest.mark.asyncio
async def test_sales_trend_week_fills_empty_days(db, outlet, sales_day, today):
    trend = await reports.sales_trend(db, outlet.id, today, today + timedelta(days=6), "week")

    assert [p["date"] for p in trend["data"]] == [(today + timedelta(days=i)).isoformat() for i in range(7)]
    assert trend["data"][0] == {"date": today.isoformat(), "sales": 588.0, "order_count": 2}
    assert all(p["sales"] == 0.0 for p in trend["data"][1:])


@pytest.mark.asyncio
async def test_sales_trend_year_is_monthly(db, outlet, sales_day, today):
    trend = await reports.sales_trend(db, outlet.id, today, today, "year")

    assert len(trend["data"]) == 12
    this_month = trend["data"][today.month - 1]
    assert this_month["date"] == f"{today.year}-{today.month:02d}"
    assert this_month["sales"] == 588.0


@pytest.mark.asyncio
async def test_sales_trend_rejects_unknown_period(db, outlet, today):
    with pytest.raises(ValidationFailed):
        await reports.sales_trend(db, outlet.id, today, today, "decade")


@pytest.mark.asyncio
async def test_peak_hours_counts_completed_orders(db, outlet, sales_day):
    hours = await reports.peak_hours(db, outlet.id, days=7)

    assert [h["hour"] for h in hours][:3] == ["0:00", "1:00", "2:00"]
    assert sum(h["orders"] for h in hours) == 2


@pytest.mark.asyncio
async def test_staff_performance(db, outlet, sales_day, cashier):
    rows = await reports.staff_performance(db, outlet.id, days=7, limit=5)

    assert rows == [{"user_id": str(cashier.id), "name": "Ravi Cashier", "orders": 2, "sales": 588.0}]


# ─── Orders list & outlet-wise ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_orders_list_covers_every_status(db, outlet, sales_day, today):
    data = await reports.orders_list(db, outlet.id, today, today)

    assert data["total_orders"] == 4
    assert data["total_sales"] == 868.0
    assert {o["status"] for o in data["orders"]} == {
        OrderStatus.COMPLETED, OrderStatus.NEW, OrderStatus.CANCELLED
    }
    first = data["orders"][-1]
    assert first["order_number"] == f"ORD-{first['id'].hex[:8].upper()}"
    assert first["items"] == [{"name": "Paneer Tikka", "quantity": 2, "price": 200.0}]
    assert first["payment_method"] == PaymentMethod.CASH


@pytest.mark.asyncio
async def test_orders_list_grouped_by_date(db, outlet, sales_day, today):
    data = await reports.orders_list(db, outlet.id, today, today, group_by="date")

    assert "orders" not in data
    assert [(g["date"], g["order_count"], g["total_sales"]) for g in data["grouped"]] == [(today, 4, 868.0)]


@pytest.mark.asyncio
async def test_outletwise_report_ranks_outlets(db, outlet, other_outlet, sales_day, admin_actor, today):
    chai = MenuItem(outlet_id=other_outlet.id, name="Masala Chai", price=Decimal("40.00"))
    db.add(chai)
    await db.commit()
    await billed(db, other_outlet, [(chai, 5)], admin_actor, None)

    rows = await reports.outletwise_report(db, today, today)

    assert [(r["outlet_name"], r["orders"], r["total_sales"]) for r in rows] == [
        ("MG Road", 2, 588.0),
        ("Indiranagar", 1, 210.0),
    ]


# ─── Windows ───────────────────────────────────────────────────────────────────
def test_day_window_covers_whole_days():
    lower, upper = reports.day_window(date(2024, 3, 1), date(2024, 3, 3))

    assert lower.isoformat() == "2024-03-01T00:00:00+00:00"
    assert upper.isoformat() == "2024-03-04T00:00:00+00:00"


def test_day_window_rejects_reversed_range():
    with pytest.raises(ValidationFailed):
        reports.day_window(date(2024, 3, 3), date(2024, 3, 1))
