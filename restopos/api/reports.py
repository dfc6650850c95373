"""
Reports & Analytics API (JSON only)
"""

import uuid
from datetime import date, timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_admin, require_permission
from restopos.database import get_db
from restopos.models import utcnow
from restopos.schemas import (
    DailyReportResponse,
    ItemwiseReportResponse,
    OrderResponse,
    OrdersListResponse,
    OutletwiseReportResponse,
    PaymentBreakdownResponse,
    PeakHoursResponse,
    SalesSummaryResponse,
    SalesTrendResponse,
    StaffPerformanceResponse,
    StaffReportResponse,
    TopItemsResponse,
)
from restopos.services import reports
from restopos.services.access import Actor

router = APIRouter(prefix="/reports", tags=["Reports"])
analytics_router = APIRouter(prefix="/analytics", tags=["Analytics"])


def today() -> date:
    return utcnow().date()


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/daily", response_model=DailyReportResponse)
async def daily_report(
    day: Optional[date] = Query(None, alias="date"),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("reports", "view")),
    db: AsyncSession = Depends(get_db),
) -> DailyReportResponse:
    data = await reports.daily_report(db, actor.require_outlet(outlet_id), day or today())
    return DailyReportResponse(
        date=data["date"],
        total_sales=data["total_sales"],
        total_orders=data["total_orders"],
        orders=[OrderResponse.model_validate(o) for o in data["orders"]],
    )


@router.get("/itemwise", response_model=ItemwiseReportResponse)
async def itemwise_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("reports", "view")),
    db: AsyncSession = Depends(get_db),
) -> ItemwiseReportResponse:
    """Quantity and revenue per item, highest revenue first."""
    items = await reports.itemwise_report(
        db, actor.require_outlet(outlet_id), start_date or today(), end_date or today()
    )
    return ItemwiseReportResponse(items=items)


@router.get("/staff", response_model=StaffReportResponse)
async def staff_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("reports", "view")),
    db: AsyncSession = Depends(get_db),
) -> StaffReportResponse:
    staff = await reports.staff_report(
        db, actor.require_outlet(outlet_id), start_date or today(), end_date or today()
    )
    return StaffReportResponse(staff=staff)


@router.get("/outletwise", response_model=OutletwiseReportResponse)
async def outletwise_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OutletwiseReportResponse:
    """Completed sales per outlet; admin only."""
    outlets = await reports.outletwise_report(db, start_date or today(), end_date or today())
    return OutletwiseReportResponse(outlets=outlets)


# =============================================================================
# ANALYTICS
# =============================================================================

@analytics_router.get("/summary", response_model=SalesSummaryResponse)
async def sales_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> SalesSummaryResponse:
    data = await reports.sales_summary(db, actor.require_outlet(outlet_id), start_date, end_date)
    return SalesSummaryResponse(**data)


@analytics_router.get("/payment-breakdown", response_model=PaymentBreakdownResponse)
async def payment_breakdown(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    days: int = Query(30, ge=1, le=366),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> PaymentBreakdownResponse:
    """Explicit dates win over ``days``; methods with no sales are omitted."""
    if start_date and end_date:
        lower, upper = reports.day_window(start_date, end_date)
    else:
        lower, upper = reports.day_window(today() - timedelta(days=days), today())
    data = await reports.payment_breakdown(db, actor.require_outlet(outlet_id), lower, upper)
    return PaymentBreakdownResponse(data=data)


@analytics_router.get("/top-items", response_model=TopItemsResponse)
async def top_items(
    days: int = Query(30, ge=1, le=366),
    limit: int = Query(5, ge=1, le=50),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> TopItemsResponse:
    data = await reports.top_items(db, actor.require_outlet(outlet_id), days, limit)
    return TopItemsResponse(**data)


@analytics_router.get("/sales-trend", response_model=SalesTrendResponse)
async def sales_trend(
    start_date: date = Query(...),
    end_date: date = Query(...),
    period: Literal["today", "week", "month", "year"] = Query("month"),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> SalesTrendResponse:
    data = await reports.sales_trend(db, actor.require_outlet(outlet_id), start_date, end_date, period)
    return SalesTrendResponse(**data)


@analytics_router.get("/peak-hours", response_model=PeakHoursResponse)
async def peak_hours(
    days: int = Query(30, ge=1, le=366),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> PeakHoursResponse:
    return PeakHoursResponse(data=await reports.peak_hours(db, actor.require_outlet(outlet_id), days))


@analytics_router.get("/staff-performance", response_model=StaffPerformanceResponse)
async def staff_performance(
    days: int = Query(30, ge=1, le=366),
    limit: int = Query(5, ge=1, le=50),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> StaffPerformanceResponse:
    data = await reports.staff_performance(db, actor.require_outlet(outlet_id), days, limit)
    return StaffPerformanceResponse(data=data)


@analytics_router.get("/orders-list", response_model=OrdersListResponse)
async def orders_list(
    start_date: date = Query(...),
    end_date: date = Query(...),
    group_by: Literal["none", "date", "day"] = Query("none"),
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("analytics", "view")),
    db: AsyncSession = Depends(get_db),
) -> OrdersListResponse:
    data = await reports.orders_list(db, actor.require_outlet(outlet_id), start_date, end_date, group_by)
    return OrdersListResponse(**data)
