"""
Orders API

    POST  /orders                  create (table marked OCCUPIED)
    GET   /orders                  list with outlet/status/date filters
    GET   /orders/{id}             one order with its lines
    PATCH /orders/{id}             status transition
    POST  /orders/{id}/complete    force-complete (stock deducted)
    PATCH /orders/{id}/items       add/remove/update lines
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.core.errors import ValidationFailed
from restopos.database import get_db
from restopos.models import OrderStatus
from restopos.schemas import (
    OrderActionResponse,
    OrderCreate,
    OrderItemsUpdate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    SideEffectResponse,
)
from restopos.services import order_workflow
from restopos.services import orders as order_service
from restopos.services.access import Actor
from restopos.services.effects import WorkflowResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


def action_response(result: WorkflowResult) -> OrderActionResponse:
    return OrderActionResponse(
        order=OrderResponse.model_validate(result.order),
        previous_status=result.previous_status,
        side_effects=[SideEffectResponse(**effect.to_dict()) for effect in result.side_effects],
        partial_failure=result.partial_failure,
    )


def parse_statuses(raw: Optional[str]) -> list[OrderStatus]:
    if not raw:
        return []
    try:
        return [OrderStatus(part.strip().upper()) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValidationFailed(
            "Invalid status filter",
            details={"options": [s.value for s in OrderStatus]},
        )


@router.post(
    "",
    response_model=OrderActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Order",
)
async def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(require_permission("orders", "create")),
    db: AsyncSession = Depends(get_db),
) -> OrderActionResponse:
    result = await order_service.create_order(db, payload, actor)
    return action_response(result)


@router.get("", response_model=OrderListResponse, summary="List Orders")
async def list_orders(
    outlet_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None, description="Comma-separated statuses, e.g. NEW,PREPARING"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(require_permission("orders", "view")),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Newest first."""
    orders = await order_service.list_orders(
        db,
        actor.listing_outlet(outlet_id),
        statuses=parse_statuses(status),
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        count=len(orders),
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_permission("orders", "view")),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await order_workflow.load_order(db, order_id, actor)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}", response_model=OrderActionResponse, summary="Change Order Status")
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(require_permission("orders", "edit")),
    db: AsyncSession = Depends(get_db),
) -> OrderActionResponse:
    """
    Move an order to a new status. CANCELLED needs a cancellation_reason;
    orders already COMPLETED or CANCELLED cannot change again.
    """
    result = await order_workflow.transition_order(
        db, order_id, payload.status, actor, payload.cancellation_reason
    )
    return action_response(result)


@router.post("/{order_id}/complete", response_model=OrderActionResponse, summary="Complete Order")
async def complete_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_permission("orders", "edit")),
    db: AsyncSession = Depends(get_db),
) -> OrderActionResponse:
    result = await order_workflow.complete_order(db, order_id, actor)
    return action_response(result)


@router.patch("/{order_id}/items", response_model=OrderResponse, summary="Edit Order Lines")
async def update_order_items(
    order_id: uuid.UUID,
    payload: OrderItemsUpdate,
    actor: Actor = Depends(require_permission("orders", "edit")),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await order_service.update_order_items(db, order_id, payload, actor)
    return OrderResponse.model_validate(order)
