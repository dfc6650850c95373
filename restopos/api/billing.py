"""
Billing API
"""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.database import get_db
from restopos.schemas import (
    BillGenerateRequest,
    BillReprintRequest,
    BillResponse,
    SideEffectResponse,
)
from restopos.services import billing
from restopos.services.access import Actor

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/generate", response_model=BillResponse, summary="Generate Bill")
async def generate_bill(
    payload: BillGenerateRequest,
    actor: Actor = Depends(require_permission("bills", "create")),
    db: AsyncSession = Depends(get_db),
) -> BillResponse:
    """
    Compute tax and total, record the payment method and complete the order.

    The order must not already be COMPLETED (or CANCELLED). Table release,
    stock deduction and ledger export outcomes are listed in side_effects.
    """
    tax_rate = Decimal(str(payload.tax_rate)) if payload.tax_rate is not None else None
    result = await billing.generate_bill(db, payload.order_id, payload.payment_method, actor, tax_rate)
    return BillResponse(
        **billing.bill_view(result.order),
        side_effects=[SideEffectResponse(**effect.to_dict()) for effect in result.side_effects],
        partial_failure=result.partial_failure,
    )


@router.post("/reprint", response_model=BillResponse, summary="Reprint Bill")
async def reprint_bill(
    payload: BillReprintRequest,
    actor: Actor = Depends(require_permission("bills", "view")),
    db: AsyncSession = Depends(get_db),
) -> BillResponse:
    order = await billing.reprint_bill(db, payload.order_id, actor)
    return BillResponse(**billing.bill_view(order))


@router.get("/{order_id}", response_model=BillResponse)
async def get_bill(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_permission("bills", "view")),
    db: AsyncSession = Depends(get_db),
) -> BillResponse:
    order = await billing.get_bill(db, order_id, actor)
    return BillResponse(**billing.bill_view(order))
