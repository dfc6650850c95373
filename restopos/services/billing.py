"""
Billing Service

Generating a bill finalizes an order: tax and total are computed from the
stored line prices, then payment method, tax, total and COMPLETED are
written in a single conditional update (see order_workflow). Completion
side effects follow (table release, stock deduction), then the bill is
queued for the spreadsheet ledger.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.config import get_settings
from restopos.core.errors import StateConflict
from restopos.models import Order, OrderStatus, PaymentMethod
from restopos.services import pricing
from restopos.services.access import Actor
from restopos.services.effects import SideEffect, WorkflowResult
from restopos.services.order_workflow import apply_transition, load_order

logger = logging.getLogger(__name__)

LEDGER_EFFECT = "ledger_export"


def bill_view(order: Order) -> dict[str, Any]:
    """JSON-ready bill for an order (money as float)."""
    return {
        "order_id": str(order.id),
        "outlet_id": str(order.outlet_id),
        "order_type": order.order_type.value,
        "table_name": order.table.name if order.table else None,
        "status": order.status.value,
        "subtotal": float(order.subtotal),
        "tax": float(order.tax),
        "total": float(order.total),
        "payment_method": order.payment_method.value if order.payment_method else None,
        "items": [
            {"name": line.item_name, "quantity": line.quantity, "price": float(line.price)}
            for line in order.items
        ],
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "billed_at": order.completed_at.isoformat() if order.completed_at else None,
        "billed_by": order.creator.name if order.creator else None,
    }


def queue_ledger_export(order: Order) -> SideEffect:
    settings = get_settings()
    if not settings.ledger_export_enabled:
        return SideEffect(LEDGER_EFFECT, ok=True, target=str(order.id),
                          detail="ledger export disabled", skipped=True)

    from restopos.tasks import export_bill_to_ledger

    try:
        task = export_bill_to_ledger.delay(bill_view(order))
    except Exception as exc:
        # Broker errors vary by transport; the bill itself is already final
        logger.exception(f"Order {order.id}: could not queue ledger export")
        return SideEffect(LEDGER_EFFECT, ok=False, target=str(order.id), detail=str(exc))

    logger.info(f"Order {order.id}: ledger export queued as task {task.id}")
    return SideEffect(LEDGER_EFFECT, ok=True, target=str(order.id), detail=f"task {task.id}")


async def generate_bill(
    db: AsyncSession,
    order_id: uuid.UUID,
    payment_method: PaymentMethod,
    actor: Actor,
    tax_rate: Optional[Decimal] = None,
) -> WorkflowResult:
    """
    Compute tax and total at ``tax_rate`` (the outlet's rate when omitted)
    and complete the order.

    Raises StateConflict if the order is already COMPLETED or CANCELLED,
    including when another request completes it between the check and the
    write.
    """
    order = await load_order(db, order_id, actor)

    if order.status == OrderStatus.COMPLETED:
        raise StateConflict("Order is already completed", details={"order_id": str(order.id)})
    if order.status == OrderStatus.CANCELLED:
        raise StateConflict("Cannot bill a cancelled order", details={"order_id": str(order.id)})

    if tax_rate is None:
        tax_rate = await pricing.outlet_tax_rate(db, order.outlet_id)

    line_sum = sum((line.price * line.quantity for line in order.items), Decimal("0"))
    subtotal, tax, total = pricing.compute_totals(line_sum, tax_rate)

    result = await apply_transition(
        db,
        order,
        OrderStatus.COMPLETED,
        actor,
        extra_values={
            "payment_method": payment_method,
            "subtotal": subtotal,
            "tax": tax,
            "total": total,
        },
    )
    logger.info(f"Bill generated for order {order_id}: {subtotal} + {tax} = {total} ({payment_method.value})")

    result.side_effects.append(queue_ledger_export(result.order))
    return result


async def get_bill(db: AsyncSession, order_id: uuid.UUID, actor: Actor) -> Order:
    return await load_order(db, order_id, actor)


async def reprint_bill(db: AsyncSession, order_id: uuid.UUID, actor: Actor) -> Order:
    """Read-only; only completed orders have a bill to reprint."""
    order = await load_order(db, order_id, actor)
    if order.status != OrderStatus.COMPLETED:
        raise StateConflict(
            "Only completed orders can be reprinted",
            details={"order_id": str(order.id), "status": order.status.value},
        )
    return order
