"""
Order Lifecycle Workflow

State machine:

    NEW -> PREPARING -> READY -> SERVED        (free-form among these)
      \\________________________________\\
                                         -> COMPLETED  (terminal)
                                         -> CANCELLED  (terminal, needs a reason)

A transition is one primary write followed by independent secondary writes:

    1. conditional status update
       UPDATE orders SET ... WHERE id = :id AND status NOT IN (COMPLETED, CANCELLED)
       zero rows -> the order reached a terminal state first -> StateConflict
    2. terminal target on a seated DINE_IN order -> table released to EMPTY
    3. COMPLETED target -> stock deducted for every line

If step 1 fails nothing else runs. Failures in steps 2-3 are rolled back,
logged and returned in WorkflowResult.side_effects.
"""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotFound, StateConflict, ValidationFailed
from restopos.models import (
    TERMINAL_ORDER_STATUSES,
    Order,
    OrderStatus,
    OrderType,
    utcnow,
)
from restopos.services import inventory as inventory_service
from restopos.services import tables as table_service
from restopos.services.access import Actor
from restopos.services.effects import OrderSnapshot, SideEffect, WorkflowResult

logger = logging.getLogger(__name__)


async def fetch_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
    """Load an order and its lines, overwriting any stale state in the session."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_order(db: AsyncSession, order_id: uuid.UUID, actor: Actor) -> Order:
    """Fetch an order the actor is allowed to see, or raise NotFound/PermissionDenied."""
    order = await fetch_order(db, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    actor.scope_outlet(order.outlet_id)
    return order


async def run_terminal_effects(
    db: AsyncSession,
    snapshot: OrderSnapshot,
    new_status: OrderStatus,
    actor: Optional[Actor] = None,
) -> list[SideEffect]:
    effects: list[SideEffect] = []

    if snapshot.order_type == OrderType.DINE_IN and snapshot.table_id is not None:
        effects.append(await table_service.release_table(db, snapshot.table_id))

    if new_status == OrderStatus.COMPLETED:
        effects.extend(
            await inventory_service.deduct_for_order(
                db,
                snapshot,
                actor_id=actor.id if actor else None,
                actor_name=actor.name if actor else None,
            )
        )

    for effect in effects:
        if not effect.ok:
            logger.error(f"Order {snapshot.id}: {effect.name} failed for {effect.target}: {effect.detail}")

    return effects


async def apply_transition(
    db: AsyncSession,
    order: Order,
    new_status: OrderStatus,
    actor: Optional[Actor] = None,
    extra_values: Optional[dict[str, Any]] = None,
) -> WorkflowResult:
    """
    Move a loaded order to ``new_status`` and run the side effects.

    ``extra_values`` are written in the same conditional update (billing uses
    it for payment method, tax and total).
    """
    if order.is_terminal:
        raise StateConflict(
            f"Order is already {order.status.value.lower()}",
            details={"order_id": str(order.id), "status": order.status.value},
        )

    snapshot = OrderSnapshot.of(order)
    now = utcnow()
    values: dict[str, Any] = {"status": new_status, "updated_at": now}
    if new_status in TERMINAL_ORDER_STATUSES:
        values["completed_at"] = now
    if extra_values:
        values.update(extra_values)

    result = await db.execute(
        update(Order)
        .where(Order.id == snapshot.id, Order.status.not_in(TERMINAL_ORDER_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        current = await fetch_order(db, snapshot.id)
        status = current.status.value if current else "deleted"
        raise StateConflict(
            f"Order changed concurrently and is now {status.lower()}",
            details={"order_id": str(snapshot.id), "status": status},
        )
    await db.commit()

    logger.info(f"Order {snapshot.id}: {snapshot.status.value} -> {new_status.value}")

    effects: list[SideEffect] = []
    if new_status in TERMINAL_ORDER_STATUSES:
        effects = await run_terminal_effects(db, snapshot, new_status, actor)

    refreshed = await fetch_order(db, snapshot.id)
    return WorkflowResult(order=refreshed, previous_status=snapshot.status, side_effects=effects)


async def transition_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    new_status: OrderStatus,
    actor: Actor,
    cancellation_reason: Optional[str] = None,
) -> WorkflowResult:
    """Status change requested through PATCH /orders/{id}."""
    reason = (cancellation_reason or "").strip()
    if new_status == OrderStatus.CANCELLED and not reason:
        raise ValidationFailed("Cancellation reason is required when cancelling an order")

    order = await load_order(db, order_id, actor)

    extra = {"cancellation_reason": cancellation_reason} if new_status == OrderStatus.CANCELLED else None
    return await apply_transition(db, order, new_status, actor, extra)


async def complete_order(db: AsyncSession, order_id: uuid.UUID, actor: Actor) -> WorkflowResult:
    """Force-complete an order without generating a bill."""
    order = await load_order(db, order_id, actor)
    return await apply_transition(db, order, OrderStatus.COMPLETED, actor)
