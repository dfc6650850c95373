"""
Order taking: creation, listing and line edits.

Status changes live in restopos.services.order_workflow.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotFound, StateConflict, ValidationFailed
from restopos.models import MenuItem, Order, OrderItem, OrderStatus, OrderType, utcnow
from restopos.schemas import OrderCreate, OrderItemIn, OrderItemsUpdate
from restopos.services import pricing
from restopos.services import tables as table_service
from restopos.services.access import Actor
from restopos.services.effects import WorkflowResult
from restopos.services.order_workflow import fetch_order, load_order

logger = logging.getLogger(__name__)


async def _menu_items(
    db: AsyncSession, outlet_id: uuid.UUID, lines: Sequence[OrderItemIn]
) -> dict[uuid.UUID, MenuItem]:
    wanted = {line.item_id for line in lines}
    if not wanted:
        return {}

    result = await db.execute(
        select(MenuItem).where(MenuItem.id.in_(wanted), MenuItem.outlet_id == outlet_id)
    )
    items = {item.id: item for item in result.scalars().all()}

    missing = sorted(str(i) for i in wanted - items.keys())
    if missing:
        raise ValidationFailed("Menu items not found in this outlet", details={"item_ids": missing})

    unavailable = sorted(item.name for item in items.values() if not item.available)
    if unavailable:
        raise ValidationFailed("Menu items are not available", details={"items": unavailable})

    return items


def _build_line(item: MenuItem, line: OrderItemIn) -> OrderItem:
    return OrderItem(
        item_id=item.id,
        item_name=item.name,
        quantity=line.quantity,
        quantity_type=line.quantity_type,
        price=pricing.unit_price(item, line.quantity_type),
        notes=line.notes,
    )


async def create_order(db: AsyncSession, payload: OrderCreate, actor: Actor) -> WorkflowResult:
    outlet_id = actor.require_outlet(payload.outlet_id)

    if payload.order_type == OrderType.DINE_IN:
        if payload.table_id is None:
            raise ValidationFailed("Dine-in orders need a table_id")
        table = await table_service.get_table(db, payload.table_id)
        if table.outlet_id != outlet_id:
            raise ValidationFailed("Table does not belong to this outlet")
    elif payload.table_id is not None:
        raise ValidationFailed("Takeaway orders cannot be seated at a table")

    items = await _menu_items(db, outlet_id, payload.items)
    lines = [_build_line(items[line.item_id], line) for line in payload.items]

    subtotal = sum((line.price * line.quantity for line in lines), Decimal("0"))
    tax_rate = await pricing.outlet_tax_rate(db, outlet_id)
    subtotal, tax, total = pricing.compute_totals(subtotal, tax_rate)

    order = Order(
        outlet_id=outlet_id,
        table_id=payload.table_id,
        user_id=actor.id,
        order_type=payload.order_type,
        status=OrderStatus.NEW,
        subtotal=subtotal,
        tax=tax,
        total=total,
        items=lines,
    )
    db.add(order)
    await db.commit()
    order_id = order.id

    logger.info(f"Order {order_id} created ({payload.order_type.value}, {len(lines)} lines, total {total})")

    effects = []
    if payload.order_type == OrderType.DINE_IN:
        effect = await table_service.occupy_table(db, payload.table_id)
        if not effect.ok:
            logger.error(f"Order {order_id}: table {payload.table_id} could not be marked occupied")
        effects.append(effect)

    return WorkflowResult(order=await fetch_order(db, order_id), side_effects=effects)


async def list_orders(
    db: AsyncSession,
    outlet_id: Optional[uuid.UUID],
    statuses: Optional[list[OrderStatus]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    query = select(Order).order_by(Order.created_at.desc())

    if outlet_id is not None:
        query = query.where(Order.outlet_id == outlet_id)
    if statuses:
        query = query.where(Order.status.in_(statuses))
    if start_date is not None:
        query = query.where(Order.created_at >= start_date)
    if end_date is not None:
        query = query.where(Order.created_at <= end_date)

    result = await db.execute(query.offset(offset).limit(limit))
    return list(result.scalars().all())


async def update_order_items(
    db: AsyncSession, order_id: uuid.UUID, changes: OrderItemsUpdate, actor: Actor
) -> Order:
    """
    Add, remove and re-quantify lines of an open order, then recompute its
    totals at the outlet's current tax rate. Prices of existing lines stay
    as they were snapshotted.
    """
    order = await load_order(db, order_id, actor)
    if order.is_terminal:
        raise StateConflict("Cannot edit completed or cancelled orders")

    lines = {line.id: line for line in order.items}

    unknown = [str(i) for i in changes.items_to_remove if i not in lines]
    unknown += [str(u.order_item_id) for u in changes.items_to_update if u.order_item_id not in lines]
    if unknown:
        raise NotFound("Order lines not found on this order", details={"order_item_ids": unknown})

    for line_id in changes.items_to_remove:
        order.items.remove(lines[line_id])

    for change in changes.items_to_update:
        line = lines[change.order_item_id]
        if change.quantity is not None:
            line.quantity = change.quantity
        if "notes" in change.model_fields_set:
            line.notes = change.notes

    if changes.items_to_add:
        menu = await _menu_items(db, order.outlet_id, changes.items_to_add)
        for new_line in changes.items_to_add:
            order.items.append(_build_line(menu[new_line.item_id], new_line))

    if not order.items:
        await db.rollback()
        raise ValidationFailed("An order needs at least one item")

    subtotal = sum((line.price * line.quantity for line in order.items), Decimal("0"))
    tax_rate = await pricing.outlet_tax_rate(db, order.outlet_id)
    order.subtotal, order.tax, order.total = pricing.compute_totals(subtotal, tax_rate)
    order.updated_at = utcnow()

    await db.commit()
    logger.info(f"Order {order_id} lines updated, new total {order.total}")
    return await fetch_order(db, order_id)
