"""
Inventory Service

Stock lives in one row per (outlet, item). Every change goes through a
logged delta in inventory_logs:

    - order completion: change = -quantity, stock floored at zero
    - manual adjustment: change = new_stock - old_stock
    - first stock entry: change = new_stock ("Initial stock")

The zero floor is intentional clamping. When it is hit the logged change is
still the full ordered quantity, so the sum of the log can drift below the
stored stock; stock never goes negative.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.config import get_settings
from restopos.core.errors import NotFound
from restopos.models import Inventory, InventoryLog, MenuItem, utcnow
from restopos.services.effects import OrderLine, OrderSnapshot, SideEffect

logger = logging.getLogger(__name__)

EFFECT_NAME = "inventory_deduction"


@dataclass
class Adjustment:
    inventory: Inventory
    change: int
    created: bool


# =============================================================================
# AUTO-DEDUCTION
# =============================================================================

async def _deduct_line(
    db: AsyncSession,
    order: OrderSnapshot,
    line: OrderLine,
    actor_id: Optional[uuid.UUID],
    actor_name: Optional[str],
) -> SideEffect:
    target = str(line.item_id)

    result = await db.execute(
        select(Inventory.id, Inventory.stock).where(
            Inventory.outlet_id == order.outlet_id,
            Inventory.item_id == line.item_id,
        )
    )
    row = result.first()
    if row is None:
        # Item has no stock tracking configured
        return SideEffect(EFFECT_NAME, ok=True, target=target,
                          detail="no inventory row", skipped=True)

    inventory_id, before = row

    # Single conditional write so concurrent completions cannot lose updates
    await db.execute(
        update(Inventory)
        .where(Inventory.id == inventory_id)
        .values(
            stock=case(
                (Inventory.stock > line.quantity, Inventory.stock - line.quantity),
                else_=0,
            ),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    reason = f"Order {order.id} completed"
    if actor_name:
        reason += f" by {actor_name}"
    db.add(
        InventoryLog(
            outlet_id=order.outlet_id,
            item_id=line.item_id,
            change=-line.quantity,
            reason=reason,
            created_by=actor_id,
        )
    )
    await db.commit()

    after = await db.scalar(select(Inventory.stock).where(Inventory.id == inventory_id))
    if before < line.quantity:
        logger.warning(
            f"Stock for item {line.item_id} clamped at 0 "
            f"(had {before}, order {order.id} needed {line.quantity})"
        )
    return SideEffect(EFFECT_NAME, ok=True, target=target, detail=f"stock {before} -> {after}")


async def deduct_for_order(
    db: AsyncSession,
    order: OrderSnapshot,
    actor_id: Optional[uuid.UUID] = None,
    actor_name: Optional[str] = None,
) -> list[SideEffect]:
    """
    Deduct stock for every line of a completed order.

    Lines are independent: a failed line is rolled back, logged and
    reported, and the remaining lines are still processed.
    """
    effects: list[SideEffect] = []

    for line in order.lines:
        if line.item_id is None:
            effects.append(SideEffect(EFFECT_NAME, ok=True, detail="menu item deleted", skipped=True))
            continue
        try:
            effects.append(await _deduct_line(db, order, line, actor_id, actor_name))
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(f"Stock deduction failed for item {line.item_id} of order {order.id}: {exc}")
            effects.append(SideEffect(EFFECT_NAME, ok=False, target=str(line.item_id), detail=str(exc)))

    return effects


# =============================================================================
# MANUAL ADJUSTMENT
# =============================================================================

async def adjust_stock(
    db: AsyncSession,
    outlet_id: uuid.UUID,
    item_id: uuid.UUID,
    stock: int,
    actor_id: Optional[uuid.UUID],
    low_stock_threshold: Optional[int] = None,
) -> Adjustment:
    """Set the absolute stock of an item, logging the resulting delta."""
    item = await db.scalar(
        select(MenuItem).where(MenuItem.id == item_id, MenuItem.outlet_id == outlet_id)
    )
    if item is None:
        raise NotFound(f"Menu item {item_id} not found in this outlet")

    result = await db.execute(
        select(Inventory).where(Inventory.outlet_id == outlet_id, Inventory.item_id == item_id)
    )
    inventory = result.scalar_one_or_none()

    if inventory is None:
        threshold = low_stock_threshold
        if threshold is None:
            threshold = get_settings().default_low_stock_threshold
        inventory = Inventory(
            outlet_id=outlet_id,
            item_id=item_id,
            stock=stock,
            low_stock_threshold=threshold,
        )
        db.add(inventory)
        change, reason, created = stock, "Initial stock", True
    else:
        change = stock - inventory.stock
        inventory.stock = stock
        if low_stock_threshold is not None:
            inventory.low_stock_threshold = low_stock_threshold
        inventory.updated_at = utcnow()
        reason, created = "Manual adjustment", False

    db.add(
        InventoryLog(
            outlet_id=outlet_id,
            item_id=item_id,
            change=change,
            reason=reason,
            created_by=actor_id,
        )
    )
    await db.commit()
    inventory = await db.scalar(
        select(Inventory)
        .where(Inventory.id == inventory.id)
        .execution_options(populate_existing=True)
    )

    logger.info(f"{reason}: item {item_id} at outlet {outlet_id} -> {stock} ({change:+d})")
    return Adjustment(inventory=inventory, change=change, created=created)


# =============================================================================
# QUERIES
# =============================================================================

async def list_inventory(db: AsyncSession, outlet_id: uuid.UUID) -> list[Inventory]:
    result = await db.execute(
        select(Inventory)
        .where(Inventory.outlet_id == outlet_id)
        .order_by(Inventory.created_at.desc())
    )
    return list(result.scalars().all())


async def low_stock_alerts(db: AsyncSession, outlet_id: uuid.UUID) -> list[Inventory]:
    result = await db.execute(
        select(Inventory)
        .where(
            Inventory.outlet_id == outlet_id,
            Inventory.stock <= Inventory.low_stock_threshold,
        )
        .order_by(Inventory.stock)
    )
    return list(result.scalars().all())


async def list_logs(
    db: AsyncSession,
    outlet_id: uuid.UUID,
    item_id: Optional[uuid.UUID] = None,
    limit: int = 100,
) -> list[InventoryLog]:
    query = (
        select(InventoryLog)
        .where(InventoryLog.outlet_id == outlet_id)
        .order_by(InventoryLog.created_at.desc())
        .limit(limit)
    )
    if item_id is not None:
        query = query.where(InventoryLog.item_id == item_id)
    result = await db.execute(query)
    return list(result.scalars().all())
