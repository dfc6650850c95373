"""
Table Service

Table status is denormalized from order state: a table is OCCUPIED while a
DINE_IN order in NEW/PREPARING/READY/SERVED references it. Writes that keep
it in sync (seat on order creation, release on a terminal transition) are
best-effort, so listing tables also repairs any OCCUPIED table that has no
active order left.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotFound
from restopos.models import (
    ACTIVE_ORDER_STATUSES,
    DiningTable,
    Order,
    OrderType,
    TableStatus,
    utcnow,
)
from restopos.services.effects import SideEffect

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    tables: list[DiningTable]
    corrected: list[uuid.UUID] = field(default_factory=list)


async def get_table(db: AsyncSession, table_id: uuid.UUID) -> DiningTable:
    result = await db.execute(select(DiningTable).where(DiningTable.id == table_id))
    table = result.scalar_one_or_none()
    if table is None:
        raise NotFound(f"Table {table_id} not found")
    return table


async def set_table_status(
    db: AsyncSession, table_id: uuid.UUID, status: TableStatus, effect_name: str
) -> SideEffect:
    """
    Secondary write: move one table to ``status`` and commit.

    Failures are rolled back, logged and returned, never raised.
    """
    try:
        result = await db.execute(select(DiningTable).where(DiningTable.id == table_id))
        table = result.scalar_one_or_none()
        if table is None:
            logger.warning(f"{effect_name}: table {table_id} no longer exists")
            return SideEffect(effect_name, ok=True, target=str(table_id),
                              detail="table not found", skipped=True)

        table.status = status
        table.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(f"{effect_name} failed for table {table_id}: {exc}")
        return SideEffect(effect_name, ok=False, target=str(table_id), detail=str(exc))

    logger.info(f"Table {table_id} -> {status.value}")
    return SideEffect(effect_name, ok=True, target=str(table_id))


async def occupy_table(db: AsyncSession, table_id: uuid.UUID) -> SideEffect:
    return await set_table_status(db, table_id, TableStatus.OCCUPIED, "table_occupy")


async def release_table(db: AsyncSession, table_id: uuid.UUID) -> SideEffect:
    """Free a table unless another active dine-in order is still seated at it."""
    try:
        still_seated = await active_table_ids(db, [table_id])
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(f"table_release failed for table {table_id}: {exc}")
        return SideEffect("table_release", ok=False, target=str(table_id), detail=str(exc))

    if still_seated:
        logger.info(f"Table {table_id} kept OCCUPIED: another active order is seated")
        return SideEffect("table_release", ok=True, target=str(table_id),
                          detail="another active order is seated", skipped=True)

    return await set_table_status(db, table_id, TableStatus.EMPTY, "table_release")


async def active_table_ids(db: AsyncSession, table_ids: list[uuid.UUID]) -> set[uuid.UUID]:
    """Ids among ``table_ids`` that have at least one active dine-in order."""
    if not table_ids:
        return set()
    result = await db.execute(
        select(Order.table_id)
        .where(
            Order.table_id.in_(table_ids),
            Order.order_type == OrderType.DINE_IN,
            Order.status.in_(ACTIVE_ORDER_STATUSES),
        )
        .distinct()
    )
    return set(result.scalars().all())


async def reconcile_tables(
    db: AsyncSession,
    outlet_id: Optional[uuid.UUID] = None,
    status: Optional[TableStatus] = None,
) -> ReconcileResult:
    """
    List tables, first correcting OCCUPIED tables with no active order to
    EMPTY and persisting the corrections in one commit.

    Idempotent: a second call right after the first finds nothing to correct
    and performs no writes. The ``status`` filter is applied after repair.
    """
    query = select(DiningTable).order_by(DiningTable.name)
    if outlet_id is not None:
        query = query.where(DiningTable.outlet_id == outlet_id)

    result = await db.execute(query)
    tables = list(result.scalars().all())

    occupied = [t for t in tables if t.status == TableStatus.OCCUPIED]
    busy = await active_table_ids(db, [t.id for t in occupied])
    stale = [t for t in occupied if t.id not in busy]

    corrected: list[uuid.UUID] = []
    if stale:
        now = utcnow()
        for table in stale:
            table.status = TableStatus.EMPTY
            table.updated_at = now
        await db.commit()
        corrected = [t.id for t in stale]
        logger.warning(
            f"Reconciled {len(corrected)} occupied table(s) with no active order: "
            f"{[str(t) for t in corrected]}"
        )

    if status is not None:
        tables = [t for t in tables if t.status == status]

    return ReconcileResult(tables=tables, corrected=corrected)
