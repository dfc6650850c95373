"""
Table reconciliation tests.

Tests:
  1. OCCUPIED tables without an active dine-in order are reset to EMPTY
  2. Corrections are persisted and a second pass finds nothing
  3. Seated, BILLED and EMPTY tables are left alone
  4. The status filter sees the repaired state
"""
import uuid

import pytest

from restopos.models import DiningTable, OrderStatus, TableStatus
from restopos.services import tables as table_service
from tests.factories import reload, seat_order


async def add_table(db, outlet, name, status=TableStatus.EMPTY):
    table = DiningTable(outlet_id=outlet.id, name=name, capacity=2, status=status)
    db.add(table)
    await db.commit()
    return table


# ─── Reconciliation ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_stale_occupied_table_is_reset(db, outlet, table):
    table.status = TableStatus.OCCUPIED
    await db.commit()

    result = await table_service.reconcile_tables(db, outlet.id)

    assert result.corrected == [table.id]
    assert result.tables[0].status == TableStatus.EMPTY
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.EMPTY


@pytest.mark.asyncio
async def test_table_with_terminal_orders_only_is_reset(db, outlet, table, paneer):
    await seat_order(db, outlet, table, [(paneer, 1)], status=OrderStatus.COMPLETED)
    await seat_order(db, outlet, table, [(paneer, 1)], status=OrderStatus.CANCELLED)

    result = await table_service.reconcile_tables(db, outlet.id)

    assert result.corrected == [table.id]


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db, outlet, table):
    table.status = TableStatus.OCCUPIED
    await db.commit()

    first = await table_service.reconcile_tables(db, outlet.id)
    second = await table_service.reconcile_tables(db, outlet.id)

    assert first.corrected == [table.id]
    assert second.corrected == []
    assert [t.status for t in second.tables] == [TableStatus.EMPTY]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [OrderStatus.NEW, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED])
async def test_table_with_active_order_stays_occupied(db, outlet, table, paneer, status):
    await seat_order(db, outlet, table, [(paneer, 1)], status=status)

    result = await table_service.reconcile_tables(db, outlet.id)

    assert result.corrected == []
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.OCCUPIED


@pytest.mark.asyncio
async def test_billed_and_empty_tables_are_untouched(db, outlet):
    billed = await add_table(db, outlet, "T2", TableStatus.BILLED)
    empty = await add_table(db, outlet, "T3", TableStatus.EMPTY)

    result = await table_service.reconcile_tables(db, outlet.id)

    assert result.corrected == []
    assert (await reload(db, DiningTable, billed.id)).status == TableStatus.BILLED
    assert (await reload(db, DiningTable, empty.id)).status == TableStatus.EMPTY


@pytest.mark.asyncio
async def test_reconcile_is_scoped_to_outlet(db, outlet, other_outlet, table):
    elsewhere = await add_table(db, other_outlet, "X1", TableStatus.OCCUPIED)
    table.status = TableStatus.OCCUPIED
    await db.commit()

    result = await table_service.reconcile_tables(db, outlet.id)

    assert result.corrected == [table.id]
    assert (await reload(db, DiningTable, elsewhere.id)).status == TableStatus.OCCUPIED


@pytest.mark.asyncio
async def test_status_filter_applies_after_repair(db, outlet, table, paneer):
    stale = await add_table(db, outlet, "T2", TableStatus.OCCUPIED)
    await seat_order(db, outlet, table, [(paneer, 1)])

    result = await table_service.reconcile_tables(db, outlet.id, TableStatus.OCCUPIED)

    assert [t.id for t in result.tables] == [table.id]
    assert result.corrected == [stale.id]


# ─── Best-effort writes ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_release_of_missing_table_is_skipped(db):
    effect = await table_service.release_table(db, uuid.uuid4())

    assert effect.ok
    assert effect.skipped
