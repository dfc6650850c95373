"""
Order lifecycle workflow tests.

Tests:
  1. Cancellation needs a non-empty reason, checked before any write
  2. Terminal orders reject further transitions
  3. Completion releases the table once no other active order is seated
     there, and deducts stock (clamped at zero)
  4. Secondary failures are reported in the result, not raised
  5. Two completions of the same order: exactly one wins
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from restopos.core.errors import StateConflict, ValidationFailed
from restopos.models import (
    DiningTable,
    Inventory,
    InventoryLog,
    Order,
    OrderStatus,
    TableStatus,
)
from restopos.services import inventory as inventory_service
from restopos.services import order_workflow
from restopos.services import tables as table_service
from restopos.services.access import resolve_actor
from restopos.services.effects import SideEffect
from tests.factories import add_stock, reload, seat_order


# ─── Cancellation ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_cancel_without_reason_is_rejected_before_any_write(db, outlet, table, paneer, cashier_actor, reason):
    order = await seat_order(db, outlet, table, [(paneer, 1)])

    with pytest.raises(ValidationFailed):
        await order_workflow.transition_order(db, order.id, OrderStatus.CANCELLED, cashier_actor, reason)

    assert (await reload(db, Order, order.id)).status == OrderStatus.NEW
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.OCCUPIED


@pytest.mark.asyncio
async def test_cancel_with_reason_keeps_reason_and_frees_table(db, outlet, table, paneer, cashier_actor):
    order = await seat_order(db, outlet, table, [(paneer, 1)])

    result = await order_workflow.transition_order(
        db, order.id, OrderStatus.CANCELLED, cashier_actor, "Guest left before serving"
    )

    assert result.order.status == OrderStatus.CANCELLED
    assert result.order.cancellation_reason == "Guest left before serving"
    assert result.previous_status == OrderStatus.NEW
    assert result.order.completed_at is not None
    assert not result.partial_failure
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.EMPTY


@pytest.mark.asyncio
async def test_cancel_does_not_deduct_stock(db, outlet, table, paneer, cashier_actor):
    await add_stock(db, outlet.id, paneer.id, 10)
    order = await seat_order(db, outlet, table, [(paneer, 2)])

    result = await order_workflow.transition_order(db, order.id, OrderStatus.CANCELLED, cashier_actor, "Wrong table")

    assert [e.name for e in result.side_effects] == ["table_release"]
    row = await db.scalar(select(Inventory).where(Inventory.item_id == paneer.id))
    assert (await reload(db, Inventory, row.id)).stock == 10


@pytest.mark.asyncio
async def test_reason_is_ignored_for_non_cancel_targets(db, outlet, table, paneer, cashier_actor):
    order = await seat_order(db, outlet, table, [(paneer, 1)])

    result = await order_workflow.transition_order(db, order.id, OrderStatus.PREPARING, cashier_actor, "n/a")

    assert result.order.status == OrderStatus.PREPARING
    assert result.order.cancellation_reason is None
    assert result.side_effects == []
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.OCCUPIED


# ─── Terminal states ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
@pytest.mark.parametrize("target", [OrderStatus.PREPARING, OrderStatus.COMPLETED, OrderStatus.CANCELLED])
async def test_completed_order_rejects_any_transition(db, outlet, table, paneer, cashier_actor, target):
    order = await seat_order(db, outlet, table, [(paneer, 1)])
    await order_workflow.complete_order(db, order.id, cashier_actor)

    with pytest.raises(StateConflict):
        await order_workflow.transition_order(db, order.id, target, cashier_actor, "late")

    assert (await reload(db, Order, order.id)).status == OrderStatus.COMPLETED


@pytest.mark.asyncio
async def test_forward_states_are_free_form(db, outlet, table, paneer, cashier_actor):
    order = await seat_order(db, outlet, table, [(paneer, 1)])

    for target in (OrderStatus.SERVED, OrderStatus.PREPARING, OrderStatus.READY):
        result = await order_workflow.transition_order(db, order.id, target, cashier_actor)
        assert result.order.status == target


# ─── Completion side effects ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_complete_releases_table_and_deducts_stock(db, outlet, table, paneer, lassi, cashier_actor):
    await add_stock(db, outlet.id, paneer.id, 10)
    await add_stock(db, outlet.id, lassi.id, 4)
    order = await seat_order(db, outlet, table, [(paneer, 2), (lassi, 3)], status=OrderStatus.SERVED)

    result = await order_workflow.complete_order(db, order.id, cashier_actor)

    assert result.order.status == OrderStatus.COMPLETED
    assert not result.partial_failure
    assert (await reload(db, DiningTable, table.id)).status == TableStatus.EMPTY

    stocks = dict((await db.execute(select(Inventory.item_id, Inventory.stock))).all())
    assert stocks == {paneer.id: 8, lassi.id: 1}

    logs = (await db.execute(select(InventoryLog).order_by(InventoryLog.change))).scalars().all()
    assert [(log.item_id, log.change) for log in logs] == [(lassi.id, -3), (paneer.id, -2)]
    assert all(str(order.id) in log.reason and "Ravi Cashier" in log.reason for log in logs)
    assert all(log.created_by == cashier_actor.id for log in logs)


@pytest.mark.asyncio
async def test_deduction_is_clamped_at_zero_but_logs_full_quantity(db, outlet, table, paneer, cashier_actor):
    row = await add_stock(db, outlet.id, paneer.id, 1)
    order = await seat_order(db, outlet, table, [(paneer, 2)])

    await order_workflow.complete_order(db, order.id, cashier_actor)

    assert (await reload(db, Inventory, row.id)).stock == 0
    changes = (await db.execute(select(InventoryLog.change))).scalars().all()
    assert changes == [-2]


@pytest.mark.asyncio
async def test_untracked_items_are_skipped(db, outlet, table, paneer, lassi, cashier_actor):
    await add_stock(db, outlet.id, lassi.id, 5)
    order = await seat_order(db, outlet, table, [(paneer, 2), (lassi, 1)])

    result = await order_workflow.complete_order(db, order.id, cashier_actor)

    deductions = {e.target: e for e in result.side_effects if e.name == "inventory_deduction"}
    assert deductions[str(paneer.id)].skipped
    assert deductions[str(paneer.id)].ok
    assert not deductions[str(lassi.id)].skipped
    assert await db.scalar(select(func.count(InventoryLog.id))) == 1


@pytest.mark.asyncio
async def test_takeaway_completion_has_no_table_effect(db, outlet, paneer, cashier_actor):
    order = await seat_order(db, outlet, None, [(paneer, 1)])

    result = await order_workflow.complete_order(db, order.id, cashier_actor)

    assert "table_release" not in [e.name for e in result.side_effects]


@pytest.mark.asyncio
async def test_shared_table_stays_occupied_until_last_order_ends(db, outlet, table, paneer, cashier_actor):
    first = await seat_order(db, outlet, table, [(paneer, 1)])
    second = await seat_order(db, outlet, table, [(paneer, 2)])
    first_id, second_id, table_id, outlet_id = first.id, second.id, table.id, outlet.id

    result = await order_workflow.complete_order(db, first_id, cashier_actor)

    release = next(e for e in result.side_effects if e.name == "table_release")
    assert release.ok and release.skipped
    assert (await reload(db, DiningTable, table_id)).status == TableStatus.OCCUPIED

    repaired = await table_service.reconcile_tables(db, outlet_id=outlet_id)
    assert repaired.corrected == []
    assert (await reload(db, DiningTable, table_id)).status == TableStatus.OCCUPIED

    await order_workflow.transition_order(db, second_id, OrderStatus.CANCELLED, cashier_actor, "Merged bill")
    assert (await reload(db, DiningTable, table_id)).status == TableStatus.EMPTY


# ─── Partial failure ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_failed_table_release_is_reported(db, outlet, table, paneer, cashier_actor, monkeypatch):
    await add_stock(db, outlet.id, paneer.id, 5)
    order = await seat_order(db, outlet, table, [(paneer, 1)])

    async def broken_release(session, table_id):
        return SideEffect("table_release", ok=False, target=str(table_id), detail="connection reset")

    monkeypatch.setattr(table_service, "release_table", broken_release)

    result = await order_workflow.complete_order(db, order.id, cashier_actor)

    assert result.order.status == OrderStatus.COMPLETED
    assert result.partial_failure
    assert [e.name for e in result.failed_effects] == ["table_release"]
    # Stock deduction still ran
    row = await db.scalar(select(Inventory).where(Inventory.item_id == paneer.id))
    assert (await reload(db, Inventory, row.id)).stock == 4


@pytest.mark.asyncio
async def test_one_failed_line_does_not_stop_the_others(db, outlet, table, paneer, lassi, cashier_actor, monkeypatch):
    await add_stock(db, outlet.id, paneer.id, 5)
    lassi_row = await add_stock(db, outlet.id, lassi.id, 5)
    order = await seat_order(db, outlet, table, [(paneer, 1), (lassi, 2)])

    # The failed line rolls the session back, expiring loaded rows
    paneer_id, lassi_row_id = paneer.id, lassi_row.id
    real_deduct = inventory_service._deduct_line

    async def flaky_deduct(session, snapshot, line, actor_id, actor_name):
        if line.item_id == paneer_id:
            raise OperationalError("UPDATE inventory", {}, Exception("database is locked"))
        return await real_deduct(session, snapshot, line, actor_id, actor_name)

    monkeypatch.setattr(inventory_service, "_deduct_line", flaky_deduct)

    result = await order_workflow.complete_order(db, order.id, cashier_actor)

    assert result.order.status == OrderStatus.COMPLETED
    assert [e.target for e in result.failed_effects] == [str(paneer_id)]
    assert (await reload(db, Inventory, lassi_row_id)).stock == 3


# ─── Concurrency ───────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_second_concurrent_completion_conflicts(session_maker, db, outlet, table, paneer, cashier):
    row = await add_stock(db, outlet.id, paneer.id, 10)
    order = await seat_order(db, outlet, table, [(paneer, 2)])

    async with session_maker() as first, session_maker() as second:
        actor_a = await resolve_actor(first, cashier.id)
        actor_b = await resolve_actor(second, cashier.id)

        # Both requests passed their "not yet completed" read
        loaded_a = await order_workflow.load_order(first, order.id, actor_a)
        loaded_b = await order_workflow.load_order(second, order.id, actor_b)

        await order_workflow.apply_transition(first, loaded_a, OrderStatus.COMPLETED, actor_a)

        with pytest.raises(StateConflict):
            await order_workflow.apply_transition(second, loaded_b, OrderStatus.COMPLETED, actor_b)

    assert (await reload(db, Inventory, row.id)).stock == 8
    assert await db.scalar(select(func.count(InventoryLog.id))) == 1
