"""
Inventory tests.

Tests:
  1. First stock entry creates the row and logs "Initial stock"
  2. Manual adjustment sets absolute stock and logs the delta
  3. Low stock alerts use stock <= threshold
  4. Log listing is newest first and filterable by item
"""
import pytest
from sqlalchemy import select

from restopos.core.errors import NotFound
from restopos.models import InventoryLog
from restopos.services import inventory as inventory_service
from tests.factories import add_stock


# ─── Adjustments ───────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_first_entry_logs_initial_stock(db, outlet, paneer, admin):
    adjustment = await inventory_service.adjust_stock(db, outlet.id, paneer.id, 25, admin.id)

    assert adjustment.created
    assert adjustment.change == 25
    assert adjustment.inventory.stock == 25
    assert adjustment.inventory.low_stock_threshold == 10, "configured default threshold"
    assert adjustment.inventory.item_name == "Paneer Tikka"

    log = await db.scalar(select(InventoryLog))
    assert (log.change, log.reason, log.created_by) == (25, "Initial stock", admin.id)


@pytest.mark.asyncio
async def test_adjustment_logs_delta(db, outlet, paneer, admin):
    await add_stock(db, outlet.id, paneer.id, 20)

    lowered = await inventory_service.adjust_stock(db, outlet.id, paneer.id, 12, admin.id, low_stock_threshold=3)

    assert not lowered.created
    assert lowered.change == -8
    assert lowered.inventory.stock == 12
    assert lowered.inventory.low_stock_threshold == 3

    raised = await inventory_service.adjust_stock(db, outlet.id, paneer.id, 30, admin.id)
    assert raised.change == 18
    assert raised.inventory.low_stock_threshold == 3, "threshold kept when not given"

    reasons = (await db.execute(select(InventoryLog.reason))).scalars().all()
    assert set(reasons) == {"Manual adjustment"}


@pytest.mark.asyncio
async def test_adjusting_item_from_other_outlet_is_not_found(db, other_outlet, paneer, admin):
    with pytest.raises(NotFound):
        await inventory_service.adjust_stock(db, other_outlet.id, paneer.id, 5, admin.id)


# ─── Alerts & logs ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_low_stock_alerts(db, outlet, paneer, lassi):
    await add_stock(db, outlet.id, paneer.id, 5, threshold=5)
    await add_stock(db, outlet.id, lassi.id, 6, threshold=5)

    alerts = await inventory_service.low_stock_alerts(db, outlet.id)

    assert [row.item_id for row in alerts] == [paneer.id], "stock equal to threshold is low"
    assert alerts[0].is_low


@pytest.mark.asyncio
async def test_logs_filter_by_item(db, outlet, paneer, lassi, admin):
    await inventory_service.adjust_stock(db, outlet.id, paneer.id, 10, admin.id)
    await inventory_service.adjust_stock(db, outlet.id, lassi.id, 4, admin.id)
    await inventory_service.adjust_stock(db, outlet.id, paneer.id, 7, admin.id)

    logs = await inventory_service.list_logs(db, outlet.id, item_id=paneer.id)

    assert sorted(log.change for log in logs) == [-3, 10]
    assert len(await inventory_service.list_logs(db, outlet.id)) == 3
    assert await inventory_service.list_logs(db, outlet.id, limit=1) != []
