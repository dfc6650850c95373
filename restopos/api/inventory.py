"""
Inventory API
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.database import get_db
from restopos.schemas import (
    InventoryAdjustResponse,
    InventoryLogResponse,
    InventoryResponse,
    InventoryUpdate,
)
from restopos.services import inventory as inventory_service
from restopos.services.access import Actor

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("", summary="List Stock")
async def list_inventory(
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("inventory", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[InventoryResponse]]:
    rows = await inventory_service.list_inventory(db, actor.require_outlet(outlet_id))
    return {"inventory": [InventoryResponse.model_validate(row) for row in rows]}


@router.patch("", response_model=InventoryAdjustResponse, summary="Set Stock")
async def adjust_inventory(
    payload: InventoryUpdate,
    actor: Actor = Depends(require_permission("inventory", "edit")),
    db: AsyncSession = Depends(get_db),
) -> InventoryAdjustResponse:
    """
    Set the absolute stock of an item. The delta (or the whole stock for a
    new row) is appended to the inventory log.
    """
    adjustment = await inventory_service.adjust_stock(
        db,
        actor.require_outlet(payload.outlet_id),
        payload.item_id,
        payload.stock,
        actor_id=actor.id,
        low_stock_threshold=payload.low_stock_threshold,
    )
    return InventoryAdjustResponse(
        inventory=InventoryResponse.model_validate(adjustment.inventory),
        change=adjustment.change,
        created=adjustment.created,
    )


@router.get("/alerts", summary="Low Stock Alerts")
async def low_stock_alerts(
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("inventory", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[InventoryResponse]]:
    rows = await inventory_service.low_stock_alerts(db, actor.require_outlet(outlet_id))
    return {"alerts": [InventoryResponse.model_validate(row) for row in rows]}


@router.get("/logs", summary="Stock Change Log")
async def inventory_logs(
    outlet_id: Optional[uuid.UUID] = Query(None),
    item_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(require_permission("inventory", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[InventoryLogResponse]]:
    logs = await inventory_service.list_logs(db, actor.require_outlet(outlet_id), item_id, limit)
    return {"logs": [InventoryLogResponse.model_validate(log) for log in logs]}
