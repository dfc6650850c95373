"""
Tables API

Listing tables repairs OCCUPIED tables that have no active order left; the
ids of repaired tables are returned in ``corrected``.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.core.errors import StateConflict
from restopos.database import get_db
from restopos.models import DiningTable, TableStatus, utcnow
from restopos.schemas import TableCreate, TableListResponse, TableResponse, TableUpdate
from restopos.services import tables as table_service
from restopos.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tables", tags=["Tables"])


async def _owned_table(db: AsyncSession, table_id: uuid.UUID, actor: Actor) -> DiningTable:
    table = await table_service.get_table(db, table_id)
    actor.scope_outlet(table.outlet_id)
    return table


@router.get("", response_model=TableListResponse, summary="List Tables")
async def list_tables(
    outlet_id: Optional[uuid.UUID] = Query(None),
    status: Optional[TableStatus] = Query(None),
    actor: Actor = Depends(require_permission("tables", "view")),
    db: AsyncSession = Depends(get_db),
) -> TableListResponse:
    result = await table_service.reconcile_tables(db, actor.listing_outlet(outlet_id), status)
    return TableListResponse(
        tables=[TableResponse.model_validate(t) for t in result.tables],
        corrected=result.corrected,
    )


@router.post("", response_model=TableResponse, status_code=status.HTTP_201_CREATED)
async def create_table(
    payload: TableCreate,
    actor: Actor = Depends(require_permission("tables", "create")),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    table = DiningTable(
        outlet_id=actor.require_outlet(payload.outlet_id),
        name=payload.name,
        capacity=payload.capacity,
        status=TableStatus.EMPTY,
    )
    db.add(table)
    await db.commit()
    logger.info(f"Table {table.name} created at outlet {table.outlet_id}")
    return TableResponse.model_validate(table)


@router.get("/{table_id}", response_model=TableResponse)
async def get_table(
    table_id: uuid.UUID,
    actor: Actor = Depends(require_permission("tables", "view")),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    return TableResponse.model_validate(await _owned_table(db, table_id, actor))


@router.patch("/{table_id}", response_model=TableResponse)
async def update_table(
    table_id: uuid.UUID,
    payload: TableUpdate,
    actor: Actor = Depends(require_permission("tables", "edit")),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    """A manual OCCUPIED with no active order is reset by the next listing."""
    table = await _owned_table(db, table_id, actor)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(table, field, value)
    table.updated_at = utcnow()
    await db.commit()
    return TableResponse.model_validate(table)


@router.delete("/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_table(
    table_id: uuid.UUID,
    actor: Actor = Depends(require_permission("tables", "delete")),
    db: AsyncSession = Depends(get_db),
) -> None:
    table = await _owned_table(db, table_id, actor)
    if await table_service.active_table_ids(db, [table.id]):
        raise StateConflict("Table has active orders")
    await db.delete(table)
    await db.commit()
    logger.info(f"Table {table_id} deleted")
