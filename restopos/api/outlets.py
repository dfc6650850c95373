"""
Outlets API

Admins see and manage every outlet and may switch their working outlet;
everyone else sees only the outlet they are assigned to.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_admin, require_permission
from restopos.core.errors import NotFound
from restopos.database import get_db
from restopos.models import Outlet, User, utcnow
from restopos.schemas import (
    OutletCreate,
    OutletResponse,
    OutletSummaryResponse,
    OutletSwitchRequest,
    OutletUpdate,
)
from restopos.services import reports
from restopos.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/outlets", tags=["Outlets"])


async def _get_outlet(db: AsyncSession, outlet_id: uuid.UUID) -> Outlet:
    outlet = await db.get(Outlet, outlet_id)
    if outlet is None:
        raise NotFound(f"Outlet {outlet_id} not found")
    return outlet


@router.get("")
async def list_outlets(
    actor: Actor = Depends(require_permission("outlets", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[OutletResponse]]:
    query = select(Outlet).order_by(Outlet.name)
    if not actor.is_admin:
        query = query.where(Outlet.id == actor.require_outlet())
    result = await db.execute(query)
    return {"outlets": [OutletResponse.model_validate(o) for o in result.scalars().all()]}


@router.post("", response_model=OutletResponse, status_code=status.HTTP_201_CREATED)
async def create_outlet(
    payload: OutletCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OutletResponse:
    outlet = Outlet(name=payload.name, address=payload.address)
    db.add(outlet)
    await db.commit()
    logger.info(f"Outlet '{outlet.name}' created by {actor.name}")
    return OutletResponse.model_validate(outlet)


@router.post("/switch", summary="Switch Working Outlet")
async def switch_outlet(
    payload: OutletSwitchRequest,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    outlet = await _get_outlet(db, payload.outlet_id)
    await db.execute(
        update(User)
        .where(User.id == actor.id)
        .values(current_outlet_id=outlet.id, updated_at=utcnow())
    )
    await db.commit()
    logger.info(f"{actor.name} switched to outlet {outlet.name}")
    return {"success": True, "outlet": OutletResponse.model_validate(outlet)}


@router.get("/{outlet_id}", response_model=OutletResponse)
async def get_outlet(
    outlet_id: uuid.UUID,
    actor: Actor = Depends(require_permission("outlets", "view")),
    db: AsyncSession = Depends(get_db),
) -> OutletResponse:
    actor.scope_outlet(outlet_id)
    return OutletResponse.model_validate(await _get_outlet(db, outlet_id))


@router.get("/{outlet_id}/summary", response_model=OutletSummaryResponse)
async def outlet_summary(
    outlet_id: uuid.UUID,
    days: int = Query(30, ge=1, le=366),
    actor: Actor = Depends(require_permission("outlets", "view")),
    db: AsyncSession = Depends(get_db),
) -> OutletSummaryResponse:
    """Completed sales over the last ``days`` days."""
    actor.scope_outlet(outlet_id)
    data = await reports.outlet_summary(db, outlet_id, days)
    return OutletSummaryResponse(
        outlet=OutletResponse.model_validate(data["outlet"]),
        summary=data["summary"],
    )


@router.patch("/{outlet_id}", response_model=OutletResponse)
async def update_outlet(
    outlet_id: uuid.UUID,
    payload: OutletUpdate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> OutletResponse:
    outlet = await _get_outlet(db, outlet_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(outlet, field, value)
    outlet.updated_at = utcnow()
    await db.commit()
    return OutletResponse.model_validate(outlet)


@router.delete("/{outlet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_outlet(
    outlet_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    outlet = await _get_outlet(db, outlet_id)
    await db.delete(outlet)
    await db.commit()
    logger.warning(f"Outlet {outlet_id} deleted by {actor.name}")
