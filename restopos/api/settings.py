"""
Outlet Settings API

GST and receipt configuration for the caller's effective outlet. An outlet
without a stored row reads as GST enabled at the configured default rate.
"""

import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.core.config import get_settings
from restopos.database import get_db
from restopos.models import OutletSettings, utcnow
from restopos.schemas import OutletSettingsResponse, OutletSettingsUpdate
from restopos.services.access import Actor

router = APIRouter(prefix="/settings", tags=["Settings"])


def _defaults(outlet_id: uuid.UUID) -> OutletSettingsResponse:
    settings = get_settings()
    return OutletSettingsResponse(
        outlet_id=outlet_id,
        gst_enabled=True,
        gst_percentage=round(settings.default_tax_rate * 100, 2),
        currency_code=settings.currency_code,
    )


@router.get("", response_model=OutletSettingsResponse)
async def get_outlet_settings(
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("settings", "view")),
    db: AsyncSession = Depends(get_db),
) -> OutletSettingsResponse:
    outlet_id = actor.require_outlet(outlet_id)
    stored = await db.get(OutletSettings, outlet_id)
    if stored is None:
        return _defaults(outlet_id)
    return OutletSettingsResponse.model_validate(stored)


@router.patch("", response_model=OutletSettingsResponse)
async def update_outlet_settings(
    payload: OutletSettingsUpdate,
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("settings", "edit")),
    db: AsyncSession = Depends(get_db),
) -> OutletSettingsResponse:
    outlet_id = actor.require_outlet(outlet_id)
    stored = await db.get(OutletSettings, outlet_id)
    if stored is None:
        stored = OutletSettings(outlet_id=outlet_id, gst_enabled=True)
        db.add(stored)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "gst_enabled" and value is None:
            continue
        if field == "gst_percentage" and value is not None:
            value = Decimal(str(value))
        setattr(stored, field, value)
    stored.updated_at = utcnow()

    await db.commit()
    return OutletSettingsResponse.model_validate(stored)
