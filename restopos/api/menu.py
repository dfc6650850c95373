"""
Menu API

GET is public when ``outlet_id`` is given (QR menu); everything else needs
a session with the matching menu permission.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import get_optional_actor, require_permission
from restopos.core.errors import NotAuthenticated, NotFound, PermissionDenied, ValidationFailed
from restopos.database import get_db
from restopos.models import MenuItem, Outlet, utcnow
from restopos.schemas import (
    MenuCreateMeta,
    MenuCreateResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
)
from restopos.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/menu", tags=["Menu"])


async def _owned_item(db: AsyncSession, item_id: uuid.UUID, actor: Actor) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFound(f"Menu item {item_id} not found")
    actor.scope_outlet(item.outlet_id)
    return item


@router.get("", summary="List Menu Items")
async def list_menu(
    outlet_id: Optional[uuid.UUID] = Query(None),
    category: Optional[str] = Query(None),
    available: Optional[bool] = Query(None),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[MenuItemResponse]]:
    if outlet_id is None:
        if actor is None:
            raise NotAuthenticated("outlet_id is required without a session")
        actor.require("menu", "view")
        outlet_id = actor.listing_outlet(None)

    query = select(MenuItem).order_by(MenuItem.created_at.desc())
    if outlet_id is not None:
        query = query.where(MenuItem.outlet_id == outlet_id)
    if category:
        query = query.where(MenuItem.category == category)
    if available is not None:
        query = query.where(MenuItem.available == available)

    result = await db.execute(query)
    return {"items": [MenuItemResponse.model_validate(item) for item in result.scalars().all()]}


@router.post(
    "",
    response_model=MenuCreateResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create Menu Item",
)
async def create_menu_item(
    payload: MenuItemCreate,
    actor: Actor = Depends(require_permission("menu", "create")),
    db: AsyncSession = Depends(get_db),
) -> MenuCreateResponse:
    """
    Create the item in one outlet, or in every outlet of ``outlet_ids``.

    Outlets that fail are reported in ``_meta.errors``; the first created
    item is returned.
    """
    targets = payload.outlet_ids or [actor.require_outlet(payload.outlet_id)]
    data = payload.model_dump(exclude={"outlet_id", "outlet_ids"})

    created: list[uuid.UUID] = []
    errors: list[dict[str, Any]] = []

    for target in targets:
        try:
            actor.scope_outlet(target)
        except PermissionDenied as exc:
            errors.append({"outlet_id": str(target), "error": exc.message})
            continue
        if await db.get(Outlet, target) is None:
            errors.append({"outlet_id": str(target), "error": "Outlet not found"})
            continue

        item = MenuItem(outlet_id=target, **data)
        db.add(item)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(f"Menu item '{payload.name}' not created for outlet {target}: {exc}")
            errors.append({"outlet_id": str(target), "error": str(exc.__cause__ or exc)})
            continue
        created.append(item.id)

    if not created:
        raise ValidationFailed("Failed to create menu items", details=errors)

    logger.info(f"Menu item '{payload.name}' created in {len(created)} outlet(s)")
    # a rollback for a later outlet expires the rows already committed
    first = await db.get(MenuItem, created[0], populate_existing=True)
    response = MenuCreateResponse.model_validate(first)
    response.meta = MenuCreateMeta(created_count=len(created), error_count=len(errors), errors=errors)
    return response


@router.get("/{item_id}", response_model=MenuItemResponse)
async def get_menu_item(
    item_id: uuid.UUID,
    actor: Actor = Depends(require_permission("menu", "view")),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await _owned_item(db, item_id, actor))


@router.patch("/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: uuid.UUID,
    payload: MenuItemUpdate,
    actor: Actor = Depends(require_permission("menu", "edit")),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    """Price changes never touch existing orders; their lines keep their own price."""
    item = await _owned_item(db, item_id, actor)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "price", "available", "pricing_mode"):
            continue
        setattr(item, field, value)
    item.updated_at = utcnow()
    await db.commit()
    return MenuItemResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_menu_item(
    item_id: uuid.UUID,
    actor: Actor = Depends(require_permission("menu", "delete")),
    db: AsyncSession = Depends(get_db),
) -> None:
    item = await _owned_item(db, item_id, actor)
    await db.delete(item)
    await db.commit()
    logger.info(f"Menu item {item_id} deleted")
