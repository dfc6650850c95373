"""
Categories API

Menu items refer to their category by name, so renaming a category renames
it on the outlet's items and deleting one leaves those items uncategorized.
Changes are admin only.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_admin, require_permission
from restopos.core.errors import NotFound, StateConflict
from restopos.database import get_db
from restopos.models import Category, MenuItem, Outlet, utcnow
from restopos.schemas import CategoryCreate, CategoryListResponse, CategoryResponse, CategoryUpdate
from restopos.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/categories", tags=["Menu"])


async def _get_category(db: AsyncSession, category_id: uuid.UUID, actor: Actor) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category {category_id} not found")
    actor.scope_outlet(category.outlet_id)
    return category


async def _commit_unique(db: AsyncSession, name: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise StateConflict(f"Category '{name}' already exists in this outlet")


@router.get("", response_model=CategoryListResponse, summary="List Categories")
async def list_categories(
    outlet_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(require_permission("menu", "view")),
    db: AsyncSession = Depends(get_db),
) -> CategoryListResponse:
    query = select(Category).order_by(Category.display_order, Category.name)
    scoped = actor.listing_outlet(outlet_id)
    if scoped is not None:
        query = query.where(Category.outlet_id == scoped)

    result = await db.execute(query)
    return CategoryListResponse(
        categories=[CategoryResponse.model_validate(c) for c in result.scalars().all()]
    )


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    outlet_id = actor.require_outlet(payload.outlet_id)
    if await db.get(Outlet, outlet_id) is None:
        raise NotFound(f"Outlet {outlet_id} not found")

    category = Category(outlet_id=outlet_id, **payload.model_dump(exclude={"outlet_id"}))
    db.add(category)
    await _commit_unique(db, payload.name)

    logger.info(f"Category '{category.name}' created at outlet {outlet_id}")
    return CategoryResponse.model_validate(category)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await _get_category(db, category_id, actor)
    old_name, outlet_id = category.name, category.outlet_id
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    for field, value in changes.items():
        setattr(category, field, value)
    category.updated_at = utcnow()

    new_name = changes.get("name")
    if new_name and new_name != old_name:
        await db.execute(
            update(MenuItem)
            .where(MenuItem.outlet_id == outlet_id, MenuItem.category == old_name)
            .values(category=new_name, updated_at=utcnow())
        )
    await _commit_unique(db, new_name or old_name)

    return CategoryResponse.model_validate(await _get_category(db, category_id, actor))


@router.delete("/{category_id}")
async def delete_category(
    category_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    category = await _get_category(db, category_id, actor)
    await db.execute(
        update(MenuItem)
        .where(MenuItem.outlet_id == category.outlet_id, MenuItem.category == category.name)
        .values(category=None, updated_at=utcnow())
    )
    await db.delete(category)
    await db.commit()

    logger.info(f"Category {category_id} deleted")
    return {"success": True}
