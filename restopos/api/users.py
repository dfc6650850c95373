"""
Users API (admin only)

Accounts live in the external auth service; these endpoints manage the
local profile that carries role and outlet assignment.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_admin
from restopos.core.errors import NotFound, StateConflict, ValidationFailed
from restopos.database import get_db
from restopos.models import Outlet, Role, User, utcnow
from restopos.schemas import UserCreate, UserResponse, UserUpdate
from restopos.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


async def _check_refs(db: AsyncSession, role_id, outlet_id) -> None:
    if role_id is not None and await db.get(Role, role_id) is None:
        raise ValidationFailed(f"Role {role_id} not found")
    if outlet_id is not None and await db.get(Outlet, outlet_id) is None:
        raise ValidationFailed(f"Outlet {outlet_id} not found")


@router.get("")
async def list_users(
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[UserResponse]]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return {"users": [UserResponse.model_validate(u) for u in result.scalars().all()]}


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    await _check_refs(db, payload.role_id, payload.outlet_id)

    db.add(User(**payload.model_dump()))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise StateConflict("A user with this id or email already exists")

    logger.info(f"User profile {payload.email} created ({payload.role.value})")
    return UserResponse.model_validate(await _get_user(db, payload.id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    await _check_refs(db, changes.get("role_id"), changes.get("outlet_id"))

    for field, value in changes.items():
        if field in ("name", "role") and value is None:
            continue
        setattr(user, field, value)
    user.updated_at = utcnow()
    await db.commit()
    return UserResponse.model_validate(await _get_user(db, user_id))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    if user_id == actor.id:
        raise StateConflict("Cannot delete your own profile")
    user = await _get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info(f"User profile {user_id} deleted")
