"""
Roles, role permissions and modules.

A custom role grants exactly the (module, action) pairs stored in
role_permissions; modules without a row are denied.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.api.deps import require_permission
from restopos.core.errors import NotFound, StateConflict, ValidationFailed
from restopos.database import get_db
from restopos.models import Module, Role, RolePermission, utcnow
from restopos.schemas import (
    ModuleResponse,
    RoleCreate,
    RoleDetailResponse,
    RolePermissionsResult,
    RolePermissionsUpsert,
    RoleResponse,
    RoleUpdate,
)
from restopos.services.access import Actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/roles", tags=["Roles"])
permissions_router = APIRouter(prefix="/role-permissions", tags=["Roles"])
modules_router = APIRouter(prefix="/modules", tags=["Roles"])


async def _get_role(db: AsyncSession, role_id: uuid.UUID) -> Role:
    result = await db.execute(
        select(Role).where(Role.id == role_id).execution_options(populate_existing=True)
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise NotFound(f"Role {role_id} not found")
    return role


async def _commit_unique_name(db: AsyncSession, name: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise StateConflict(f"A role named '{name}' already exists")


# =============================================================================
# ROLES
# =============================================================================

@router.get("")
async def list_roles(
    actor: Actor = Depends(require_permission("roles", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[RoleResponse]]:
    result = await db.execute(select(Role).order_by(Role.name))
    return {"roles": [RoleResponse.model_validate(r) for r in result.scalars().all()]}


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    actor: Actor = Depends(require_permission("roles", "create")),
    db: AsyncSession = Depends(get_db),
) -> RoleResponse:
    role = Role(name=payload.name, description=payload.description)
    db.add(role)
    await _commit_unique_name(db, payload.name)
    logger.info(f"Role '{role.name}' created")
    return RoleResponse.model_validate(role)


@router.get("/{role_id}", response_model=RoleDetailResponse)
async def get_role(
    role_id: uuid.UUID,
    actor: Actor = Depends(require_permission("roles", "view")),
    db: AsyncSession = Depends(get_db),
) -> RoleDetailResponse:
    return RoleDetailResponse.model_validate(await _get_role(db, role_id))


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: uuid.UUID,
    payload: RoleUpdate,
    actor: Actor = Depends(require_permission("roles", "edit")),
    db: AsyncSession = Depends(get_db),
) -> RoleResponse:
    role = await _get_role(db, role_id)
    if payload.name is not None:
        role.name = payload.name
    if "description" in payload.model_fields_set:
        role.description = payload.description
    role.updated_at = utcnow()
    await _commit_unique_name(db, role.name)
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: uuid.UUID,
    actor: Actor = Depends(require_permission("roles", "delete")),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Users holding the role fall back to their built-in role."""
    role = await _get_role(db, role_id)
    await db.delete(role)
    await db.commit()
    logger.info(f"Role {role_id} deleted")


# =============================================================================
# ROLE PERMISSIONS
# =============================================================================

@permissions_router.post("", response_model=RolePermissionsResult)
async def upsert_role_permissions(
    payload: RolePermissionsUpsert,
    actor: Actor = Depends(require_permission("roles", "edit")),
    db: AsyncSession = Depends(get_db),
) -> RolePermissionsResult:
    """Create or overwrite the flags for each listed module of a role."""
    role = await _get_role(db, payload.role_id)

    module_ids = {p.module_id for p in payload.permissions}
    result = await db.execute(select(Module.id).where(Module.id.in_(module_ids)))
    unknown = module_ids - set(result.scalars().all())
    if unknown:
        raise ValidationFailed("Unknown modules", details={"module_ids": sorted(str(m) for m in unknown)})

    existing = {perm.module_id: perm for perm in role.permissions}
    for flags in payload.permissions:
        perm = existing.get(flags.module_id)
        if perm is None:
            perm = RolePermission(role_id=role.id, module_id=flags.module_id)
            role.permissions.append(perm)
            existing[flags.module_id] = perm
        perm.can_view = flags.can_view
        perm.can_create = flags.can_create
        perm.can_edit = flags.can_edit
        perm.can_delete = flags.can_delete
        perm.updated_at = utcnow()

    await db.commit()
    logger.info(f"Role {role.name}: {len(payload.permissions)} permission row(s) saved")
    return RolePermissionsResult(success=True, count=len(payload.permissions))


# =============================================================================
# MODULES
# =============================================================================

@modules_router.get("")
async def list_modules(
    actor: Actor = Depends(require_permission("roles", "view")),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[ModuleResponse]]:
    result = await db.execute(select(Module).order_by(Module.name))
    return {"modules": [ModuleResponse.model_validate(m) for m in result.scalars().all()]}
