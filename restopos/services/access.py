"""
Access Control

Resolves who is calling, which outlet they act on, and what they may do.

Permission model:
    - admin: every action on every module
    - custom role (user.role_id set): only the explicit RolePermission rows;
      a module without a row is denied
    - legacy cashier: everything except reports/roles/users, never delete
    - legacy staff: view orders/menu/tables and create orders

Outlet scoping:
    - admins act on their selected ``current_outlet_id`` (or their assigned
      outlet, or no outlet at all = cross-outlet)
    - everyone else is pinned to their assigned outlet
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotAuthenticated, PermissionDenied
from restopos.models import Module, User, UserRole

logger = logging.getLogger(__name__)

ACTIONS = ("view", "create", "edit", "delete")

DEFAULT_MODULES = [
    ("dashboard", "Dashboard"),
    ("menu", "Menu"),
    ("orders", "Orders"),
    ("tables", "Tables"),
    ("bills", "Bills"),
    ("inventory", "Inventory"),
    ("reports", "Reports"),
    ("analytics", "Analytics"),
    ("outlets", "Outlets"),
    ("users", "Users"),
    ("roles", "Roles"),
    ("settings", "Settings"),
]

CASHIER_DENIED_MODULES = {"reports", "roles", "users"}
STAFF_GRANTS = {
    ("orders", "view"),
    ("menu", "view"),
    ("tables", "view"),
    ("orders", "create"),
}


@dataclass
class Actor:
    """The authenticated caller, as seen by every domain service."""
    id: uuid.UUID
    name: str
    role: UserRole
    role_id: Optional[uuid.UUID] = None
    outlet_id: Optional[uuid.UUID] = None
    current_outlet_id: Optional[uuid.UUID] = None
    permissions: dict[str, dict[str, bool]] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def effective_outlet_id(self) -> Optional[uuid.UUID]:
        if self.is_admin:
            return self.current_outlet_id or self.outlet_id
        return self.outlet_id

    def can(self, module: str, action: str) -> bool:
        if action not in ACTIONS:
            raise ValueError(f"Unknown action '{action}'")
        if self.is_admin:
            return True

        if self.role_id is not None:
            return self.permissions.get(module, {}).get(action, False)

        if self.role == UserRole.CASHIER:
            return module not in CASHIER_DENIED_MODULES and action != "delete"

        if self.role == UserRole.STAFF:
            return (module, action) in STAFF_GRANTS

        return False

    def require(self, module: str, action: str) -> None:
        if not self.can(module, action):
            raise PermissionDenied(f"Missing permission: {module}.{action}")

    def scope_outlet(self, requested: Optional[uuid.UUID] = None) -> Optional[uuid.UUID]:
        """
        Return the outlet a request operates on.

        Admins may name any outlet; others may only name their own.
        """
        if requested is None:
            return self.effective_outlet_id
        if self.is_admin or requested == self.outlet_id:
            return requested
        raise PermissionDenied("Not allowed to access another outlet")

    def require_outlet(self, requested: Optional[uuid.UUID] = None) -> uuid.UUID:
        outlet_id = self.scope_outlet(requested)
        if outlet_id is None:
            raise PermissionDenied("User not assigned to an outlet")
        return outlet_id

    def listing_outlet(self, requested: Optional[uuid.UUID] = None) -> Optional[uuid.UUID]:
        """Outlet filter for list endpoints; None (all outlets) only for admins."""
        if self.is_admin:
            return self.scope_outlet(requested)
        return self.require_outlet(requested)


async def resolve_actor(db: AsyncSession, user_id: uuid.UUID) -> Actor:
    """Load the profile behind a session and flatten its permissions."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotAuthenticated("User profile not found")

    permissions: dict[str, dict[str, bool]] = {}
    if user.custom_role is not None:
        for perm in user.custom_role.permissions:
            permissions[perm.module.name] = {
                "view": perm.can_view,
                "create": perm.can_create,
                "edit": perm.can_edit,
                "delete": perm.can_delete,
            }

    return Actor(
        id=user.id,
        name=user.name,
        role=user.role,
        role_id=user.role_id,
        outlet_id=user.outlet_id,
        current_outlet_id=user.current_outlet_id,
        permissions=permissions,
    )


async def seed_modules(db: AsyncSession) -> int:
    """Insert any missing default modules. Returns the number created."""
    result = await db.execute(select(Module.name))
    existing = set(result.scalars().all())

    created = 0
    for name, display_name in DEFAULT_MODULES:
        if name not in existing:
            db.add(Module(name=name, display_name=display_name))
            created += 1

    if created:
        await db.commit()
        logger.info(f"Seeded {created} permission modules")
    return created
