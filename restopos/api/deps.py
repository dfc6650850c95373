"""
Request dependencies: the authenticated actor and permission checks.

Every domain router declares ``require_permission(module, action)`` on its
endpoints, so authorization runs before any service call.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.errors import NotAuthenticated, PermissionDenied
from restopos.core.security import user_id_from_token
from restopos.database import get_db
from restopos.services.access import Actor, resolve_actor


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise NotAuthenticated("Malformed Authorization header. Expected: Bearer <token>")
    return token.strip()


async def get_actor(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    token = bearer_token(authorization)
    if token is None:
        raise NotAuthenticated("Missing Authorization header")
    return await resolve_actor(db, user_id_from_token(token))


async def get_optional_actor(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[Actor]:
    """Actor when a session is presented, None for anonymous callers."""
    token = bearer_token(authorization)
    if token is None:
        return None
    return await resolve_actor(db, user_id_from_token(token))


def require_permission(module: str, action: str):
    async def checker(actor: Actor = Depends(get_actor)) -> Actor:
        actor.require(module, action)
        return actor

    return checker


async def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise PermissionDenied("Admin access required")
    return actor
