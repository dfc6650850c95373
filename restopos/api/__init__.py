"""
HTTP routers, one per domain, mounted together under ``/api``.
"""

from fastapi import APIRouter

from restopos.api import (
    billing,
    categories,
    inventory,
    menu,
    orders,
    outlets,
    reports,
    roles,
    settings,
    tables,
    users,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(menu.router)
api_router.include_router(categories.router)
api_router.include_router(tables.router)
api_router.include_router(orders.router)
api_router.include_router(billing.router)
api_router.include_router(inventory.router)
api_router.include_router(outlets.router)
api_router.include_router(roles.router)
api_router.include_router(roles.permissions_router)
api_router.include_router(roles.modules_router)
api_router.include_router(users.router)
api_router.include_router(settings.router)
api_router.include_router(reports.router)
api_router.include_router(reports.analytics_router)

__all__ = ["api_router"]
