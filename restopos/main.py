"""
FastAPI Application Entry Point

RestoPOS Back Office - multi-outlet restaurant POS API.

Endpoints:
    - /api/menu, /api/tables, /api/orders, /api/billing, /api/inventory
    - /api/outlets, /api/roles, /api/role-permissions, /api/modules
    - /api/users, /api/settings, /api/reports, /api/analytics
    - GET /health: System health check

Run with:
    uvicorn restopos.main:app --host 0.0.0.0 --port 8001
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from restopos.api import api_router
from restopos.core.config import get_settings, setup_logging
from restopos.core.errors import register_exception_handlers
from restopos.database import engine, get_db, init_db
from restopos.models import utcnow
from restopos.schemas import HealthResponse

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"Missing production config: {missing}")

    if not settings.ledger_export_enabled:
        logger.info("Bill ledger export disabled")

    logger.info("Application ready")

    yield

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant back office: menu, tables, order lifecycle, billing, "
        "inventory, reports and role-based access, scoped per outlet."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Probe the database and Redis."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {e}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    client = aioredis.from_url(settings.redis_url, socket_connect_timeout=2, socket_timeout=2)
    try:
        await client.ping()
    except (aioredis.RedisError, OSError) as e:
        redis_status = f"unhealthy: {e}"
        logger.error(f"Redis health check failed: {e}")
    finally:
        await client.aclose()

    services = {"database": db_status, "redis": redis_status}
    overall = "operational" if all(s == "healthy" for s in services.values()) else "degraded"

    return HealthResponse(
        status=overall,
        environment=settings.env_mode.value,
        version=settings.app_version,
        services=services,
        timestamp=utcnow(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "restopos.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
