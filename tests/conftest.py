"""
Shared fixtures.

Each test gets its own on-disk SQLite database (aiosqlite) with the schema
created and the permission modules seeded. API tests drive the FastAPI app
in-process through httpx.ASGITransport with ``get_db`` overridden.
"""
import os

# Must be set before any restopos import reads the settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_MODE"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["LEDGER_EXPORT_ENABLED"] = "false"
os.environ["DEFAULT_TAX_RATE"] = "0.05"

from decimal import Decimal

import httpx
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from restopos.database import Base, get_db
from restopos.main import app
from restopos.models import DiningTable, MenuItem, Outlet, TableStatus, UserRole
from restopos.services.access import resolve_actor, seed_modules
from tests.factories import make_user


# ─── Database ──────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        await seed_modules(session)
    return maker


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


# ─── Seed data ─────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def outlet(db):
    outlet = Outlet(name="MG Road", address="12 MG Road, Bengaluru")
    db.add(outlet)
    await db.commit()
    return outlet


@pytest_asyncio.fixture
async def other_outlet(db):
    outlet = Outlet(name="Indiranagar")
    db.add(outlet)
    await db.commit()
    return outlet


@pytest_asyncio.fixture
async def admin(db, outlet):
    return await make_user(db, UserRole.ADMIN, outlet.id, name="Asha Admin")


@pytest_asyncio.fixture
async def cashier(db, outlet):
    return await make_user(db, UserRole.CASHIER, outlet.id, name="Ravi Cashier")


@pytest_asyncio.fixture
async def staff(db, outlet):
    return await make_user(db, UserRole.STAFF, outlet.id, name="Meena Staff")


@pytest_asyncio.fixture
async def admin_actor(db, admin):
    return await resolve_actor(db, admin.id)


@pytest_asyncio.fixture
async def cashier_actor(db, cashier):
    return await resolve_actor(db, cashier.id)


@pytest_asyncio.fixture
async def table(db, outlet):
    table = DiningTable(outlet_id=outlet.id, name="T1", capacity=4, status=TableStatus.EMPTY)
    db.add(table)
    await db.commit()
    return table


@pytest_asyncio.fixture
async def paneer(db, outlet):
    item = MenuItem(outlet_id=outlet.id, name="Paneer Tikka", category="Starters", price=Decimal("200.00"))
    db.add(item)
    await db.commit()
    return item


@pytest_asyncio.fixture
async def lassi(db, outlet):
    item = MenuItem(outlet_id=outlet.id, name="Sweet Lassi", category="Drinks", price=Decimal("80.00"))
    db.add(item)
    await db.commit()
    return item


# ─── HTTP client ───────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
