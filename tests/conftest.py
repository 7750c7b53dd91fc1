"""
Shared fixtures: in-memory SQLite database and an HTTP client on the app.
"""

from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tarification.database import get_db
from tarification.main import app
from tarification.models import Base, Tenant, Trip, TripCotation

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tenant(db):
    tenant = Tenant(name="Test DMC", slug="test-dmc", currency="EUR")
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


@pytest.fixture
async def other_tenant(db):
    tenant = Tenant(name="Other DMC", slug="other-dmc", currency="EUR")
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


@pytest.fixture
async def client(session_factory, tenant):
    """Client of the app, authenticated as ``tenant``."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Tenant-ID": str(tenant.id)},
    ) as client:
        yield client
    app.dependency_overrides.clear()


def pax_configs():
    """Cost basis of a cotation priced for 2, 4 and 6 travellers."""
    return {
        "currency": "EUR",
        "pax_configs": [
            {"label": "2 pax", "total_pax": 2, "paying_pax": 2, "total_cost": "1000.00"},
            {"label": "4 pax", "total_pax": 4, "paying_pax": 4, "total_cost": "1800.00"},
            {"label": "6 pax", "total_pax": 6, "paying_pax": 6, "total_cost": "2400.00"},
        ],
    }


@pytest.fixture
async def trip(db, tenant):
    trip = Trip(
        tenant_id=tenant.id,
        name="Thaïlande du Nord",
        start_date=date(2026, 11, 2),
        duration_days=10,
        default_currency="EUR",
        primary_commission_pct=Decimal("10.00"),
        vat_pct=Decimal("20.00"),
        vat_calculation_mode="on_margin",
        room_demand_json=[{"bed_type": "DBL", "qty": 2}],
    )
    db.add(trip)
    await db.commit()
    await db.refresh(trip)
    return trip


@pytest.fixture
async def cotation(db, tenant, trip):
    cotation = TripCotation(
        tenant_id=tenant.id,
        trip_id=trip.id,
        name="Classique",
        results_json=pax_configs(),
        status="calculated",
    )
    db.add(cotation)
    await db.commit()
    await db.refresh(cotation)
    return cotation
