"""
Test Configuration — Fixtures for async DB, test client, and mock data.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state while sharing the same session-level schema.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from api.deps import get_current_user, get_db
from api.main import app
from db.session import Base

# In-memory SQLite; the GUID and Numeric columns degrade to CHAR/NUMERIC.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OWNER_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture(scope="session")
async def test_engine():
    """Create a test database engine and build all tables once."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        # Use SAVEPOINT so nested commits inside app code don't end our transaction
        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(db_session, transaction):
            if transaction.nested and not transaction._parent.nested:
                session.sync_session.begin_nested()

        await conn.begin_nested()  # SAVEPOINT

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def mock_user():
    """Mock authenticated user."""
    return {
        "sub": OWNER_ID,
        "name": "Test Owner",
        "role": "OWNER",
    }


@pytest.fixture
async def client(test_db, mock_user):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def catalog_db(test_db):
    """Test DB with the baseline shipment and payout status catalogs."""
    from shipments.catalog import seed_baseline_statuses

    await seed_baseline_statuses(test_db)
    await test_db.commit()
    return test_db


@pytest.fixture
async def seeded_db(catalog_db):
    """Seed the test DB with a zone, the four actor roles and one shipment."""
    from db.models import User, Zone
    from shipments.lifecycle import create_shipment

    test_db = catalog_db
    suffix = uuid.uuid4().hex[:6]

    zone = Zone(name=f"Downtown-{suffix}", description="City centre", default_fee=Decimal("100.00"))
    merchant = User(name="Test Merchant", phone=f"+1000{suffix}", role="MERCHANT")
    courier = User(name="Test Courier", phone=f"+2000{suffix}", role="COURIER")
    other_courier = User(name="Other Courier", phone=f"+3000{suffix}", role="COURIER")
    manager = User(name="Hub Manager", phone=f"+4000{suffix}", role="WAREHOUSE_MANAGER")
    test_db.add_all([zone, merchant, courier, other_courier, manager])
    await test_db.flush()

    shipment = await create_shipment(
        test_db,
        merchant_id=merchant.user_id,
        zone_id=zone.zone_id,
        recipient_name="Ada Recipient",
        recipient_phone="+15550001",
        recipient_address="1 Main St",
        item_value=Decimal("250.00"),
        cod_amount=Decimal("150.00"),
    )

    await test_db.commit()

    return {
        "zone": zone,
        "merchant": merchant,
        "courier": courier,
        "other_courier": other_courier,
        "manager": manager,
        "shipment": shipment,
    }


@pytest.fixture
def make_shipment(seeded_db, test_db):
    """Factory for extra shipments owned by the seeded merchant."""
    from shipments.lifecycle import create_shipment

    async def _make(**overrides):
        fields = {
            "merchant_id": seeded_db["merchant"].user_id,
            "zone_id": seeded_db["zone"].zone_id,
            "recipient_name": "Bob Recipient",
            "recipient_phone": "+15550002",
            "recipient_address": "2 Side St",
            "item_value": Decimal("80.00"),
            "cod_amount": Decimal("80.00"),
        }
        fields.update(overrides)
        return await create_shipment(test_db, **fields)

    return _make


@pytest.fixture
def deliver(test_db):
    """Assign a shipment to a courier and move it to DELIVERED."""
    from shipments.catalog import ShipmentStatusCode, require_status
    from shipments.lifecycle import update_status

    async def _deliver(shipment, courier_id):
        shipment.courier_id = courier_id
        delivered = await require_status(test_db, ShipmentStatusCode.DELIVERED)
        await update_status(test_db, shipment, delivered, "Delivered to recipient")
        return shipment

    return _deliver
