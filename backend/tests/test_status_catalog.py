"""
Tests for the shipment/payout status catalog and initial-status policy.
"""

import pytest

from core.errors import ConfigurationError, DomainViolationError, InvalidArgumentError, NotFoundError


@pytest.mark.asyncio
class TestStatusCatalog:
    async def test_seed_creates_every_baseline_status(self, test_db):
        from shipments.catalog import (
            PayoutStatusCode,
            ShipmentStatusCode,
            list_payout_statuses,
            list_statuses,
            seed_baseline_statuses,
        )

        summary = await seed_baseline_statuses(test_db)

        assert summary["shipment_statuses_created"] == len(ShipmentStatusCode)
        assert summary["payout_statuses_created"] == len(PayoutStatusCode)
        names = {s.name for s in await list_statuses(test_db)}
        assert "DELIVERED" in names and "RETURNED_TO_ORIGIN" in names
        assert {s.name for s in await list_payout_statuses(test_db)} == {c.value for c in PayoutStatusCode}

    async def test_seed_is_idempotent(self, catalog_db):
        from shipments.catalog import seed_baseline_statuses

        summary = await seed_baseline_statuses(catalog_db)
        assert summary == {"shipment_statuses_created": 0, "payout_statuses_created": 0}

    async def test_lookup_by_name(self, catalog_db):
        from shipments.catalog import ShipmentStatusCode, get_status_by_name, status_exists

        status = await get_status_by_name(catalog_db, ShipmentStatusCode.DELIVERED)
        assert status is not None
        assert status.name == "DELIVERED"
        assert await status_exists(catalog_db, "DELIVERED")
        assert await get_status_by_name(catalog_db, "TELEPORTED") is None
        assert not await status_exists(catalog_db, "TELEPORTED")

    async def test_create_status_then_duplicate_rejected(self, catalog_db):
        from shipments.catalog import create_status, status_exists

        created = await create_status(catalog_db, "AWAITING_CUSTOMS", "Held at customs")
        assert created.name == "AWAITING_CUSTOMS"
        assert await status_exists(catalog_db, "AWAITING_CUSTOMS")

        with pytest.raises(InvalidArgumentError, match="Status with name 'AWAITING_CUSTOMS' already exists"):
            await create_status(catalog_db, "AWAITING_CUSTOMS")

    async def test_create_blank_status_rejected(self, catalog_db):
        from shipments.catalog import create_status

        with pytest.raises(InvalidArgumentError):
            await create_status(catalog_db, "   ")

    async def test_delete_unreferenced_status(self, catalog_db):
        from shipments.catalog import create_status, delete_status, status_exists

        await create_status(catalog_db, "TEMPORARY")
        await delete_status(catalog_db, "TEMPORARY")
        assert not await status_exists(catalog_db, "TEMPORARY")

    async def test_delete_missing_status_raises_not_found(self, catalog_db):
        from shipments.catalog import delete_status

        with pytest.raises(NotFoundError):
            await delete_status(catalog_db, "NEVER_EXISTED")

    async def test_delete_referenced_status_is_refused(self, seeded_db, test_db):
        from shipments.catalog import delete_status

        with pytest.raises(DomainViolationError, match="referenced"):
            await delete_status(test_db, seeded_db["shipment"].status_name)

    async def test_require_status_missing_is_configuration_error(self, test_db):
        from shipments.catalog import ShipmentStatusCode, require_status

        with pytest.raises(ConfigurationError):
            await require_status(test_db, ShipmentStatusCode.DELIVERED)


@pytest.mark.asyncio
class TestInitialStatus:
    async def test_prefers_pending_approval(self, catalog_db):
        from shipments.catalog import resolve_initial_status

        status = await resolve_initial_status(catalog_db)
        assert status.name == "PENDING_APPROVAL"

    async def test_falls_back_to_pending(self, catalog_db):
        from shipments.catalog import delete_status, resolve_initial_status

        await delete_status(catalog_db, "PENDING_APPROVAL")
        status = await resolve_initial_status(catalog_db)
        assert status.name == "PENDING"

    async def test_neither_configured_raises(self, catalog_db):
        from shipments.catalog import delete_status, resolve_initial_status

        await delete_status(catalog_db, "PENDING_APPROVAL")
        await delete_status(catalog_db, "PENDING")
        with pytest.raises(ConfigurationError):
            await resolve_initial_status(catalog_db)
