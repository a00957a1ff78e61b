"""
Tests for hub intake, manifests and courier assignment.
"""

import uuid

import pytest

from core.errors import DomainViolationError, NotFoundError


@pytest.mark.asyncio
class TestWarehouseIntake:
    async def test_receive_reports_unknown_tracking_numbers(self, seeded_db, test_db):
        from shipments.dispatch import receive_at_warehouse

        shipment = seeded_db["shipment"]
        result = await receive_at_warehouse(test_db, [shipment.tracking_number, "TWS-GHOST000"])

        assert result["received_count"] == 1
        assert result["received"] == [shipment.tracking_number]
        assert result["errors"] == ["Shipment not found: TWS-GHOST000"]
        assert shipment.status_name == "RECEIVED_AT_HUB"


@pytest.mark.asyncio
class TestManifests:
    async def test_manifest_number_uses_prefix(self, seeded_db, test_db):
        from shipments.dispatch import create_manifest

        manifest = await create_manifest(test_db, seeded_db["courier"].user_id)
        assert manifest.manifest_number.startswith("MAN-")
        assert manifest.status == "CREATED"

    async def test_manifest_requires_a_courier(self, seeded_db, test_db):
        from shipments.dispatch import create_manifest

        with pytest.raises(DomainViolationError, match="not a courier"):
            await create_manifest(test_db, seeded_db["merchant"].user_id)
        with pytest.raises(NotFoundError):
            await create_manifest(test_db, uuid.uuid4())

    async def test_assign_sets_courier_and_status(self, seeded_db, test_db):
        from shipments.dispatch import assign_to_manifest, create_manifest, list_manifests

        courier = seeded_db["courier"]
        shipment = seeded_db["shipment"]
        manifest = await create_manifest(test_db, courier.user_id)

        result = await assign_to_manifest(test_db, manifest.manifest_id, [shipment.tracking_number])

        assert result["assigned_count"] == 1
        assert result["courier_id"] == str(courier.user_id)
        assert shipment.courier_id == courier.user_id
        assert shipment.manifest_id == manifest.manifest_id
        assert shipment.status_name == "ASSIGNED_TO_COURIER"
        assert manifest.status == "IN_PROGRESS"
        assert manifest.assigned_at is not None
        assert [m.manifest_id for m in await list_manifests(test_db, courier.user_id)] == [manifest.manifest_id]

    async def test_assign_to_missing_manifest(self, seeded_db, test_db):
        from shipments.dispatch import assign_to_manifest

        with pytest.raises(NotFoundError):
            await assign_to_manifest(test_db, uuid.uuid4(), [seeded_db["shipment"].tracking_number])

    async def test_dispatch_only_takes_hub_shipments(self, seeded_db, test_db, make_shipment):
        from shipments.dispatch import dispatch_to_courier, receive_at_warehouse

        at_hub = seeded_db["shipment"]
        not_received = await make_shipment()
        await receive_at_warehouse(test_db, [at_hub.tracking_number])

        result = await dispatch_to_courier(
            test_db,
            seeded_db["courier"].user_id,
            [at_hub.tracking_number, not_received.tracking_number],
        )

        assert result["assigned"] == [at_hub.tracking_number]
        assert len(result["errors"]) == 1
        assert not_received.tracking_number in result["errors"][0]
        assert not_received.courier_id is None
        assert at_hub.status_name == "ASSIGNED_TO_COURIER"
