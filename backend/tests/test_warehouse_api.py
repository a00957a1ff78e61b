"""
API Integration Tests — Warehouse intake, dispatch and cash reconciliation.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient


async def _deliver_via_api(client: AsyncClient, tracking_number: str, courier_id) -> None:
    await client.post("/api/v1/warehouse/receive", json={"tracking_numbers": [tracking_number]})
    await client.post(
        "/api/v1/warehouse/dispatch",
        json={"courier_id": str(courier_id), "tracking_numbers": [tracking_number]},
    )
    await client.post(f"/api/v1/shipments/tracking/{tracking_number}/status", json={"status": "DELIVERED"})


@pytest.mark.asyncio
class TestWarehouseAPI:
    async def test_receive(self, client: AsyncClient, seeded_db):
        tracking_number = seeded_db["shipment"].tracking_number
        response = await client.post(
            "/api/v1/warehouse/receive",
            json={"tracking_numbers": [tracking_number, "TWS-GHOST000"]},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["received"] == [tracking_number]
        assert data["errors"] == ["Shipment not found: TWS-GHOST000"]

    async def test_empty_tracking_list_is_unprocessable(self, client: AsyncClient, seeded_db):
        response = await client.post("/api/v1/warehouse/receive", json={"tracking_numbers": []})
        assert response.status_code == 422

    async def test_manifest_flow(self, client: AsyncClient, seeded_db):
        courier_id = str(seeded_db["courier"].user_id)
        manifest = await client.post("/api/v1/warehouse/manifests", json={"courier_id": courier_id})
        assert manifest.status_code == 201
        manifest_id = manifest.json()["manifest_id"]

        response = await client.post(
            f"/api/v1/warehouse/manifests/{manifest_id}/assign",
            json={"tracking_numbers": [seeded_db["shipment"].tracking_number]},
        )
        assert response.status_code == 200
        assert response.json()["assigned_count"] == 1

        listed = (await client.get(f"/api/v1/warehouse/couriers/{courier_id}/manifests")).json()
        assert listed[0]["status"] == "IN_PROGRESS"

    async def test_manifest_for_merchant_conflicts(self, client: AsyncClient, seeded_db):
        response = await client.post(
            "/api/v1/warehouse/manifests",
            json={"courier_id": str(seeded_db["merchant"].user_id)},
        )
        assert response.status_code == 409

    async def test_reconcile_courier(self, client: AsyncClient, seeded_db):
        shipment, courier = seeded_db["shipment"], seeded_db["courier"]
        await _deliver_via_api(client, shipment.tracking_number, courier.user_id)

        response = await client.post(
            f"/api/v1/warehouse/reconcile/courier/{courier.user_id}",
            json={"cash_confirmed_shipment_ids": [str(shipment.shipment_id)]},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["reconciled_count"] == 1
        assert Decimal(data["total_cash"]) == Decimal("150.00")

        ledger = await client.get(
            "/api/v1/ledger/sum",
            params={"user_id": str(courier.user_id), "transaction_type": "COLLECTION", "status": "RECONCILED"},
        )
        assert Decimal(ledger.json()["total"]) == Decimal("150.00")

    async def test_reconcile_with_nothing_is_bad_request(self, client: AsyncClient, seeded_db):
        response = await client.post(
            f"/api/v1/warehouse/reconcile/courier/{seeded_db['courier'].user_id}",
            json={"cash_confirmed_shipment_ids": [], "returned_shipment_ids": []},
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestCouriersAPI:
    async def test_location_ping(self, client: AsyncClient, seeded_db):
        courier_id = seeded_db["courier"].user_id
        response = await client.post(
            f"/api/v1/couriers/{courier_id}/location",
            json={"latitude": "30.0444", "longitude": "31.2357"},
        )
        assert response.status_code == 201

        history = (await client.get(f"/api/v1/couriers/{courier_id}/location")).json()
        assert len(history) == 1
        assert Decimal(history[0]["latitude"]) == Decimal("30.0444")

    async def test_out_of_range_ping_is_unprocessable(self, client: AsyncClient, seeded_db):
        response = await client.post(
            f"/api/v1/couriers/{seeded_db['courier'].user_id}/location",
            json={"latitude": "120", "longitude": "0"},
        )
        assert response.status_code == 422
