"""
API Integration Tests — Shipment Lifecycle.

Tests creation, transitions, history, returns and deletion through the
HTTP layer with a seeded database.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

FAKE_ID = "00000000-0000-0000-0000-000000000099"


@pytest.mark.asyncio
class TestShipmentsAPI:
    async def test_health_check(self, client: AsyncClient):
        """Sanity check that the test client works."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_create_shipment(self, client: AsyncClient, seeded_db):
        response = await client.post(
            "/api/v1/shipments/",
            json={
                "merchant_id": str(seeded_db["merchant"].user_id),
                "zone_id": str(seeded_db["zone"].zone_id),
                "recipient_name": "Carol",
                "recipient_phone": "+15550003",
                "recipient_address": "3 High St",
                "item_value": "120.00",
                "cod_amount": "120.00",
                "priority": "ECONOMY",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status_name"] == "PENDING_APPROVAL"
        assert data["tracking_number"].startswith("TWS-")
        assert Decimal(data["delivery_fee"]) == Decimal("80.00")
        assert data["payout_id"] is None
        assert data["cash_reconciled"] is False

    async def test_create_for_non_merchant_conflicts(self, client: AsyncClient, seeded_db):
        response = await client.post(
            "/api/v1/shipments/",
            json={
                "merchant_id": str(seeded_db["courier"].user_id),
                "zone_id": str(seeded_db["zone"].zone_id),
                "recipient_name": "Carol",
                "recipient_phone": "+15550003",
                "recipient_address": "3 High St",
                "item_value": "10",
            },
        )
        assert response.status_code == 409

    async def test_get_by_tracking_number(self, client: AsyncClient, seeded_db):
        tracking_number = seeded_db["shipment"].tracking_number
        response = await client.get(f"/api/v1/shipments/tracking/{tracking_number}")
        assert response.status_code == 200
        assert response.json()["shipment_id"] == str(seeded_db["shipment"].shipment_id)

    async def test_get_missing_shipment(self, client: AsyncClient, catalog_db):
        assert (await client.get(f"/api/v1/shipments/{FAKE_ID}")).status_code == 404
        assert (await client.get("/api/v1/shipments/tracking/TWS-NOPE0000")).status_code == 404

    async def test_list_by_status(self, client: AsyncClient, seeded_db):
        response = await client.get("/api/v1/shipments/", params={"status": "PENDING_APPROVAL"})
        assert response.status_code == 200
        assert [s["tracking_number"] for s in response.json()] == [seeded_db["shipment"].tracking_number]

    async def test_status_update_and_history(self, client: AsyncClient, seeded_db):
        shipment = seeded_db["shipment"]
        response = await client.post(
            f"/api/v1/shipments/tracking/{shipment.tracking_number}/status",
            json={"status": "APPROVED", "reason": "Verified by ops"},
        )
        assert response.status_code == 200
        assert response.json()["status_name"] == "APPROVED"

        history = (await client.get(f"/api/v1/shipments/{shipment.shipment_id}/history")).json()
        assert [h["status_name"] for h in history] == ["PENDING_APPROVAL", "APPROVED"]
        assert history[-1]["reason"] == "Verified by ops"

    async def test_invalid_status_name_is_bad_request(self, client: AsyncClient, seeded_db):
        response = await client.post(
            f"/api/v1/shipments/tracking/{seeded_db['shipment'].tracking_number}/status",
            json={"status": "TELEPORTED"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid status: TELEPORTED"

    async def test_status_update_unknown_tracking_number(self, client: AsyncClient, catalog_db):
        response = await client.post(
            "/api/v1/shipments/tracking/TWS-NOPE0000/status",
            json={"status": "APPROVED"},
        )
        assert response.status_code == 404

    async def test_request_return(self, client: AsyncClient, seeded_db):
        shipment = seeded_db["shipment"]
        assert (await client.get(f"/api/v1/shipments/tracking/{shipment.tracking_number}/returnable")).json()[
            "eligible"
        ] is True

        response = await client.post(
            f"/api/v1/shipments/tracking/{shipment.tracking_number}/return",
            json={"reason": "damaged"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["original_status"] == "RETURNED_TO_ORIGIN"
        assert data["return_shipment"]["tracking_number"] != shipment.tracking_number

        link = (await client.get(f"/api/v1/shipments/{shipment.shipment_id}/return")).json()
        assert link["return_shipment_id"] == data["return_shipment"]["shipment_id"]
        assert link["reason"] == "damaged"

    async def test_return_link_missing(self, client: AsyncClient, seeded_db):
        response = await client.get(f"/api/v1/shipments/{seeded_db['shipment'].shipment_id}/return")
        assert response.status_code == 404

    async def test_delete_shipment(self, client: AsyncClient, seeded_db):
        shipment_id = seeded_db["shipment"].shipment_id
        assert (await client.delete(f"/api/v1/shipments/{shipment_id}")).status_code == 204
        assert (await client.get(f"/api/v1/shipments/{shipment_id}")).status_code == 404
        assert (await client.delete(f"/api/v1/shipments/{shipment_id}")).status_code == 404
