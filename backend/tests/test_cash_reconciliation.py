"""
Tests for courier cash reconciliation.

Covers the happy path, per-shipment error collection, returned parcels
and the interplay with courier settlement eligibility.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from core.errors import InvalidArgumentError, NotFoundError


@pytest.mark.asyncio
class TestReconcileWithCourier:
    async def test_confirms_cash_and_writes_ledger(self, seeded_db, test_db, deliver):
        from finance.ledger import list_movements
        from finance.reconciliation import reconcile_with_courier
        from shipments.lifecycle import get_status_history

        courier = seeded_db["courier"]
        shipment = await deliver(seeded_db["shipment"], courier.user_id)

        result = await reconcile_with_courier(test_db, courier.user_id, [shipment.shipment_id], [], "hub-manager")

        assert result["reconciled_count"] == 1
        assert result["returned_count"] == 0
        assert result["total_cash"] == Decimal("150.00")
        assert result["reconciled"] == [shipment.tracking_number]
        assert result["errors"] == []
        assert shipment.cash_reconciled is True
        assert shipment.status_name == "DELIVERED"

        history = await get_status_history(test_db, shipment.shipment_id)
        assert history[-1].status_name == "DELIVERED"
        assert history[-1].reason == "Cash reconciliation confirmed by warehouse manager"

        movements = await list_movements(test_db, user_id=courier.user_id)
        assert len(movements) == 1
        assert movements[0].transaction_type == "COLLECTION"
        assert movements[0].status == "RECONCILED"
        assert movements[0].amount == Decimal("150.00")
        assert movements[0].shipment_id == shipment.shipment_id
        assert movements[0].reconciled_at is not None

    async def test_both_lists_empty_is_rejected(self, seeded_db, test_db):
        from finance.reconciliation import reconcile_with_courier

        with pytest.raises(InvalidArgumentError):
            await reconcile_with_courier(test_db, seeded_db["courier"].user_id, [], [])

    async def test_same_shipment_in_both_lists_is_rejected(self, seeded_db, test_db, deliver):
        from finance.ledger import list_movements
        from finance.reconciliation import reconcile_with_courier

        courier = seeded_db["courier"]
        shipment = await deliver(seeded_db["shipment"], courier.user_id)

        with pytest.raises(InvalidArgumentError):
            await reconcile_with_courier(test_db, courier.user_id, [shipment.shipment_id], [shipment.shipment_id])

        assert shipment.cash_reconciled is False
        assert shipment.status_name == "DELIVERED"
        assert await list_movements(test_db, user_id=courier.user_id) == []

    async def test_unknown_courier(self, seeded_db, test_db):
        from finance.reconciliation import reconcile_with_courier

        with pytest.raises(NotFoundError):
            await reconcile_with_courier(test_db, uuid.uuid4(), [seeded_db["shipment"].shipment_id])

    async def test_errors_are_collected_per_shipment(self, seeded_db, test_db, deliver, make_shipment):
        from finance.reconciliation import reconcile_with_courier

        courier, other = seeded_db["courier"], seeded_db["other_courier"]
        mine = await deliver(seeded_db["shipment"], courier.user_id)
        theirs = await deliver(await make_shipment(), other.user_id)
        undelivered = await make_shipment()
        undelivered.courier_id = courier.user_id
        await test_db.flush()
        missing = uuid.uuid4()

        result = await reconcile_with_courier(
            test_db,
            courier.user_id,
            [mine.shipment_id, theirs.shipment_id, undelivered.shipment_id, missing],
        )

        assert result["reconciled"] == [mine.tracking_number]
        assert len(result["errors"]) == 3
        assert any("does not belong to this courier" in e for e in result["errors"])
        assert any("is not delivered" in e for e in result["errors"])
        assert any(str(missing) in e for e in result["errors"])
        assert theirs.cash_reconciled is False

    async def test_second_reconciliation_is_reported_not_repeated(self, seeded_db, test_db, deliver):
        from finance.ledger import list_movements
        from finance.reconciliation import reconcile_with_courier

        courier = seeded_db["courier"]
        shipment = await deliver(seeded_db["shipment"], courier.user_id)
        await reconcile_with_courier(test_db, courier.user_id, [shipment.shipment_id])

        again = await reconcile_with_courier(test_db, courier.user_id, [shipment.shipment_id])

        assert again["reconciled_count"] == 0
        assert again["errors"] == [f"Shipment {shipment.tracking_number} is already reconciled"]
        assert len(await list_movements(test_db, user_id=courier.user_id)) == 1

    async def test_returned_ids_create_return_shipments(self, seeded_db, test_db, make_shipment):
        from finance.reconciliation import reconcile_with_courier
        from shipments.returns import get_return_by_original

        courier = seeded_db["courier"]
        parcel = await make_shipment()
        parcel.courier_id = courier.user_id
        await test_db.flush()

        result = await reconcile_with_courier(test_db, courier.user_id, [], [parcel.shipment_id])

        assert result["returned_count"] == 1
        assert parcel.status_name == "RETURNED_TO_ORIGIN"
        link = await get_return_by_original(test_db, parcel.shipment_id)
        assert link.reason == "Returned by courier during cash reconciliation"

    async def test_reconciled_shipment_leaves_courier_settlement(self, seeded_db, test_db, deliver):
        from finance.reconciliation import reconcile_with_courier
        from finance.settlement import eligible_courier_shipments

        courier = seeded_db["courier"]
        shipment = await deliver(seeded_db["shipment"], courier.user_id)
        today = date.today()
        window = (today - timedelta(days=1), today + timedelta(days=1))

        assert len(await eligible_courier_shipments(test_db, courier.user_id, *window)) == 1
        await reconcile_with_courier(test_db, courier.user_id, [shipment.shipment_id])
        assert await eligible_courier_shipments(test_db, courier.user_id, *window) == []
