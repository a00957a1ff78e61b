"""
Cash Reconciliation — warehouse sign-off on courier cash hand-over.

A warehouse manager confirms which delivered shipments' COD cash the
courier has physically handed in, and which parcels came back instead.

For each cash-confirmed shipment:
  1. Must exist, belong to the courier, be DELIVERED/PARTIALLY_DELIVERED
     and not already reconciled
  2. cash_reconciled = True
  3. History note on the current status (no transition)
  4. COLLECTION ledger row for the COD amount, status RECONCILED

Returned shipments go through the return workflow. An id listed both as
cash-confirmed and returned rejects the whole request. Per-shipment problems
are collected in `errors`; they do not abort the rest of the batch.
"""

import uuid
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidArgumentError
from db.models import Shipment
from finance.ledger import MovementStatus, TransactionType, record_movement
from shipments.catalog import DELIVERED_LIKE
from shipments.dispatch import require_courier
from shipments.lifecycle import append_history
from shipments.returns import create_return_shipment

logger = structlog.get_logger()

RECONCILED_NOTE = "Cash reconciliation confirmed by warehouse manager"
RETURN_REASON = "Returned by courier during cash reconciliation"

_DELIVERED_NAMES = frozenset(code.value for code in DELIVERED_LIKE)


async def _owned_shipment(db: AsyncSession, courier_id: uuid.UUID, shipment_id, errors: list[str]) -> Shipment | None:
    shipment = await db.get(Shipment, shipment_id)
    if shipment is None:
        errors.append(f"Shipment not found: {shipment_id}")
        return None
    if shipment.courier_id != courier_id:
        errors.append(f"Shipment {shipment.tracking_number} does not belong to this courier")
        return None
    return shipment


async def reconcile_with_courier(
    db: AsyncSession,
    courier_id: uuid.UUID,
    cash_confirmed_ids: list[uuid.UUID],
    returned_ids: list[uuid.UUID] | None = None,
    confirmed_by: str | None = None,
) -> dict:
    cash_confirmed_ids = list(dict.fromkeys(cash_confirmed_ids or []))
    returned_ids = list(dict.fromkeys(returned_ids or []))
    if not cash_confirmed_ids and not returned_ids:
        raise InvalidArgumentError("Reconciliation requires at least one shipment id")
    overlap = set(map(str, cash_confirmed_ids)) & set(map(str, returned_ids))
    if overlap:
        raise InvalidArgumentError(
            "Shipments cannot be both cash-confirmed and returned",
            shipment_ids=sorted(overlap),
        )

    courier_id = uuid.UUID(str(courier_id))
    await require_courier(db, courier_id)

    reconciled: list[str] = []
    returned: list[str] = []
    errors: list[str] = []
    total_cash = Decimal("0.00")

    for shipment_id in cash_confirmed_ids:
        shipment = await _owned_shipment(db, courier_id, shipment_id, errors)
        if shipment is None:
            continue
        if shipment.status_name not in _DELIVERED_NAMES:
            errors.append(f"Shipment {shipment.tracking_number} is not delivered (status {shipment.status_name})")
            continue
        if shipment.cash_reconciled:
            errors.append(f"Shipment {shipment.tracking_number} is already reconciled")
            continue

        shipment.cash_reconciled = True
        append_history(db, shipment, shipment.status, RECONCILED_NOTE)
        record_movement(
            db,
            user_id=courier_id,
            transaction_type=TransactionType.COLLECTION,
            amount=shipment.cod_amount,
            shipment_id=shipment.shipment_id,
            description=f"COD collected for shipment {shipment.tracking_number}"
            + (f" (confirmed by {confirmed_by})" if confirmed_by else ""),
            status=MovementStatus.RECONCILED,
        )
        total_cash += shipment.cod_amount
        reconciled.append(shipment.tracking_number)

    for shipment_id in returned_ids:
        shipment = await _owned_shipment(db, courier_id, shipment_id, errors)
        if shipment is None:
            continue
        return_shipment = await create_return_shipment(db, shipment, RETURN_REASON, created_by=confirmed_by)
        returned.append(return_shipment.tracking_number)

    await db.flush()

    result = {
        "courier_id": str(courier_id),
        "reconciled_count": len(reconciled),
        "returned_count": len(returned),
        "total_cash": total_cash,
        "reconciled": reconciled,
        "returned": returned,
        "errors": errors,
    }
    logger.info(
        "reconciliation.completed",
        courier_id=str(courier_id),
        reconciled_count=len(reconciled),
        returned_count=len(returned),
        total_cash=str(total_cash),
        error_count=len(errors),
    )
    return result
