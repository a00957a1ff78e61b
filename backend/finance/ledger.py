"""
Cash Movement Ledger — audit trail of physical cash handling.

Records are append-only: amounts never change; status only moves
forward (PENDING -> VERIFIED -> RECONCILED). This is an audit log, not a
double-entry general ledger.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import DomainViolationError, InvalidArgumentError, NotFoundError
from db.models import CashMovement
from shipments.pricing import to_money

logger = structlog.get_logger()


class TransactionType(str, Enum):
    COLLECTION = "COLLECTION"
    DEPOSIT_TO_WAREHOUSE = "DEPOSIT_TO_WAREHOUSE"
    DEPOSIT_TO_BANK = "DEPOSIT_TO_BANK"
    WITHDRAWAL = "WITHDRAWAL"


class MovementStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    RECONCILED = "RECONCILED"


_STATUS_ORDER = [MovementStatus.PENDING, MovementStatus.VERIFIED, MovementStatus.RECONCILED]


def record_movement(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_type: TransactionType,
    amount: Decimal,
    shipment_id: uuid.UUID | None = None,
    description: str | None = None,
    status: MovementStatus = MovementStatus.PENDING,
) -> CashMovement:
    amount = to_money(amount)
    if amount < 0:
        raise InvalidArgumentError(f"Cash movement amount must be non-negative, got {amount}")

    movement = CashMovement(
        user_id=user_id,
        shipment_id=shipment_id,
        transaction_type=TransactionType(transaction_type).value,
        amount=amount,
        status=MovementStatus(status).value,
        description=description,
        reconciled_at=datetime.utcnow() if status == MovementStatus.RECONCILED else None,
    )
    db.add(movement)
    return movement


async def list_movements(
    db: AsyncSession,
    user_id: uuid.UUID | None = None,
    transaction_type: TransactionType | None = None,
    status: MovementStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[CashMovement]:
    query = select(CashMovement)
    if user_id:
        query = query.where(CashMovement.user_id == user_id)
    if transaction_type:
        query = query.where(CashMovement.transaction_type == TransactionType(transaction_type).value)
    if status:
        query = query.where(CashMovement.status == MovementStatus(status).value)
    if start:
        query = query.where(CashMovement.created_at >= start)
    if end:
        query = query.where(CashMovement.created_at <= end)
    result = await db.execute(query.order_by(CashMovement.created_at.desc()))
    return list(result.scalars().all())


async def sum_movements(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_type: TransactionType,
    status: MovementStatus,
) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(CashMovement.amount), 0)).where(
            CashMovement.user_id == user_id,
            CashMovement.transaction_type == TransactionType(transaction_type).value,
            CashMovement.status == MovementStatus(status).value,
        )
    )
    return to_money(result.scalar_one())


async def advance_movement(db: AsyncSession, movement_id: uuid.UUID, status: MovementStatus) -> CashMovement:
    movement = await db.get(CashMovement, movement_id)
    if movement is None:
        raise NotFoundError(f"Cash movement {movement_id} not found", entity="cash_movement")

    target = MovementStatus(status)
    current = MovementStatus(movement.status)
    if _STATUS_ORDER.index(target) < _STATUS_ORDER.index(current):
        raise DomainViolationError(f"Cash movement cannot move from {current.value} to {target.value}")

    movement.status = target.value
    if target == MovementStatus.RECONCILED and movement.reconciled_at is None:
        movement.reconciled_at = datetime.utcnow()
    await db.flush()
    return movement


async def mark_movement_reconciled(db: AsyncSession, movement_id: uuid.UUID) -> CashMovement:
    return await advance_movement(db, movement_id, MovementStatus.RECONCILED)
