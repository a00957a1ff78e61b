"""
Settlement Engine — courier and merchant payouts.

A settlement run turns a user's eligible shipments for a period into one
Payout plus one PayoutItem per shipment, and stamps each shipment's
payout_id. payout_id is the at-most-once barrier: it is set exactly once
and never cleared, so a shipment can never be paid twice.

Eligibility:
  Courier: courier_id = user, DELIVERED, cash_reconciled = false,
           payout_id IS NULL
  Merchant: merchant_id = user, DELIVERED, payout_id IS NULL

The period only labels the payout. Older unpaid deliveries are still
picked up, so a missed run never strands a shipment.

Amounts:
  Courier: round(delivery_fee × courier_commission_rate, 2), half-up
  Merchant: delivery_fee in full

Concurrency: each run holds a per-(user, payout type) asyncio lock, and
claims shipments with a conditional UPDATE that re-checks
payout_id IS NULL at write time. If another run claimed any of them first
the UPDATE touches fewer rows, DomainViolationError is raised and the
caller rolls the whole payout back.
"""

import asyncio
import uuid
import weakref
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import ConfigurationError, DomainViolationError, InvalidArgumentError, NotFoundError
from db.models import Payout, PayoutItem, PayoutStatus, Shipment, ShipmentStatus, User
from shipments.catalog import PayoutStatusCode, PayoutType, ShipmentStatusCode, get_payout_status_by_name
from shipments.pricing import to_money

logger = structlog.get_logger()

ZERO = Decimal("0.00")

# One lock per (user, payout type) per event loop. Entries live as long as
# their loop, so the registry is bounded by the number of settling users.
_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[tuple[str, str], asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def _settlement_lock(user_id: uuid.UUID, payout_type: PayoutType) -> asyncio.Lock:
    per_loop = _locks.setdefault(asyncio.get_running_loop(), {})
    return per_loop.setdefault((str(user_id), payout_type.value), asyncio.Lock())


def courier_commission(delivery_fee: Decimal, rate: Decimal | None = None) -> Decimal:
    rate = rate if rate is not None else get_settings().courier_commission_rate
    return to_money(Decimal(delivery_fee) * Decimal(str(rate)))


def merchant_amount(delivery_fee: Decimal) -> Decimal:
    return to_money(delivery_fee)


def _validate_period(period_start: date, period_end: date) -> None:
    if period_end < period_start:
        raise InvalidArgumentError(
            f"Period end {period_end} is before period start {period_start}",
            period_start=str(period_start),
            period_end=str(period_end),
        )


def _period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    _validate_period(period_start, period_end)
    return datetime.combine(period_start, time.min), datetime.combine(period_end + timedelta(days=1), time.min)


def _delivered_query(period_start: date, period_end: date):
    _validate_period(period_start, period_end)
    return (
        select(Shipment)
        .join(ShipmentStatus, Shipment.status_id == ShipmentStatus.status_id)
        .where(
            ShipmentStatus.name == ShipmentStatusCode.DELIVERED.value,
            Shipment.payout_id.is_(None),
        )
        .order_by(Shipment.delivered_at)
    )


async def eligible_courier_shipments(
    db: AsyncSession, courier_id: uuid.UUID, period_start: date, period_end: date
) -> list[Shipment]:
    query = _delivered_query(period_start, period_end).where(
        Shipment.courier_id == courier_id,
        Shipment.cash_reconciled.is_(False),
    )
    result = await db.execute(query)
    return list(result.scalars().unique().all())


async def eligible_merchant_shipments(
    db: AsyncSession, merchant_id: uuid.UUID, period_start: date, period_end: date
) -> list[Shipment]:
    query = _delivered_query(period_start, period_end).where(Shipment.merchant_id == merchant_id)
    result = await db.execute(query)
    return list(result.scalars().unique().all())


async def _require_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", entity="user", identifier=str(user_id))
    return user


async def _require_payout_status(db: AsyncSession, code: PayoutStatusCode) -> PayoutStatus:
    status = await get_payout_status_by_name(db, code)
    if status is None:
        logger.error("config.missing_payout_status", name=code.value)
        raise ConfigurationError(f"Required payout status '{code.value}' is not configured", name=code.value)
    return status


async def _settle(
    db: AsyncSession,
    user_id: uuid.UUID,
    payout_type: PayoutType,
    period_start: date,
    period_end: date,
    select_shipments,
    amount_for: Callable[[Shipment], Decimal],
    description: str,
) -> Payout:
    user_id = uuid.UUID(str(user_id))
    async with _settlement_lock(user_id, payout_type):
        await _require_user(db, user_id)
        shipments = await select_shipments(db, user_id, period_start, period_end)
        lines = [(shipment, amount_for(shipment)) for shipment in shipments]
        net_amount = sum((amount for _, amount in lines), ZERO)

        pending = await _require_payout_status(db, PayoutStatusCode.PENDING)
        payout = Payout(
            payout_id=uuid.uuid4(),
            user_id=user_id,
            payout_type=payout_type.value,
            status=pending,
            period_start=period_start,
            period_end=period_end,
            net_amount=to_money(net_amount),
            description=description,
        )
        db.add(payout)
        await db.flush()

        for shipment, amount in lines:
            db.add(
                PayoutItem(
                    payout_id=payout.payout_id,
                    source_type="SHIPMENT",
                    source_id=shipment.shipment_id,
                    amount=amount,
                    description=f"Delivery fee for shipment {shipment.tracking_number}",
                )
            )

        if lines:
            shipment_ids = [shipment.shipment_id for shipment, _ in lines]
            claimed = await db.execute(
                update(Shipment)
                .where(Shipment.shipment_id.in_(shipment_ids), Shipment.payout_id.is_(None))
                .values(payout_id=payout.payout_id)
                .execution_options(synchronize_session="evaluate")
            )
            if claimed.rowcount != len(shipment_ids):
                logger.warning(
                    "payout.claim_conflict",
                    user_id=str(user_id),
                    payout_type=payout_type.value,
                    expected=len(shipment_ids),
                    claimed=claimed.rowcount,
                )
                raise DomainViolationError(
                    "Shipments were settled by a concurrent payout run",
                    user_id=str(user_id),
                    payout_type=payout_type.value,
                )
        await db.flush()

    logger.info(
        "payout.created",
        payout_id=str(payout.payout_id),
        user_id=str(user_id),
        payout_type=payout_type.value,
        shipment_count=len(lines),
        net_amount=str(payout.net_amount),
    )
    return payout


async def create_courier_payout(
    db: AsyncSession, courier_id: uuid.UUID, period_start: date, period_end: date
) -> Payout:
    rate = get_settings().courier_commission_rate
    return await _settle(
        db,
        courier_id,
        PayoutType.COURIER_SETTLEMENT,
        period_start,
        period_end,
        eligible_courier_shipments,
        lambda shipment: courier_commission(shipment.delivery_fee, rate),
        f"Courier settlement for period {period_start} to {period_end}",
    )


async def create_merchant_payout(
    db: AsyncSession, merchant_id: uuid.UUID, period_start: date, period_end: date
) -> Payout:
    return await _settle(
        db,
        merchant_id,
        PayoutType.MERCHANT_PAYOUT,
        period_start,
        period_end,
        eligible_merchant_shipments,
        lambda shipment: merchant_amount(shipment.delivery_fee),
        f"Merchant payout for period {period_start} to {period_end}",
    )


# ─── Payout status ──────────────────────────────────────────────────────────


async def update_payout_status(db: AsyncSession, payout_id: uuid.UUID, status_name: str) -> Payout:
    payout = await get_payout_by_id(db, payout_id)
    status = await get_payout_status_by_name(db, status_name)
    if status is None:
        raise InvalidArgumentError(f"Invalid payout status: {status_name}", name=status_name)

    previous = payout.status_name
    payout.status = status
    if status.name == PayoutStatusCode.COMPLETED.value:
        payout.paid_at = datetime.utcnow()
    await db.flush()

    logger.info(
        "payout.status_updated",
        payout_id=str(payout.payout_id),
        from_status=previous,
        to_status=status.name,
    )
    return payout


# ─── Read accessors ─────────────────────────────────────────────────────────


async def get_payout_by_id(db: AsyncSession, payout_id: uuid.UUID) -> Payout:
    """Unlike shipment lookups, a missing payout is an error."""
    payout = await db.get(Payout, payout_id)
    if payout is None:
        raise NotFoundError(f"Payout {payout_id} not found", entity="payout", identifier=str(payout_id))
    return payout


async def get_pending_payouts(db: AsyncSession) -> list[Payout]:
    result = await db.execute(
        select(Payout)
        .join(PayoutStatus, Payout.status_id == PayoutStatus.status_id)
        .where(PayoutStatus.name == PayoutStatusCode.PENDING.value)
        .order_by(Payout.created_at)
    )
    return list(result.scalars().unique().all())


async def get_payouts_for_user(db: AsyncSession, user_id: uuid.UUID) -> list[Payout]:
    result = await db.execute(
        select(Payout).where(Payout.user_id == user_id).order_by(Payout.period_end.desc(), Payout.created_at.desc())
    )
    return list(result.scalars().unique().all())


async def get_payout_items(db: AsyncSession, payout_id: uuid.UUID) -> list[PayoutItem]:
    result = await db.execute(select(PayoutItem).where(PayoutItem.payout_id == payout_id))
    return list(result.scalars().all())


# ─── Reports ────────────────────────────────────────────────────────────────


async def calculate_total_revenue(db: AsyncSession, start: date, end: date) -> Decimal:
    """Delivery fees of DELIVERED shipments created within [start, end]."""
    lower, upper = _period_bounds(start, end)
    result = await db.execute(
        select(Shipment.delivery_fee)
        .join(ShipmentStatus, Shipment.status_id == ShipmentStatus.status_id)
        .where(
            ShipmentStatus.name == ShipmentStatusCode.DELIVERED.value,
            Shipment.created_at >= lower,
            Shipment.created_at < upper,
        )
    )
    return to_money(sum((Decimal(fee) for fee in result.scalars().all()), ZERO))


async def calculate_courier_earnings(db: AsyncSession, courier_id: uuid.UUID, start: date, end: date) -> Decimal:
    """What a courier payout labelled [start, end] would pay right now."""
    rate = get_settings().courier_commission_rate
    shipments = await eligible_courier_shipments(db, uuid.UUID(str(courier_id)), start, end)
    return to_money(sum((courier_commission(s.delivery_fee, rate) for s in shipments), ZERO))
