"""
Settlement Worker — scheduled courier and merchant payout runs.

For the window ending yesterday (settlement_period_days long):
  1. Find active users of the matching role with eligible shipments
  2. Create one payout per user, committing per user
  3. A concurrent claim on a user's shipments rolls that user back and
     is reported as skipped; the rest of the run continues

Schedule: Monday 02:00 (couriers), 02:30 (merchants)
Queue: settlement
"""

import asyncio
import uuid
from datetime import date, datetime, timedelta, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


def settlement_window(as_of: date, period_days: int) -> tuple[date, date]:
    """Closed [start, end] window of `period_days` days ending the day before `as_of`."""
    period_end = as_of - timedelta(days=1)
    return period_end - timedelta(days=period_days - 1), period_end


@celery_app.task(
    name="workers.settlement.run_periodic_settlements",
    bind=True,
    max_retries=2,
    default_retry_delay=300,
    acks_late=True,
)
def run_periodic_settlements(
    self,
    payout_type: str,
    period_days: int | None = None,
    as_of: str | None = None,
):
    """
    Create payouts for every active courier or merchant with unpaid
    delivered shipments in the window.
    """
    run_id = self.request.id or "manual"
    if payout_type not in ("COURIER_SETTLEMENT", "MERCHANT_PAYOUT"):
        return {"status": "failed", "reason": "invalid_payout_type", "payout_type": payout_type}

    async def _run():
        from core.config import get_settings
        from core.errors import DomainViolationError
        from db.models import Shipment, ShipmentStatus, User
        from finance.settlement import create_courier_payout, create_merchant_payout
        from shipments.catalog import PayoutType, ShipmentStatusCode, UserRole

        kind = PayoutType(payout_type)
        settings = get_settings()
        days = period_days or settings.settlement_period_days
        period_start, period_end = settlement_window(
            date.fromisoformat(as_of) if as_of else datetime.now(timezone.utc).date(), days
        )

        if kind == PayoutType.COURIER_SETTLEMENT:
            owner_column, role, create_payout = Shipment.courier_id, UserRole.COURIER, create_courier_payout
        else:
            owner_column, role, create_payout = Shipment.merchant_id, UserRole.MERCHANT, create_merchant_payout

        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

            async with async_session() as db:
                query = (
                    select(owner_column)
                    .join(ShipmentStatus, Shipment.status_id == ShipmentStatus.status_id)
                    .join(User, User.user_id == owner_column)
                    .where(
                        ShipmentStatus.name == ShipmentStatusCode.DELIVERED.value,
                        Shipment.payout_id.is_(None),
                        User.role == role.value,
                        User.status == "active",
                    )
                    .distinct()
                )
                if kind == PayoutType.COURIER_SETTLEMENT:
                    query = query.where(Shipment.cash_reconciled.is_(False))
                user_ids = [row[0] for row in (await db.execute(query)).all()]

            created: list[dict] = []
            skipped: list[str] = []
            for user_id in user_ids:
                async with async_session() as db:
                    try:
                        payout = await create_payout(db, uuid.UUID(str(user_id)), period_start, period_end)
                        await db.commit()
                    except DomainViolationError as exc:
                        await db.rollback()
                        logger.warning("settlement.user_skipped", user_id=str(user_id), reason=exc.message)
                        skipped.append(str(user_id))
                        continue
                    created.append(
                        {
                            "payout_id": str(payout.payout_id),
                            "user_id": str(user_id),
                            "net_amount": str(payout.net_amount),
                        }
                    )
        finally:
            await engine.dispose()

        summary = {
            "status": "success",
            "payout_type": kind.value,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "payouts_created": len(created),
            "payouts": created,
            "skipped": skipped,
            "run_id": run_id,
        }
        logger.info(
            "settlement.run_complete",
            payout_type=kind.value,
            payouts_created=len(created),
            skipped=len(skipped),
            run_id=run_id,
        )
        return summary

    try:
        return asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001
        logger.error("settlement.run_failed", payout_type=payout_type, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)


@celery_app.task(
    name="workers.settlement.complete_payout",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def complete_payout(self, payout_id: str):
    """Mark a payout COMPLETED once the disbursement provider confirms it."""

    async def _complete():
        from core.config import get_settings
        from core.errors import NotFoundError
        from finance.settlement import update_payout_status
        from shipments.catalog import PayoutStatusCode

        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                try:
                    payout = await update_payout_status(db, uuid.UUID(payout_id), PayoutStatusCode.COMPLETED.value)
                except NotFoundError:
                    logger.warning("settlement.payout_missing", payout_id=payout_id)
                    return {"status": "failed", "reason": "payout_not_found", "payout_id": payout_id}
                await db.commit()
                return {
                    "status": "success",
                    "payout_id": payout_id,
                    "paid_at": payout.paid_at.isoformat(),
                }
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_complete())
    except Exception as exc:  # noqa: BLE001
        logger.error("settlement.complete_failed", payout_id=payout_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
