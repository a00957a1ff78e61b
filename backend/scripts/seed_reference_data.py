"""
Seed Reference Data — status catalogs, delivery zones and demo actors.

Safe to re-run: existing statuses, zones and users (by phone) are kept.

Run: python scripts/seed_reference_data.py [--with-demo-users]
"""

import argparse
import asyncio
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings
from db.models import User, Zone
from shipments.catalog import seed_baseline_statuses

ZONES = [
    ("Downtown", "City centre and business district", Decimal("50.00")),
    ("Suburbs", "Residential ring", Decimal("65.00")),
    ("Outskirts", "Industrial parks and villages", Decimal("90.00")),
]

DEMO_USERS = [
    ("Demo Owner", "+10000000001", "OWNER"),
    ("Acme Store", "+10000000002", "MERCHANT"),
    ("Sam Courier", "+10000000003", "COURIER"),
    ("Hub Manager", "+10000000004", "WAREHOUSE_MANAGER"),
]


async def seed_reference_data(with_demo_users: bool = False) -> dict:
    settings = get_settings()
    engine = create_async_engine(settings.database_url)
    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with SessionLocal() as db:
            # ── Status catalogs ──────────────────────────────────
            summary = await seed_baseline_statuses(db)

            # ── Zones ────────────────────────────────────────────
            existing_zones = set((await db.execute(select(Zone.name))).scalars().all())
            zones_created = 0
            for name, description, fee in ZONES:
                if name not in existing_zones:
                    db.add(Zone(name=name, description=description, default_fee=fee))
                    zones_created += 1

            # ── Demo users ───────────────────────────────────────
            users_created = 0
            if with_demo_users:
                existing_phones = set((await db.execute(select(User.phone))).scalars().all())
                for name, phone, role in DEMO_USERS:
                    if phone not in existing_phones:
                        db.add(User(name=name, phone=phone, role=role))
                        users_created += 1

            await db.commit()
    finally:
        await engine.dispose()

    summary.update({"zones_created": zones_created, "users_created": users_created})
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed ParcelOps reference data")
    parser.add_argument("--with-demo-users", action="store_true", help="Also create one user per role")
    args = parser.parse_args()

    summary = asyncio.run(seed_reference_data(with_demo_users=args.with_demo_users))
    print(
        f"✅ Seeded: {summary['shipment_statuses_created']} shipment statuses, "
        f"{summary['payout_statuses_created']} payout statuses, "
        f"{summary['zones_created']} zones, {summary['users_created']} users"
    )


if __name__ == "__main__":
    main()
