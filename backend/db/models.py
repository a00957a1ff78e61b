"""
ParcelOps Database Models

13 tables for the parcel-delivery network.
Money columns are Numeric(12, 2) and load as decimal.Decimal.

Tables:
  Network (1-3):
  1. users                     - Owners, merchants, couriers, warehouse staff
  2. zones                     - Delivery zones (+ default fee)
  3. delivery_pricing          - Merchant-specific fee per zone

  Shipment Lifecycle (4-8):
  4. shipment_statuses         - Status catalog (name + label)
  5. shipment_manifests        - Courier run sheets
  6. shipments                 - Parcels and their financial fields
  7. shipment_status_history   - Append-only transition audit trail
  8. return_shipments          - Original -> reverse shipment links

  Settlement (9-12):
  9. payout_statuses           - Payout status catalog
  10. payouts                  - Settlement batches per user and period
  11. payout_items             - One line per contributing shipment
  12. cash_movement_ledger     - Cash-handling events (collections, deposits)

  Fleet (13):
  13. courier_location_history - Courier GPS pings
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    TypeDecorator,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def UUID(as_uuid=True):
    return GUID()


def Money():
    return Numeric(12, 2, asdecimal=True)


from sqlalchemy.orm import relationship

from db.session import Base

USER_ROLES = ("OWNER", "ADMIN", "MERCHANT", "COURIER", "WAREHOUSE_MANAGER")
PAYOUT_TYPES = ("COURIER_SETTLEMENT", "MERCHANT_PAYOUT")
CASH_TRANSACTION_TYPES = ("COLLECTION", "DEPOSIT_TO_WAREHOUSE", "DEPOSIT_TO_BANK", "WITHDRAWAL")
CASH_MOVEMENT_STATUSES = ("PENDING", "VERIFIED", "RECONCILED")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ─── 1. Users ───────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    user_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False, unique=True)
    role = Column(String(32), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(_in_clause("role", USER_ROLES), name="ck_user_role"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_user_status"),
        Index("ix_users_role_status", "role", "status"),
    )


# ─── 2. Zones ───────────────────────────────────────────────────────────────


class Zone(Base):
    __tablename__ = "zones"

    zone_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    default_fee = Column(Money())
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="ck_zone_status"),
        CheckConstraint("default_fee IS NULL OR default_fee >= 0", name="ck_zone_default_fee"),
    )


# ─── 3. Delivery Pricing ────────────────────────────────────────────────────


class DeliveryPricing(Base):
    __tablename__ = "delivery_pricing"

    pricing_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    zone_id = Column(UUID(as_uuid=True), ForeignKey("zones.zone_id"), nullable=False)
    delivery_fee = Column(Money(), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_pricing_merchant_zone", "merchant_id", "zone_id"),
        CheckConstraint("delivery_fee >= 0", name="ck_pricing_fee_nonneg"),
    )


# ─── 4. Shipment Statuses ───────────────────────────────────────────────────


class ShipmentStatus(Base):
    __tablename__ = "shipment_statuses"

    status_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    label = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# ─── 5. Shipment Manifests ──────────────────────────────────────────────────


class ShipmentManifest(Base):
    __tablename__ = "shipment_manifests"

    manifest_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    manifest_number = Column(String(32), nullable=False, unique=True)
    courier_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    status = Column(String(20), nullable=False, default="CREATED")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    assigned_at = Column(DateTime)

    __table_args__ = (
        Index("ix_manifest_courier", "courier_id"),
        CheckConstraint("status IN ('CREATED', 'IN_PROGRESS', 'COMPLETED')", name="ck_manifest_status"),
    )


# ─── 6. Shipments ───────────────────────────────────────────────────────────


class Shipment(Base):
    __tablename__ = "shipments"

    shipment_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tracking_number = Column(String(32), nullable=False, unique=True)
    merchant_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    courier_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=True)
    manifest_id = Column(UUID(as_uuid=True), ForeignKey("shipment_manifests.manifest_id"), nullable=True)
    zone_id = Column(UUID(as_uuid=True), ForeignKey("zones.zone_id"), nullable=False)
    status_id = Column(UUID(as_uuid=True), ForeignKey("shipment_statuses.status_id"), nullable=False)

    # Recipient
    recipient_name = Column(String(255), nullable=False)
    recipient_phone = Column(String(32), nullable=False)
    recipient_address = Column(Text, nullable=False)

    # Money
    item_value = Column(Money(), nullable=False)
    cod_amount = Column(Money(), nullable=False, default=0)
    delivery_fee = Column(Money(), nullable=False)

    # Settlement
    cash_reconciled = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime)
    payout_id = Column(UUID(as_uuid=True), ForeignKey("payouts.payout_id"), nullable=True)  # set once, never cleared

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_shipments_merchant_status", "merchant_id", "status_id"),
        Index("ix_shipments_courier_status", "courier_id", "status_id"),
        Index("ix_shipments_payout", "payout_id"),
        CheckConstraint("item_value >= 0", name="ck_shipment_item_value_nonneg"),
        CheckConstraint("cod_amount >= 0", name="ck_shipment_cod_nonneg"),
        CheckConstraint("delivery_fee >= 0", name="ck_shipment_fee_nonneg"),
    )

    status = relationship("ShipmentStatus", lazy="joined")

    @property
    def status_name(self) -> str | None:
        return self.status.name if self.status is not None else None


# ─── 7. Shipment Status History ─────────────────────────────────────────────


class ShipmentStatusHistory(Base):
    __tablename__ = "shipment_status_history"

    history_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.shipment_id"), nullable=False)
    status_id = Column(UUID(as_uuid=True), ForeignKey("shipment_statuses.status_id"), nullable=False)
    reason = Column(Text)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_status_history_shipment", "shipment_id", "changed_at"),)

    status = relationship("ShipmentStatus", lazy="joined")

    @property
    def status_name(self) -> str | None:
        return self.status.name if self.status is not None else None


# ─── 8. Return Shipments ────────────────────────────────────────────────────


class ReturnShipment(Base):
    __tablename__ = "return_shipments"

    return_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.shipment_id"), nullable=False)
    return_shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.shipment_id"), nullable=False, unique=True)
    reason = Column(Text, nullable=False)
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_returns_original", "original_shipment_id"),
        CheckConstraint("original_shipment_id <> return_shipment_id", name="ck_return_distinct_shipments"),
    )


# ─── 9. Payout Statuses ─────────────────────────────────────────────────────


class PayoutStatus(Base):
    __tablename__ = "payout_statuses"

    status_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    label = Column(String(255))


# ─── 10. Payouts ────────────────────────────────────────────────────────────


class Payout(Base):
    __tablename__ = "payouts"

    payout_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    payout_type = Column(String(32), nullable=False)
    status_id = Column(UUID(as_uuid=True), ForeignKey("payout_statuses.status_id"), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    net_amount = Column(Money(), nullable=False)  # immutable after creation
    description = Column(Text)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_payouts_user_period", "user_id", "period_end"),
        Index("ix_payouts_status", "status_id"),
        CheckConstraint(_in_clause("payout_type", PAYOUT_TYPES), name="ck_payout_type"),
        CheckConstraint("net_amount >= 0", name="ck_payout_net_nonneg"),
        CheckConstraint("period_end >= period_start", name="ck_payout_period"),
    )

    status = relationship("PayoutStatus", lazy="joined")

    @property
    def status_name(self) -> str | None:
        return self.status.name if self.status is not None else None


# ─── 11. Payout Items ───────────────────────────────────────────────────────


class PayoutItem(Base):
    __tablename__ = "payout_items"

    item_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payout_id = Column(UUID(as_uuid=True), ForeignKey("payouts.payout_id"), nullable=False)
    source_type = Column(String(20), nullable=False, default="SHIPMENT")
    source_id = Column(UUID(as_uuid=True), nullable=False)
    amount = Column(Money(), nullable=False)
    description = Column(Text)

    __table_args__ = (
        Index("ix_payout_items_payout", "payout_id"),
        Index("ix_payout_items_source", "source_type", "source_id"),
        CheckConstraint("source_type IN ('SHIPMENT')", name="ck_payout_item_source_type"),
    )


# ─── 12. Cash Movement Ledger ───────────────────────────────────────────────


class CashMovement(Base):
    __tablename__ = "cash_movement_ledger"

    movement_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.shipment_id", ondelete="SET NULL"), nullable=True)
    transaction_type = Column(String(32), nullable=False)
    amount = Column(Money(), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")
    description = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    reconciled_at = Column(DateTime)

    __table_args__ = (
        Index("ix_cash_ledger_user_type", "user_id", "transaction_type", "status"),
        Index("ix_cash_ledger_created", "created_at"),
        CheckConstraint(_in_clause("transaction_type", CASH_TRANSACTION_TYPES), name="ck_cash_txn_type"),
        CheckConstraint(_in_clause("status", CASH_MOVEMENT_STATUSES), name="ck_cash_status"),
        CheckConstraint("amount >= 0", name="ck_cash_amount_nonneg"),
    )


# ─── 13. Courier Location History ───────────────────────────────────────────


class CourierLocation(Base):
    __tablename__ = "courier_location_history"

    location_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    courier_id = Column(UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False)
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_courier_location_courier_time", "courier_id", "recorded_at"),)
