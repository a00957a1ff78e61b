"""
Initial schema - all 13 tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _pk(name: str) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _money(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, **kwargs)


def upgrade() -> None:
    # 1. Users
    op.create_table(
        "users",
        _pk("user_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False, unique=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "role IN ('OWNER', 'ADMIN', 'MERCHANT', 'COURIER', 'WAREHOUSE_MANAGER')", name="ck_user_role"
        ),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_user_status"),
    )
    op.create_index("ix_users_role_status", "users", ["role", "status"])

    # 2. Zones
    op.create_table(
        "zones",
        _pk("zone_id"),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        _money("default_fee", nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_zone_status"),
        sa.CheckConstraint("default_fee IS NULL OR default_fee >= 0", name="ck_zone_default_fee"),
    )

    # 3. Delivery Pricing
    op.create_table(
        "delivery_pricing",
        _pk("pricing_id"),
        sa.Column("merchant_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("zone_id", UUID(as_uuid=True), sa.ForeignKey("zones.zone_id"), nullable=False),
        _money("delivery_fee"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("delivery_fee >= 0", name="ck_pricing_fee_nonneg"),
    )
    op.create_index("ix_pricing_merchant_zone", "delivery_pricing", ["merchant_id", "zone_id"])

    # 4. Shipment Statuses
    op.create_table(
        "shipment_statuses",
        _pk("status_id"),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 9. Payout Statuses (before shipments: shipments.payout_id -> payouts)
    op.create_table(
        "payout_statuses",
        _pk("status_id"),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(255)),
    )

    # 10. Payouts
    op.create_table(
        "payouts",
        _pk("payout_id"),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("payout_type", sa.String(32), nullable=False),
        sa.Column("status_id", UUID(as_uuid=True), sa.ForeignKey("payout_statuses.status_id"), nullable=False),
        sa.Column("period_start", sa.Date, nullable=False),
        sa.Column("period_end", sa.Date, nullable=False),
        _money("net_amount"),
        sa.Column("description", sa.Text),
        sa.Column("paid_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("payout_type IN ('COURIER_SETTLEMENT', 'MERCHANT_PAYOUT')", name="ck_payout_type"),
        sa.CheckConstraint("net_amount >= 0", name="ck_payout_net_nonneg"),
        sa.CheckConstraint("period_end >= period_start", name="ck_payout_period"),
    )
    op.create_index("ix_payouts_user_period", "payouts", ["user_id", "period_end"])
    op.create_index("ix_payouts_status", "payouts", ["status_id"])

    # 11. Payout Items
    op.create_table(
        "payout_items",
        _pk("item_id"),
        sa.Column("payout_id", UUID(as_uuid=True), sa.ForeignKey("payouts.payout_id"), nullable=False),
        sa.Column("source_type", sa.String(20), nullable=False, server_default="SHIPMENT"),
        sa.Column("source_id", UUID(as_uuid=True), nullable=False),
        _money("amount"),
        sa.Column("description", sa.Text),
        sa.CheckConstraint("source_type IN ('SHIPMENT')", name="ck_payout_item_source_type"),
    )
    op.create_index("ix_payout_items_payout", "payout_items", ["payout_id"])
    op.create_index("ix_payout_items_source", "payout_items", ["source_type", "source_id"])

    # 5. Shipment Manifests
    op.create_table(
        "shipment_manifests",
        _pk("manifest_id"),
        sa.Column("manifest_number", sa.String(32), nullable=False, unique=True),
        sa.Column("courier_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="CREATED"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("assigned_at", sa.DateTime),
        sa.CheckConstraint("status IN ('CREATED', 'IN_PROGRESS', 'COMPLETED')", name="ck_manifest_status"),
    )
    op.create_index("ix_manifest_courier", "shipment_manifests", ["courier_id"])

    # 6. Shipments
    op.create_table(
        "shipments",
        _pk("shipment_id"),
        sa.Column("tracking_number", sa.String(32), nullable=False, unique=True),
        sa.Column("merchant_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("courier_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id")),
        sa.Column("manifest_id", UUID(as_uuid=True), sa.ForeignKey("shipment_manifests.manifest_id")),
        sa.Column("zone_id", UUID(as_uuid=True), sa.ForeignKey("zones.zone_id"), nullable=False),
        sa.Column("status_id", UUID(as_uuid=True), sa.ForeignKey("shipment_statuses.status_id"), nullable=False),
        sa.Column("recipient_name", sa.String(255), nullable=False),
        sa.Column("recipient_phone", sa.String(32), nullable=False),
        sa.Column("recipient_address", sa.Text, nullable=False),
        _money("item_value"),
        _money("cod_amount", server_default="0"),
        _money("delivery_fee"),
        sa.Column("cash_reconciled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime),
        sa.Column("payout_id", UUID(as_uuid=True), sa.ForeignKey("payouts.payout_id")),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("item_value >= 0", name="ck_shipment_item_value_nonneg"),
        sa.CheckConstraint("cod_amount >= 0", name="ck_shipment_cod_nonneg"),
        sa.CheckConstraint("delivery_fee >= 0", name="ck_shipment_fee_nonneg"),
    )
    op.create_index("ix_shipments_merchant_status", "shipments", ["merchant_id", "status_id"])
    op.create_index("ix_shipments_courier_status", "shipments", ["courier_id", "status_id"])
    op.create_index("ix_shipments_payout", "shipments", ["payout_id"])

    # 7. Shipment Status History
    op.create_table(
        "shipment_status_history",
        _pk("history_id"),
        sa.Column("shipment_id", UUID(as_uuid=True), sa.ForeignKey("shipments.shipment_id"), nullable=False),
        sa.Column("status_id", UUID(as_uuid=True), sa.ForeignKey("shipment_statuses.status_id"), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("changed_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_status_history_shipment", "shipment_status_history", ["shipment_id", "changed_at"])

    # 8. Return Shipments
    op.create_table(
        "return_shipments",
        _pk("return_id"),
        sa.Column(
            "original_shipment_id", UUID(as_uuid=True), sa.ForeignKey("shipments.shipment_id"), nullable=False
        ),
        sa.Column(
            "return_shipment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("shipments.shipment_id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("original_shipment_id <> return_shipment_id", name="ck_return_distinct_shipments"),
    )
    op.create_index("ix_returns_original", "return_shipments", ["original_shipment_id"])

    # 12. Cash Movement Ledger
    op.create_table(
        "cash_movement_ledger",
        _pk("movement_id"),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column(
            "shipment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("shipments.shipment_id", ondelete="SET NULL"),
        ),
        sa.Column("transaction_type", sa.String(32), nullable=False),
        _money("amount"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("description", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("reconciled_at", sa.DateTime),
        sa.CheckConstraint(
            "transaction_type IN ('COLLECTION', 'DEPOSIT_TO_WAREHOUSE', 'DEPOSIT_TO_BANK', 'WITHDRAWAL')",
            name="ck_cash_txn_type",
        ),
        sa.CheckConstraint("status IN ('PENDING', 'VERIFIED', 'RECONCILED')", name="ck_cash_status"),
        sa.CheckConstraint("amount >= 0", name="ck_cash_amount_nonneg"),
    )
    op.create_index(
        "ix_cash_ledger_user_type", "cash_movement_ledger", ["user_id", "transaction_type", "status"]
    )
    op.create_index("ix_cash_ledger_created", "cash_movement_ledger", ["created_at"])

    # 13. Courier Location History
    op.create_table(
        "courier_location_history",
        _pk("location_id"),
        sa.Column("courier_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=False),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=False),
        sa.Column("recorded_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_courier_location_courier_time", "courier_location_history", ["courier_id", "recorded_at"]
    )


def downgrade() -> None:
    tables = [
        "courier_location_history",
        "cash_movement_ledger",
        "return_shipments",
        "shipment_status_history",
        "shipments",
        "shipment_manifests",
        "payout_items",
        "payouts",
        "payout_statuses",
        "shipment_statuses",
        "delivery_pricing",
        "zones",
        "users",
    ]
    for table in tables:
        op.drop_table(table)
