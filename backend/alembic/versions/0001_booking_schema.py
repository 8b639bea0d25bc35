"""Products, resources, customers, bookings and blocks.

Revision ID: 0001
Revises:
Create Date: 2025-06-02
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

OVERLAP_CONSTRAINT = "bookings_no_overlap"

_SQLITE_OVERLAP_CHECK = f"""
    SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT}')
    WHERE EXISTS (
        SELECT 1 FROM bookings
        WHERE unit_id = NEW.unit_id
          AND id <> NEW.id
          AND status <> 'CANCELLED'
          AND service_start < NEW.service_end
          AND service_end > NEW.service_start
    );
"""


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB() if is_postgres else sa.JSON()

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "scheduling_mode",
            sa.Enum("DAY_RENTAL", "SLOT_BASED", name="schedulingmode"),
            nullable=False,
        ),
        sa.Column("price_daily", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_weekend", sa.Numeric(10, 2)),
        sa.Column("price_sunday", sa.Numeric(10, 2)),
        sa.Column("setup_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("teardown_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column(
            "travel_buffer_minutes", sa.Integer(), nullable=False, server_default="30"
        ),
        sa.Column("cleaning_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shared_resource_group", sa.String(length=64)),
        *_timestamps(),
    )

    op.create_table(
        "product_slots",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.String(length=120), nullable=False),
        sa.Column("start_time_local", sa.Time(), nullable=False),
        sa.Column("end_time_local", sa.Time(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "start_time_local", name="uq_product_slot_start"),
    )

    op.create_table(
        "units",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("unit_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "status",
            sa.Enum("AVAILABLE", "MAINTENANCE", "RETIRED", name="unitstatus"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "unit_number", name="uq_unit_number"),
    )

    op.create_table(
        "blackout_dates",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "product_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=255)),
        *_timestamps(),
    )

    op.create_table(
        "ops_resources",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "resource_type",
            sa.Enum("DELIVERY_CREW", "VEHICLE", name="opsresourcetype"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("color", sa.String(length=16)),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "ops_resource_schedules",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "resource_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("ops_resources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("resource_id", "day_of_week", name="uq_ops_schedule_day"),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=120)),
        sa.Column("last_name", sa.String(length=120)),
        sa.Column("phone", sa.String(length=32)),
        *_timestamps(),
    )

    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column(
            "discount_type",
            sa.Enum("PERCENT", "FIXED", name="discounttype"),
            nullable=False,
        ),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount_cap", sa.Numeric(10, 2)),
        sa.Column("min_order_amount", sa.Numeric(10, 2)),
        sa.Column(
            "product_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
        ),
        sa.Column("usage_limit", sa.Integer()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "single_use_per_customer",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("starts_on", sa.Date()),
        sa.Column("expires_on", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column(
            "product_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("products.id"),
            nullable=False,
        ),
        sa.Column(
            "unit_id", sa.Uuid(as_uuid=True), sa.ForeignKey("units.id"), nullable=False
        ),
        sa.Column(
            "customer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("customers.id"),
            nullable=False,
        ),
        sa.Column(
            "slot_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("product_slots.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "booking_type",
            sa.Enum("DAILY", "WEEKEND", "SUNDAY", "SLOT", name="bookingtype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", name="bookingstatus"
            ),
            nullable=False,
        ),
        sa.Column("product_snapshot", json_type, nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("delivery_date", sa.Date(), nullable=False),
        sa.Column("pickup_date", sa.Date(), nullable=False),
        sa.Column("delivery_window", sa.String(length=64), nullable=False),
        sa.Column("pickup_window", sa.String(length=64), nullable=False),
        sa.Column(
            "same_day_pickup", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("event_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("service_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("service_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"
        ),
        sa.Column("promo_code", sa.String(length=64)),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("balance_due", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "payment_type", sa.String(length=16), nullable=False, server_default="deposit"
        ),
        *[
            sa.Column(
                column,
                sa.Uuid(as_uuid=True),
                sa.ForeignKey("ops_resources.id", ondelete="SET NULL"),
            )
            for column in (
                "delivery_crew_id",
                "pickup_crew_id",
                "delivery_vehicle_id",
                "pickup_vehicle_id",
            )
        ],
        sa.Column("stripe_checkout_session_id", sa.String(length=255)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.String(length=255)),
        *_timestamps(),
    )
    op.create_index(
        "ix_bookings_unit_window",
        "bookings",
        ["unit_id", "service_start", "service_end"],
    )
    op.create_index("ix_bookings_status_created", "bookings", ["status", "created_at"])

    if is_postgres:
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            f"""
            ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT}
            EXCLUDE USING gist (
                unit_id WITH =,
                tstzrange(service_start, service_end) WITH &&
            ) WHERE (status <> 'CANCELLED')
            """
        )
    elif bind.dialect.name == "sqlite":
        op.execute(
            f"CREATE TRIGGER {OVERLAP_CONSTRAINT}_insert "
            "BEFORE INSERT ON bookings WHEN NEW.status <> 'CANCELLED' "
            f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
        )
        op.execute(
            f"CREATE TRIGGER {OVERLAP_CONSTRAINT}_update "
            "BEFORE UPDATE OF unit_id, service_start, service_end, status ON bookings "
            "WHEN NEW.status <> 'CANCELLED' "
            f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
        )

    op.create_table(
        "booking_blocks",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "resource_kind",
            sa.Enum("ASSET", "OPS", name="blockresourcekind"),
            nullable=False,
        ),
        sa.Column("resource_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "block_type",
            sa.Enum("FULL_RENTAL", "DELIVERY_LEG", "PICKUP_LEG", name="blocktype"),
            nullable=False,
        ),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_booking_blocks_resource_window",
        "booking_blocks",
        ["resource_id", "start_at", "end_at"],
    )

    op.create_table(
        "promo_code_redemptions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "promo_code_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("promo_codes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "customer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "booking_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("discount_applied", sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("promo_code_id", "booking_id", name="uq_promo_redemption"),
    )


def downgrade() -> None:
    op.drop_table("promo_code_redemptions")
    op.drop_index("ix_booking_blocks_resource_window", table_name="booking_blocks")
    op.drop_table("booking_blocks")
    op.drop_index("ix_bookings_status_created", table_name="bookings")
    op.drop_index("ix_bookings_unit_window", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("promo_codes")
    op.drop_table("customers")
    op.drop_table("ops_resource_schedules")
    op.drop_table("ops_resources")
    op.drop_table("blackout_dates")
    op.drop_table("units")
    op.drop_table("product_slots")
    op.drop_table("products")
    for enum_name in (
        "blocktype",
        "blockresourcekind",
        "bookingstatus",
        "bookingtype",
        "discounttype",
        "opsresourcetype",
        "unitstatus",
        "schedulingmode",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
