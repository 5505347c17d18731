"""Reservation schema: routes, buses, bookings, seat_inventory.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Catalog reference tables, owned by catalog management
    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("from_location", sa.String(255), nullable=False),
        sa.Column("to_location", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("pickup_locations", sa.JSON(), nullable=False),
        sa.Column("distance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("duration", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_route_price_non_negative"),
    )
    op.create_index("ix_routes_id", "routes", ["id"])

    op.create_table(
        "buses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_number", sa.String(50), nullable=False, unique=True),
        sa.Column("bus_type", sa.String(20), nullable=False, server_default=sa.text("'normal'")),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("departure_time", sa.String(5), nullable=False, server_default=sa.text("'08:00'")),
        sa.Column("route_id", sa.Integer(), sa.ForeignKey("routes.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("capacity BETWEEN 1 AND 100", name="check_bus_capacity_range"),
        sa.CheckConstraint("bus_type IN ('luxury', 'semi_luxury', 'normal')", name="check_bus_type"),
    )
    op.create_index("ix_buses_id", "buses", ["id"])
    op.create_index("ix_buses_route_id", "buses", ["route_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("route_id", sa.Integer(), sa.ForeignKey("routes.id"), nullable=False),
        sa.Column("travel_date", sa.Date(), nullable=False),
        sa.Column("seat_numbers", sa.JSON(), nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=False),
        sa.Column("passenger_phone", sa.String(50), nullable=False),
        sa.Column("passenger_email", sa.String(255), nullable=True),
        sa.Column("pickup_location", sa.String(255), nullable=True),
        sa.Column("booking_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'cash'")),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="check_booking_payment_status",
        ),
    )
    # Seat-map computation and the concurrency key both look up by (bus, date).
    op.create_index("ix_bookings_bus_travel_date", "bookings", ["bus_id", "travel_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])

    # One row per seat map; the lock / version anchor for reservations.
    op.create_table(
        "seat_inventory",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("travel_date", sa.Date(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("bus_id", "travel_date", name="uq_seat_inventory_bus_date"),
    )


def downgrade() -> None:
    op.drop_table("seat_inventory")
    op.drop_table("bookings")
    op.drop_table("buses")
    op.drop_table("routes")
