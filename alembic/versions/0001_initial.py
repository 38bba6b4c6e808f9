"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "buses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_number", sa.String(length=30), nullable=False),
        sa.Column("bus_type", sa.String(length=40), nullable=False, server_default="Standard"),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="Active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_buses_bus_number", "buses", ["bus_number"], unique=True)
    op.create_index("ix_buses_status", "buses", ["status"])

    op.create_table(
        "routes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("source", sa.String(length=120), nullable=False),
        sa.Column("destination", sa.String(length=120), nullable=False),
        sa.Column("base_fare", sa.Numeric(12, 2), nullable=False),
        sa.Column("operating_days", sa.String(length=30), nullable=False, server_default="0,1,2,3,4,5,6"),
        sa.Column("departure_time", sa.String(length=5), nullable=False),
        sa.Column("arrival_time", sa.String(length=5), nullable=False),
        sa.Column("distance_km", sa.Integer(), nullable=True),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_routes_source", "routes", ["source"])
    op.create_index("ix_routes_destination", "routes", ["destination"])
    op.create_index("ix_routes_bus_id", "routes", ["bus_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_ref", sa.String(length=20), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("route_id", sa.String(length=36), nullable=False),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("booking_type", sa.String(length=30), nullable=False, server_default="One-Way"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="Pending"),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_arrival_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("total_fare", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("promo_code", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("discount_pct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("contact_email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("contact_phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("booking_source", sa.String(length=30), nullable=False, server_default="Website"),
        sa.Column("payment_status", sa.String(length=30), nullable=False, server_default="Pending"),
        sa.Column("total_paid", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_refunded", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_method", sa.String(length=30), nullable=False, server_default=""),
        sa.Column("payment_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bookings_booking_ref", "bookings", ["booking_ref"], unique=True)
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_route_id", "bookings", ["route_id"])
    op.create_index("ix_bookings_bus_id", "bookings", ["bus_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_departure_at", "bookings", ["departure_at"])
    op.create_index("ix_bookings_return_at", "bookings", ["return_at"])

    op.create_table(
        "booking_passengers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("gender", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("seat_number", sa.String(length=10), nullable=False),
        sa.Column("passenger_type", sa.String(length=10), nullable=False, server_default="Adult"),
        sa.Column("document_type", sa.String(length=30), nullable=False, server_default="None"),
        sa.Column("document_number", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("fare", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_booking_passengers_booking_id", "booking_passengers", ["booking_id"])

    op.create_table(
        "booking_seats",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("leg", sa.String(length=10), nullable=False),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("seat_number", sa.String(length=10), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_booking_seats_booking_id", "booking_seats", ["booking_id"])
    op.create_index("ix_booking_seats_bus_id", "booking_seats", ["bus_id"])
    # One active holder per seat per departure
    op.create_index(
        "uq_booking_seats_active",
        "booking_seats",
        ["bus_id", "departure_at", "seat_number"],
        unique=True,
        postgresql_where=sa.text("active"),
        sqlite_where=sa.text("active"),
    )

    op.create_table(
        "hirings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("hiring_ref", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="Pending"),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("route_id", sa.String(length=36), nullable=True),
        sa.Column("purpose", sa.String(length=500), nullable=False),
        sa.Column("passenger_count", sa.Integer(), nullable=False),
        sa.Column("special_requirements", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("start_location", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("end_location", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("return_location", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("trip_type", sa.String(length=30), nullable=False, server_default="One-Way"),
        sa.Column("return_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_distance", sa.Numeric(10, 2), nullable=False),
        sa.Column("rate_type", sa.String(length=30), nullable=False, server_default="Per Day"),
        sa.Column("base_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("route_price_multiplier", sa.Numeric(6, 2), nullable=False, server_default="1"),
        sa.Column("driver_allowance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("overtime_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("fuel_included", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("deposit", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("payment_status", sa.String(length=30), nullable=False, server_default="Pending"),
        sa.Column("total_paid", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_refunded", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_method", sa.String(length=30), nullable=False, server_default=""),
        sa.Column("payment_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_policy", sa.String(length=20), nullable=False, server_default="Standard"),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("driver_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("driver_contact", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("driver_license", sa.String(length=60), nullable=False, server_default=""),
        sa.Column("driver_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_hirings_hiring_ref", "hirings", ["hiring_ref"], unique=True)
    op.create_index("ix_hirings_status", "hirings", ["status"])
    op.create_index("ix_hirings_user_id", "hirings", ["user_id"])
    op.create_index("ix_hirings_bus_id", "hirings", ["bus_id"])
    op.create_index("ix_hirings_route_id", "hirings", ["route_id"])
    op.create_index("ix_hirings_start_at", "hirings", ["start_at"])
    op.create_index("ix_hirings_end_at", "hirings", ["end_at"])

    op.create_table(
        "hiring_charges",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("hiring_id", sa.String(length=36), sa.ForeignKey("hirings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_hiring_charges_hiring_id", "hiring_charges", ["hiring_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reservation_kind", sa.String(length=10), nullable=False),
        sa.Column("reservation_id", sa.String(length=36), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("method", sa.String(length=30), nullable=False, server_default="Paystack"),
        sa.Column("transaction_id", sa.String(length=120), nullable=False),
        sa.Column("reference", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("gateway", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("gateway_response_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Completed"),
        sa.Column("processed_by", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("reservation_kind", "reservation_id", "transaction_id", name="uq_payments_reservation_txn"),
    )
    op.create_index("ix_payments_reservation_kind", "payments", ["reservation_kind"])
    op.create_index("ix_payments_reservation_id", "payments", ["reservation_id"])

    op.create_table(
        "refunds",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reservation_kind", sa.String(length=10), nullable=False),
        sa.Column("reservation_id", sa.String(length=36), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("refund_transaction_id", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Completed"),
        sa.Column("processed_by", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_refunds_reservation_kind", "refunds", ["reservation_kind"])
    op.create_index("ix_refunds_reservation_id", "refunds", ["reservation_id"])
    op.create_index("ix_refunds_refund_transaction_id", "refunds", ["refund_transaction_id"], unique=True)

    op.create_table(
        "status_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reservation_kind", sa.String(length=10), nullable=False),
        sa.Column("reservation_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("actor", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("notes", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_status_history_reservation_kind", "status_history", ["reservation_kind"])
    op.create_index("ix_status_history_reservation_id", "status_history", ["reservation_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_user_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=80), primary_key=True),
        sa.Column("int_value", sa.Integer(), nullable=True),
        sa.Column("str_value", sa.String(length=1000), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("audit_logs")
    op.drop_table("status_history")
    op.drop_table("refunds")
    op.drop_table("payments")
    op.drop_table("hiring_charges")
    op.drop_table("hirings")
    op.drop_index("uq_booking_seats_active", table_name="booking_seats")
    op.drop_table("booking_seats")
    op.drop_table("booking_passengers")
    op.drop_table("bookings")
    op.drop_table("routes")
    op.drop_table("buses")
    op.drop_table("users")
