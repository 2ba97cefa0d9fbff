"""Initial schema: studios, trainers, clients, services, availability,
bookings with the no-overlap exclusion constraint, and the credit ledger.

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


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # btree_gist lets a GiST index mix scalar equality (trainer_id) with range overlap
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "studios",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("booking_model", sa.String(30), nullable=False, server_default="client-self-book"),
        sa.Column("soft_holds_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("soft_hold_minutes", sa.Integer(), nullable=True),
        sa.Column("opening_hours", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        *_timestamps(),
        sa.CheckConstraint(
            "soft_hold_minutes IS NULL OR soft_hold_minutes > 0",
            name="check_studio_soft_hold_positive",
        ),
    )
    op.create_index("ix_studios_id", "studios", ["id"])

    op.create_table(
        "trainers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_trainers_id", "trainers", ["id"])
    op.create_index("ix_trainers_studio_id", "trainers", ["studio_id"])

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("is_guest", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("source", sa.String(30), nullable=False, server_default="manual"),
        sa.Column("invited_by", sa.Integer(), sa.ForeignKey("trainers.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("studio_id", "email", name="uq_client_studio_email"),
    )
    op.create_index("ix_clients_id", "clients", ["id"])
    op.create_index("ix_clients_studio_id", "clients", ["studio_id"])
    op.create_index("ix_clients_account_id", "clients", ["account_id"])
    # Identity resolution looks clients up by email across studios
    op.create_index("ix_clients_email", "clients", ["email"])

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("credits_required", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("is_intro_session", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
        sa.CheckConstraint("credits_required > 0", name="check_service_credits_positive"),
    )
    op.create_index("ix_services_id", "services", ["id"])
    op.create_index("ix_services_studio_id", "services", ["studio_id"])

    op.create_table(
        "availability_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trainer_id", sa.Integer(), sa.ForeignKey("trainers.id"), nullable=False),
        sa.Column("block_type", sa.String(20), nullable=False),
        sa.Column("recurrence", sa.String(20), nullable=False, server_default="weekly"),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("start_hour", sa.Integer(), nullable=True),
        sa.Column("start_minute", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("end_hour", sa.Integer(), nullable=True),
        sa.Column("end_minute", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("specific_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("reason", sa.String(50), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("block_type IN ('available', 'blocked')", name="check_block_type"),
        sa.CheckConstraint("recurrence IN ('weekly', 'once')", name="check_block_recurrence"),
        sa.CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="check_block_day_of_week",
        ),
    )
    op.create_index("ix_availability_blocks_id", "availability_blocks", ["id"])
    op.create_index("ix_availability_blocks_trainer", "availability_blocks", ["trainer_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("trainer_id", sa.Integer(), sa.ForeignKey("trainers.id"), nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("hold_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("duration_minutes > 0", name="check_booking_duration_positive"),
        sa.CheckConstraint("ends_at > scheduled_at", name="check_booking_ends_after_start"),
        sa.CheckConstraint(
            "status IN ('soft-hold', 'confirmed', 'checked-in', 'completed', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "(status = 'soft-hold' AND hold_expiry IS NOT NULL) "
            "OR (status <> 'soft-hold' AND hold_expiry IS NULL)",
            name="check_booking_hold_expiry",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_studio_id", "bookings", ["studio_id"])
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    # Calendar reads and the conflict pre-check: one trainer, ordered by start
    op.create_index("ix_bookings_trainer_scheduled", "bookings", ["trainer_id", "scheduled_at"])
    # Expiry sweep: WHERE status = 'soft-hold' AND hold_expiry < now()
    op.create_index("ix_bookings_status_hold_expiry", "bookings", ["status", "hold_expiry"])
    # NO DOUBLE-BOOKING: two active bookings for one trainer can never hold
    # overlapping [scheduled_at, ends_at) ranges, whatever the application does.
    # Cancelled and completed rows are outside the predicate.
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_trainer_no_overlap "
        "EXCLUDE USING gist (trainer_id WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
        "WHERE (status IN ('soft-hold', 'confirmed', 'checked-in'))"
    )

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("session_count", sa.Integer(), nullable=False),
        sa.Column("validity_days", sa.Integer(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("session_count > 0", name="check_package_session_count_positive"),
    )
    op.create_index("ix_packages_id", "packages", ["id"])
    op.create_index("ix_packages_studio_id", "packages", ["studio_id"])

    op.create_table(
        "client_packages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id"), nullable=False),
        sa.Column("sessions_total", sa.Integer(), nullable=False),
        sa.Column("sessions_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("sessions_total > 0", name="check_client_package_total_positive"),
        # Final safety net for concurrent deductions and refunds
        sa.CheckConstraint(
            "sessions_used >= 0 AND sessions_used <= sessions_total",
            name="check_client_package_used_in_range",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'expired', 'exhausted')",
            name="check_client_package_status",
        ),
    )
    op.create_index("ix_client_packages_id", "client_packages", ["id"])
    op.create_index("ix_client_packages_client_id", "client_packages", ["client_id"])
    op.create_index("ix_client_packages_client_status", "client_packages", ["client_id", "status"])

    op.create_table(
        "credit_usage",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client_package_id", sa.Integer(), sa.ForeignKey("client_packages.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(30), nullable=False, server_default="booking"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("credits_used > 0", name="check_credit_usage_positive"),
    )
    op.create_index("ix_credit_usage_id", "credit_usage", ["id"])
    op.create_index("ix_credit_usage_client_package_id", "credit_usage", ["client_package_id"])
    # IDEMPOTENT COMPLETION: one deduction per booking, ever
    op.create_index("ix_credit_usage_booking_id", "credit_usage", ["booking_id"], unique=True)


def downgrade() -> None:
    op.drop_table("credit_usage")
    op.drop_table("client_packages")
    op.drop_table("packages")
    op.drop_table("bookings")
    op.drop_table("availability_blocks")
    op.drop_table("services")
    op.drop_table("clients")
    op.drop_table("trainers")
    op.drop_table("studios")
