"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_PREDICATE = "status IN ('waiting', 'called', 'serving')"
SERVING_PREDICATE = "status = 'serving'"


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Stores table
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("state", sa.String(200), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("latitude", sa.String(32), nullable=True),
        sa.Column("longitude", sa.String(32), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("open_time", sa.String(5), nullable=False, server_default="10:00"),
        sa.Column("close_time", sa.String(5), nullable=False, server_default="20:00"),
        sa.Column("deposit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("default_service_time", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_ticket_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rating", sa.String(10), nullable=False, server_default="0"),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("deposit >= 0", name="ck_stores_deposit_non_negative"),
        sa.CheckConstraint("default_service_time >= 1", name="ck_stores_default_service_time_positive"),
    )
    op.create_index("ix_stores_owner_id", "stores", ["owner_id"])
    op.create_index("ix_stores_is_active", "stores", ["is_active"])

    # Per-store service catalog
    op.create_table(
        "store_services",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_store_services_store_id", "store_services", ["store_id"])

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("secret_code", sa.String(4), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="waiting"),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("called_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("served_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deposit_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deposit_refunded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("store_id", "ticket_number", name="uq_tickets_store_number"),
        sa.CheckConstraint("ticket_number >= 1", name="ck_tickets_number_positive"),
        sa.CheckConstraint("deposit_amount >= 0", name="ck_tickets_deposit_non_negative"),
    )
    op.create_index(
        "uq_tickets_one_serving_per_store",
        "tickets",
        ["store_id"],
        unique=True,
        sqlite_where=sa.text(SERVING_PREDICATE),
        postgresql_where=sa.text(SERVING_PREDICATE),
    )
    op.create_index(
        "uq_tickets_one_active_per_user",
        "tickets",
        ["store_id", "user_id"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_PREDICATE),
        postgresql_where=sa.text(ACTIVE_PREDICATE),
    )
    op.create_index("ix_tickets_store_status_number", "tickets", ["store_id", "status", "ticket_number"])
    op.create_index("ix_tickets_user_status", "tickets", ["user_id", "status"])

    # Measured service durations
    op.create_table(
        "service_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_time_minutes", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("ticket_id", name="uq_service_history_ticket_id"),
        sa.CheckConstraint("service_time_minutes >= 1", name="ck_service_history_minutes_positive"),
    )
    op.create_index("ix_service_history_store_completed", "service_history", ["store_id", "completed_at"])


def downgrade() -> None:
    op.drop_table("service_history")
    op.drop_table("tickets")
    op.drop_table("store_services")
    op.drop_table("stores")
    op.drop_table("users")
