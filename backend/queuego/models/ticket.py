"""Ticket and service history models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from queuego.db.base import Base


class TicketStatus(str, Enum):
    WAITING = "waiting"
    CALLED = "called"
    SERVING = "serving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = (TicketStatus.WAITING, TicketStatus.CALLED, TicketStatus.SERVING)
TERMINAL_STATUSES = (TicketStatus.COMPLETED, TicketStatus.CANCELLED, TicketStatus.NO_SHOW)

# Allowed moves of the lifecycle state machine
TRANSITIONS = {
    TicketStatus.WAITING: {TicketStatus.CALLED, TicketStatus.SERVING, TicketStatus.CANCELLED, TicketStatus.NO_SHOW},
    TicketStatus.CALLED: {TicketStatus.SERVING, TicketStatus.CANCELLED, TicketStatus.NO_SHOW},
    TicketStatus.SERVING: {TicketStatus.COMPLETED, TicketStatus.CANCELLED},
    TicketStatus.COMPLETED: set(),
    TicketStatus.CANCELLED: set(),
    TicketStatus.NO_SHOW: set(),
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Ticket(Base):
    """A customer's place in a store's queue."""

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("store_id", "ticket_number", name="uq_tickets_store_number"),
        # A store has at most one ticket in service
        Index(
            "uq_tickets_one_serving_per_store",
            "store_id",
            unique=True,
            sqlite_where=text("status = 'serving'"),
            postgresql_where=text("status = 'serving'"),
        ),
        # A customer holds at most one live ticket per store
        Index(
            "uq_tickets_one_active_per_user",
            "store_id",
            "user_id",
            unique=True,
            sqlite_where=text("status IN ('waiting', 'called', 'serving')"),
            postgresql_where=text("status IN ('waiting', 'called', 'serving')"),
        ),
        Index("ix_tickets_store_status_number", "store_id", "status", "ticket_number"),
        Index("ix_tickets_user_status", "user_id", "status"),
        CheckConstraint("ticket_number >= 1", name="ck_tickets_number_positive"),
        CheckConstraint("deposit_amount >= 0", name="ck_tickets_deposit_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    secret_code: Mapped[str] = mapped_column(String(4), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(
            TicketStatus,
            name="ticket_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        default=TicketStatus.WAITING,
        nullable=False,
    )

    # Position at the moment of joining; live position is always recomputed
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    called_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    served_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    deposit_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deposit_refunded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    store: Mapped["Store"] = relationship("Store")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_transition_to(self, target: TicketStatus) -> bool:
        return target in TRANSITIONS[TicketStatus(self.status)]


class ServiceHistory(Base):
    """Measured service duration of one ticket, feeding wait estimates."""

    __tablename__ = "service_history"
    __table_args__ = (
        Index("ix_service_history_store_completed", "store_id", "completed_at"),
        CheckConstraint("service_time_minutes >= 1", name="ck_service_history_minutes_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(
        ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    service_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )


from queuego.models.store import Store  # noqa: E402
