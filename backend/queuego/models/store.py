"""Store and service catalog models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from queuego.db.base import Base, TimestampMixin


class StoreCategory(str, Enum):
    DOCTOR = "Doctor"
    SALOON = "Saloon"
    CAR_WASH = "Car Wash"


class Store(Base, TimestampMixin):
    """A business that runs a virtual queue."""

    __tablename__ = "stores"
    __table_args__ = (
        CheckConstraint("deposit >= 0", name="ck_stores_deposit_non_negative"),
        CheckConstraint("default_service_time >= 1", name="ck_stores_default_service_time_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Location
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    longitude: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Contact
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Operating hours, HH:MM
    open_time: Mapped[str] = mapped_column(String(5), default="10:00", nullable=False)
    close_time: Mapped[str] = mapped_column(String(5), default="20:00", nullable=False)

    # Queue settings
    deposit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # smallest currency unit
    default_service_time: Mapped[int] = mapped_column(Integer, default=5, nullable=False)  # minutes
    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Highest ticket number issued so far; only ever incremented
    last_ticket_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Stats
    rating: Mapped[str] = mapped_column(String(10), default="0", nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    offerings: Mapped[List["StoreOffering"]] = relationship(
        "StoreOffering",
        back_populates="store",
        cascade="all, delete-orphan",
        order_by="StoreOffering.id",
    )

    @property
    def is_accepting_tickets(self) -> bool:
        return bool(self.is_active and self.is_open)


class StoreOffering(Base):
    """A service offered by a store (haircut, check-up, full wash...)."""

    __tablename__ = "store_services"

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # text to avoid precision issues
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    store: Mapped["Store"] = relationship("Store", back_populates="offerings")
