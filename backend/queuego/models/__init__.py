"""SQLAlchemy models."""

from queuego.models.user import User
from queuego.models.store import Store, StoreOffering, StoreCategory
from queuego.models.ticket import (
    Ticket,
    ServiceHistory,
    TicketStatus,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    "User",
    "Store",
    "StoreOffering",
    "StoreCategory",
    "Ticket",
    "ServiceHistory",
    "TicketStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
]
