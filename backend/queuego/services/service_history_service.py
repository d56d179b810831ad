"""Service history recording.

One record is written for every ticket that leaves the ``serving`` state
through call-next displacement or an explicit complete. Records are never
updated or deleted; the wait-time estimator reads the newest of them.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from queuego.db.base import as_utc, utcnow
from queuego.models.ticket import ServiceHistory, Ticket
from queuego.services.wait_time_service import round_half_up

logger = logging.getLogger(__name__)

MIN_SERVICE_MINUTES = 1


def service_minutes(served_at: Optional[datetime], finished_at: datetime) -> int:
    """Whole minutes between entering and leaving service, never below one.

    A ticket without a ``served_at`` stamp counts as served at ``finished_at``.
    """
    finished = as_utc(finished_at)
    start = as_utc(served_at) or finished
    elapsed = (finished - start).total_seconds() / 60
    return max(MIN_SERVICE_MINUTES, round_half_up(elapsed))


class ServiceHistoryService:
    """Appends service-duration records inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, ticket: Ticket, finished_at: Optional[datetime] = None) -> ServiceHistory:
        """Add a record for ``ticket``. The caller commits."""
        finished_at = finished_at or utcnow()
        minutes = service_minutes(ticket.served_at, finished_at)

        entry = ServiceHistory(
            store_id=ticket.store_id,
            ticket_id=ticket.id,
            service_time_minutes=minutes,
            completed_at=finished_at,
        )
        self.db.add(entry)
        logger.info(
            f"Recorded service time for ticket {ticket.id} "
            f"(store {ticket.store_id}, #{ticket.ticket_number}): {minutes} min"
        )
        return entry

    def list_for_store(self, store_id: int, limit: int = 50) -> list[ServiceHistory]:
        return (
            self.db.query(ServiceHistory)
            .filter(ServiceHistory.store_id == store_id)
            .order_by(ServiceHistory.completed_at.desc(), ServiceHistory.id.desc())
            .limit(limit)
            .all()
        )
