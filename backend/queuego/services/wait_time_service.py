"""Adaptive wait-time estimation.

The estimate for a customer with N people ahead is

    W = N * (w * T_recent + (1 - w) * T_default)

where T_recent is the mean of the store's most recent measured service
times, T_default the store's configured default and w the recent weight
(0.7 unless configured otherwise). With no history T_recent falls back to
T_default, so the blend collapses to N * T_default.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from queuego.core.config import settings
from queuego.models.store import Store
from queuego.models.ticket import ServiceHistory


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def blended_service_time(
    default_minutes: int,
    recent_minutes: Sequence[int],
    recent_weight: float,
) -> float:
    """Blend the recent average service time with the store default."""
    if recent_minutes:
        recent_average = sum(recent_minutes) / len(recent_minutes)
    else:
        recent_average = default_minutes
    return recent_weight * recent_average + (1 - recent_weight) * default_minutes


class WaitTimeService:
    """Estimates minutes until a ticket reaches the counter."""

    def __init__(
        self,
        db: Session,
        history_window: Optional[int] = None,
        recent_weight: Optional[float] = None,
    ):
        self.db = db
        self.history_window = settings.wait_history_window if history_window is None else history_window
        self.recent_weight = settings.wait_recent_weight if recent_weight is None else recent_weight

    def recent_service_times(self, store_id: int) -> list[int]:
        """Most recent measured service times, newest first."""
        stmt = (
            select(ServiceHistory.service_time_minutes)
            .where(ServiceHistory.store_id == store_id)
            .order_by(ServiceHistory.completed_at.desc(), ServiceHistory.id.desc())
            .limit(self.history_window)
        )
        return list(self.db.execute(stmt).scalars())

    def estimate_wait(self, store: Store, people_ahead: int) -> int:
        if people_ahead <= 0:
            return 0

        weighted = blended_service_time(
            store.default_service_time,
            self.recent_service_times(store.id),
            self.recent_weight,
        )
        return round_half_up(people_ahead * weighted)
