"""Ticket Lifecycle Service - the queue state machine.

Lifecycle:
    waiting -> serving -> completed      (call next, then complete or displace)
    waiting/called/serving -> cancelled  (customer leaves the queue)
    waiting/called -> no_show            (vendor skip)

Ordering is strict FIFO by ticket number. Ticket numbers come from a
per-store counter on the store row and are never reused, so cancellations
leave gaps but never renumber anyone. "People ahead" is always recomputed
live from ticket numbers; the ``position`` column is only a snapshot taken
when the ticket was issued.

Two operations touch per-store shared state and are serialized per store:
ticket issuance (the counter) and call-next (the single serving slot). The
in-process lock covers concurrent requests in one worker; the counter
UPDATE and the partial unique indexes on ``tickets`` cover concurrent
workers.

Notifications are published as events after the state change is committed.
Publishing never raises, so a notification problem cannot undo a transition.
"""

import logging
import secrets
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from queuego.core.exceptions import (
    DuplicateTicketError,
    EmptyQueueError,
    InvalidTransitionError,
    NoTicketServingError,
    NotFoundError,
    StoreClosedError,
)
from queuego.db.base import utcnow
from queuego.models.store import Store
from queuego.models.ticket import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Ticket,
    TicketStatus,
)
from queuego.services import queue_queries
from queuego.services.notification_service import (
    NotificationPublisher,
    TicketEventType,
    publish_ticket_event,
)
from queuego.services.service_history_service import ServiceHistoryService
from queuego.services.store_service import StoreRegistryService
from queuego.services.wait_time_service import WaitTimeService

logger = logging.getLogger(__name__)


def generate_secret_code() -> str:
    """Random 4-digit verification code (1000-9999). Not unique."""
    return str(1000 + secrets.randbelow(9000))


class StoreLocks:
    """One mutex per store for operations that must not interleave."""

    def __init__(self):
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def for_store(self, store_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(store_id)
            if lock is None:
                lock = self._locks[store_id] = threading.Lock()
            return lock


store_locks = StoreLocks()


class TicketService:
    """Issues tickets and moves them through the queue."""

    def __init__(
        self,
        db: Session,
        publisher: Optional[NotificationPublisher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.publisher = publisher
        self.clock = clock
        self.stores = StoreRegistryService(db)
        self.wait_times = WaitTimeService(db)
        self.history = ServiceHistoryService(db)

    # ===== CUSTOMER OPERATIONS =====

    def create_ticket(self, store_id: int, user_id: int) -> Tuple[Ticket, int]:
        """Join a store's queue.

        Returns the new ticket and its estimated wait in minutes.
        """
        store = self.stores.get_store(store_id)
        if not store.is_accepting_tickets:
            raise StoreClosedError(store.id)

        with store_locks.for_store(store.id):
            existing = self._active_ticket_for(store.id, user_id)
            if existing:
                raise DuplicateTicketError(store.id, existing.id)

            try:
                ticket_number = self._allocate_ticket_number(store.id)
                ahead = queue_queries.waiting_count(self.db, store.id)
                ticket = Ticket(
                    store_id=store.id,
                    user_id=user_id,
                    ticket_number=ticket_number,
                    secret_code=generate_secret_code(),
                    status=TicketStatus.WAITING,
                    position=ahead + 1,
                    created_at=self.clock(),
                    deposit_amount=store.deposit,
                    deposit_refunded=False,
                )
                self.db.add(ticket)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                # Another worker issued a live ticket for this user first
                existing = self._active_ticket_for(store.id, user_id)
                if existing:
                    raise DuplicateTicketError(store.id, existing.id)
                raise

        self.db.refresh(ticket)
        estimated_wait = self.wait_times.estimate_wait(store, ahead)
        logger.info(
            f"Ticket {ticket.id} issued: store {store.id} #{ticket.ticket_number} "
            f"for user {user_id}, position {ticket.position}, ~{estimated_wait} min"
        )

        self._publish(
            TicketEventType.CREATED, ticket, store,
            position=ticket.position,
            estimated_wait_minutes=estimated_wait,
        )
        return ticket, estimated_wait

    def get_ticket(self, ticket_id: int, user_id: int) -> Dict[str, Any]:
        """Ticket with store and live queue position. Only the holder may read it."""
        ticket = self._owned_ticket(ticket_id, user_id)
        return self._annotate(ticket)

    def cancel_ticket(self, ticket_id: int, user_id: int) -> Ticket:
        """Leave the queue. Allowed while waiting, called or serving."""
        ticket = self._owned_ticket(ticket_id, user_id)
        self._check_transition(ticket, TicketStatus.CANCELLED)

        now = self.clock()
        ticket.status = TicketStatus.CANCELLED
        ticket.cancelled_at = now
        # History views filter on a completion timestamp
        ticket.completed_at = now
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"Ticket {ticket.id} cancelled by user {user_id}")

        self._publish(TicketEventType.CANCELLED, ticket, ticket.store)
        return ticket

    def list_active_tickets(self, user_id: int) -> List[Dict[str, Any]]:
        """The user's live tickets, newest first, with live queue info."""
        tickets = (
            self.db.query(Ticket)
            .filter(Ticket.user_id == user_id, Ticket.status.in_(ACTIVE_STATUSES))
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .all()
        )
        return [self._annotate(ticket) for ticket in tickets]

    def list_ticket_history(self, user_id: int, limit: int = 20, offset: int = 0) -> List[Ticket]:
        """The user's finished tickets, newest first."""
        return (
            self.db.query(Ticket)
            .filter(Ticket.user_id == user_id, Ticket.status.in_(TERMINAL_STATUSES))
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # ===== VENDOR OPERATIONS =====

    def call_next_ticket(self, store_id: int, owner_id: int) -> Ticket:
        """Seat the oldest waiting ticket.

        Whoever is currently being served is completed first and their
        service time recorded. Both changes commit together.
        """
        store = self.stores.require_owned_store(store_id, owner_id)

        with store_locks.for_store(store.id):
            next_ticket = (
                self.db.query(Ticket)
                .filter(Ticket.store_id == store.id, Ticket.status == TicketStatus.WAITING)
                .order_by(Ticket.ticket_number.asc())
                .with_for_update()
                .first()
            )
            if not next_ticket:
                raise EmptyQueueError(store.id)

            now = self.clock()
            try:
                current = queue_queries.serving_ticket(self.db, store.id)
                if current:
                    self._finish_service(current, now)
                    # Free the serving slot before the next ticket takes it
                    self.db.flush()

                next_ticket.status = TicketStatus.SERVING
                next_ticket.called_at = now
                next_ticket.served_at = now
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(next_ticket)
        logger.info(
            f"Store {store.id} now serving #{next_ticket.ticket_number} (ticket {next_ticket.id})"
            + (f"; #{current.ticket_number} completed" if current else "")
        )

        self._publish(TicketEventType.CALLED, next_ticket, store)
        return next_ticket

    def skip_ticket(self, store_id: int, ticket_id: int, owner_id: int) -> Ticket:
        """Mark a waiting or called ticket as a no-show.

        Does not touch the serving slot and does not call anyone else.
        """
        store = self.stores.require_owned_store(store_id, owner_id)
        ticket = (
            self.db.query(Ticket)
            .filter(Ticket.id == ticket_id, Ticket.store_id == store.id)
            .first()
        )
        if not ticket:
            raise NotFoundError("Ticket not found")
        self._check_transition(ticket, TicketStatus.NO_SHOW)

        ticket.status = TicketStatus.NO_SHOW
        ticket.completed_at = self.clock()
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"Store {store.id} skipped #{ticket.ticket_number} (ticket {ticket.id})")

        self._publish(TicketEventType.SKIPPED, ticket, store)
        return ticket

    def complete_current_ticket(self, store_id: int, owner_id: int) -> Ticket:
        """Finish the ticket in service. The next ticket must be called separately."""
        store = self.stores.require_owned_store(store_id, owner_id)

        with store_locks.for_store(store.id):
            ticket = queue_queries.serving_ticket(self.db, store.id)
            if not ticket:
                raise NoTicketServingError(store.id)

            try:
                record = self._finish_service(ticket, self.clock())
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(ticket)
        logger.info(f"Store {store.id} completed #{ticket.ticket_number} (ticket {ticket.id})")

        self._publish(
            TicketEventType.COMPLETED, ticket, store,
            service_minutes=record.service_time_minutes,
        )
        return ticket

    def get_store_queue(self, store_id: int, owner_id: int) -> Dict[str, Any]:
        """Vendor dashboard view of a store's queue."""
        store = self.stores.require_owned_store(store_id, owner_id)
        serving = queue_queries.serving_ticket(self.db, store.id)
        waiting = queue_queries.waiting_tickets(self.db, store.id)
        return {
            "current_ticket": serving.ticket_number if serving else None,
            "next_ticket": waiting[0].ticket_number if waiting else None,
            "queue_length": len(waiting),
            "waiting_tickets": waiting,
        }

    def list_service_history(self, store_id: int, owner_id: int, limit: int = 50):
        store = self.stores.require_owned_store(store_id, owner_id)
        return self.history.list_for_store(store.id, limit=limit)

    # ===== HELPERS =====

    def _allocate_ticket_number(self, store_id: int) -> int:
        """Increment the store's counter and return the new value.

        The UPDATE takes the row (or database) write lock, so concurrent
        issuers serialize until this transaction ends.
        """
        self.db.execute(
            update(Store)
            .where(Store.id == store_id)
            .values(last_ticket_number=Store.last_ticket_number + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(
            select(Store.last_ticket_number).where(Store.id == store_id)
        ).scalar_one()

    def _active_ticket_for(self, store_id: int, user_id: int) -> Optional[Ticket]:
        return (
            self.db.query(Ticket)
            .filter(
                Ticket.store_id == store_id,
                Ticket.user_id == user_id,
                Ticket.status.in_(ACTIVE_STATUSES),
            )
            .first()
        )

    def _owned_ticket(self, ticket_id: int, user_id: int) -> Ticket:
        ticket = (
            self.db.query(Ticket)
            .filter(Ticket.id == ticket_id, Ticket.user_id == user_id)
            .first()
        )
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    @staticmethod
    def _check_transition(ticket: Ticket, target: TicketStatus) -> None:
        if not ticket.can_transition_to(target):
            current = TicketStatus(ticket.status)
            raise InvalidTransitionError(ticket.id, current.value, target.value)

    def _finish_service(self, ticket: Ticket, now: datetime):
        """Complete a serving ticket and write its history record."""
        self._check_transition(ticket, TicketStatus.COMPLETED)
        ticket.status = TicketStatus.COMPLETED
        ticket.completed_at = now
        return self.history.record(ticket, now)

    def _annotate(self, ticket: Ticket) -> Dict[str, Any]:
        ahead = queue_queries.people_ahead(self.db, ticket)
        serving = queue_queries.serving_ticket(self.db, ticket.store_id)
        return {
            "ticket": ticket,
            "store": ticket.store,
            "people_ahead": ahead,
            "currently_serving": serving.ticket_number if serving else None,
            "estimated_wait_time": self.wait_times.estimate_wait(ticket.store, ahead),
        }

    def _publish(self, kind: TicketEventType, ticket: Ticket, store: Store, **details) -> None:
        publish_ticket_event(self.db, self.publisher, kind, ticket, store, **details)
