"""Tests for the ticket lifecycle: issuance, call-next, complete, skip, cancel."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from queuego.core.exceptions import (
    DuplicateTicketError,
    EmptyQueueError,
    ForbiddenError,
    InvalidTransitionError,
    NoTicketServingError,
    NotFoundError,
    StoreClosedError,
)
from queuego.models.ticket import ServiceHistory, Ticket, TicketStatus
from queuego.services.ticket_service import TicketService, generate_secret_code
from queuego.services.wait_time_service import WaitTimeService


BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(db_session, publisher, clock) -> TicketService:
    return TicketService(db_session, publisher=publisher, clock=clock)


@pytest.fixture
def queue_of(service, user_factory):
    """Fill a store's queue with ``n`` fresh customers; returns their tickets."""
    def _fill(store, n):
        tickets = []
        for i in range(n):
            user = user_factory(f"q{store.id}-{i}@example.com", f"Customer {i}")
            ticket, _ = service.create_ticket(store.id, user.id)
            tickets.append(ticket)
        return tickets
    return _fill


def history_for(db, ticket_id):
    return db.query(ServiceHistory).filter(ServiceHistory.ticket_id == ticket_id).all()


def serving_count(db, store_id):
    return db.query(Ticket).filter(
        Ticket.store_id == store_id, Ticket.status == TicketStatus.SERVING
    ).count()


# ============== Ticket issuance ==============

class TestCreateTicket:
    def test_first_ticket(self, service, store, customer):
        ticket, wait = service.create_ticket(store.id, customer.id)
        assert ticket.ticket_number == 1
        assert ticket.position == 1
        assert ticket.status == TicketStatus.WAITING
        assert wait == 0
        assert len(ticket.secret_code) == 4 and ticket.secret_code.isdigit()

    def test_second_ticket_waits_behind_first(self, service, store, customer, other_customer):
        service.create_ticket(store.id, customer.id)
        ticket, wait = service.create_ticket(store.id, other_customer.id)
        assert ticket.ticket_number == 2
        assert ticket.position == 2
        assert wait == 5

    def test_numbers_increase_and_never_reuse(self, service, store, queue_of, user_factory):
        first, second, third = queue_of(store, 3)
        service.cancel_ticket(third.id, third.user_id)
        late = user_factory("late@example.com", "Late")
        ticket, _ = service.create_ticket(store.id, late.id)
        assert [first.ticket_number, second.ticket_number, third.ticket_number] == [1, 2, 3]
        assert ticket.ticket_number == 4

    def test_numbering_is_per_store(self, service, store, store_factory, customer):
        other_store = store_factory(name="Sparkle Car Wash", category="Car Wash")
        a, _ = service.create_ticket(store.id, customer.id)
        b, _ = service.create_ticket(other_store.id, customer.id)
        assert a.ticket_number == 1
        assert b.ticket_number == 1

    def test_counter_tracks_issued_numbers(self, db_session, service, store, queue_of):
        queue_of(store, 2)
        db_session.refresh(store)
        assert store.last_ticket_number == 2

    def test_deposit_copied_from_store(self, service, store_factory, customer):
        store = store_factory(deposit=500)
        ticket, _ = service.create_ticket(store.id, customer.id)
        assert ticket.deposit_amount == 500
        assert ticket.deposit_refunded is False

    def test_duplicate_active_ticket_rejected(self, service, store, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        with pytest.raises(DuplicateTicketError) as exc_info:
            service.create_ticket(store.id, customer.id)
        assert exc_info.value.ticket_id == ticket.id

    def test_can_rejoin_after_cancel(self, service, store, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        service.cancel_ticket(ticket.id, customer.id)
        again, _ = service.create_ticket(store.id, customer.id)
        assert again.ticket_number == 2

    def test_serving_ticket_still_blocks_rejoin(self, service, store, vendor, customer):
        service.create_ticket(store.id, customer.id)
        service.call_next_ticket(store.id, vendor.id)
        with pytest.raises(DuplicateTicketError):
            service.create_ticket(store.id, customer.id)

    def test_closed_store_rejected(self, service, store_factory, customer):
        store = store_factory(is_open=False)
        with pytest.raises(StoreClosedError):
            service.create_ticket(store.id, customer.id)

    def test_inactive_store_not_found(self, service, store_factory, customer):
        store = store_factory(is_active=False)
        with pytest.raises(NotFoundError):
            service.create_ticket(store.id, customer.id)

    def test_unknown_store_not_found(self, service, customer):
        with pytest.raises(NotFoundError):
            service.create_ticket(9999, customer.id)

    def test_publishes_created_event(self, service, publisher, store, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        assert publisher.kinds == ["ticket_created"]
        event = publisher.events[0]
        assert event.ticket_id == ticket.id
        assert event.recipient == customer.phone
        assert event.position == 1
        assert event.estimated_wait_minutes == 0

    def test_publisher_failure_does_not_undo_ticket(self, db_session, store, customer):
        class BrokenPublisher:
            def publish(self, event):
                raise RuntimeError("provider down")

        ticket, _ = TicketService(db_session, publisher=BrokenPublisher()).create_ticket(
            store.id, customer.id
        )
        assert db_session.get(Ticket, ticket.id).status == TicketStatus.WAITING

    def test_secret_code_range(self):
        for _ in range(50):
            assert 1000 <= int(generate_secret_code()) <= 9999


# ============== Database guards ==============

class TestDatabaseGuards:
    def test_second_active_ticket_rejected_by_index(self, db_session, service, store, customer):
        service.create_ticket(store.id, customer.id)
        db_session.add(Ticket(
            store_id=store.id, user_id=customer.id, ticket_number=99,
            secret_code="1111", status=TicketStatus.WAITING,
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_second_serving_ticket_rejected_by_index(self, db_session, service, store, vendor, queue_of):
        _, second = queue_of(store, 2)
        service.call_next_ticket(store.id, vendor.id)
        second.status = TicketStatus.SERVING
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_duplicate_number_rejected(self, db_session, service, store, customer, other_customer):
        service.create_ticket(store.id, customer.id)
        db_session.add(Ticket(
            store_id=store.id, user_id=other_customer.id, ticket_number=1,
            secret_code="2222", status=TicketStatus.WAITING,
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


# ============== Live position ==============

class TestGetTicket:
    def test_people_ahead_counts_waiting_with_smaller_number(self, service, store, queue_of):
        first, second, third = queue_of(store, 3)
        view = service.get_ticket(third.id, third.user_id)
        assert view["people_ahead"] == 2
        assert view["estimated_wait_time"] == 10
        assert view["currently_serving"] is None

        service.cancel_ticket(second.id, second.user_id)
        assert service.get_ticket(third.id, third.user_id)["people_ahead"] == 1

    def test_position_snapshot_is_not_updated(self, db_session, service, store, queue_of):
        first, second = queue_of(store, 2)
        service.cancel_ticket(first.id, first.user_id)
        db_session.refresh(second)
        assert second.position == 2
        assert service.get_ticket(second.id, second.user_id)["people_ahead"] == 0

    def test_only_holder_can_read(self, service, store, customer, other_customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        with pytest.raises(NotFoundError):
            service.get_ticket(ticket.id, other_customer.id)


# ============== Call next ==============

class TestCallNext:
    def test_fifo_order_skips_gaps(self, service, store, vendor, queue_of):
        tickets = queue_of(store, 7)
        for t in (tickets[0], tickets[1], tickets[3], tickets[5]):
            service.cancel_ticket(t.id, t.user_id)

        called = [service.call_next_ticket(store.id, vendor.id).ticket_number for _ in range(3)]
        assert called == [3, 5, 7]

    def test_displaced_ticket_completed_with_history(self, db_session, service, clock, store, vendor, queue_of):
        first, second = queue_of(store, 2)
        service.call_next_ticket(store.id, vendor.id)
        clock.advance(4)
        service.call_next_ticket(store.id, vendor.id)

        db_session.refresh(first)
        db_session.refresh(second)
        assert first.status == TicketStatus.COMPLETED
        assert second.status == TicketStatus.SERVING
        records = history_for(db_session, first.id)
        assert len(records) == 1
        assert records[0].service_time_minutes == 4

    def test_at_most_one_serving(self, db_session, service, store, vendor, queue_of):
        queue_of(store, 4)
        for _ in range(4):
            service.call_next_ticket(store.id, vendor.id)
            assert serving_count(db_session, store.id) == 1

    def test_timestamps_set(self, service, clock, store, vendor, queue_of):
        queue_of(store, 1)
        ticket = service.call_next_ticket(store.id, vendor.id)
        assert ticket.called_at is not None
        assert ticket.served_at is not None

    def test_empty_queue(self, service, store, vendor):
        with pytest.raises(EmptyQueueError):
            service.call_next_ticket(store.id, vendor.id)

    def test_empty_queue_keeps_current_serving(self, db_session, service, store, vendor, queue_of):
        (only,) = queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        with pytest.raises(EmptyQueueError):
            service.call_next_ticket(store.id, vendor.id)
        db_session.refresh(only)
        assert only.status == TicketStatus.SERVING

    def test_non_owner_forbidden(self, service, store, customer, queue_of):
        queue_of(store, 1)
        with pytest.raises(ForbiddenError):
            service.call_next_ticket(store.id, customer.id)

    def test_publishes_called_event(self, service, publisher, store, vendor, queue_of):
        (ticket,) = queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        assert publisher.kinds[-1] == "ticket_called"
        assert publisher.events[-1].ticket_id == ticket.id


# ============== Complete ==============

class TestCompleteCurrent:
    def test_completes_and_records(self, db_session, service, clock, store, vendor, queue_of):
        (ticket,) = queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        clock.advance(6)
        done = service.complete_current_ticket(store.id, vendor.id)

        assert done.id == ticket.id
        assert done.status == TicketStatus.COMPLETED
        assert done.completed_at is not None
        assert history_for(db_session, ticket.id)[0].service_time_minutes == 6
        assert serving_count(db_session, store.id) == 0

    def test_does_not_call_next(self, db_session, service, store, vendor, queue_of):
        _, second = queue_of(store, 2)
        service.call_next_ticket(store.id, vendor.id)
        service.complete_current_ticket(store.id, vendor.id)
        db_session.refresh(second)
        assert second.status == TicketStatus.WAITING

    def test_nothing_serving(self, service, store, vendor, queue_of):
        queue_of(store, 1)
        with pytest.raises(NoTicketServingError):
            service.complete_current_ticket(store.id, vendor.id)

    def test_publishes_completed_event_with_minutes(self, service, publisher, clock, store, vendor, queue_of):
        queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        clock.advance(3)
        service.complete_current_ticket(store.id, vendor.id)
        assert publisher.kinds[-1] == "ticket_completed"
        assert publisher.events[-1].service_minutes == 3


# ============== Skip ==============

class TestSkip:
    def test_waiting_ticket_becomes_no_show(self, db_session, service, store, vendor, queue_of):
        first, second = queue_of(store, 2)
        skipped = service.skip_ticket(store.id, first.id, vendor.id)
        assert skipped.status == TicketStatus.NO_SHOW
        assert skipped.completed_at is not None
        assert history_for(db_session, first.id) == []
        assert service.get_ticket(second.id, second.user_id)["people_ahead"] == 0

    def test_does_not_promote_next(self, db_session, service, store, vendor, queue_of):
        first, second = queue_of(store, 2)
        service.skip_ticket(store.id, first.id, vendor.id)
        assert serving_count(db_session, store.id) == 0

    def test_finished_ticket_cannot_be_skipped(self, service, store, vendor, queue_of):
        (ticket,) = queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        service.complete_current_ticket(store.id, vendor.id)
        with pytest.raises(InvalidTransitionError):
            service.skip_ticket(store.id, ticket.id, vendor.id)

    def test_serving_ticket_cannot_be_skipped(self, service, store, vendor, queue_of):
        (ticket,) = queue_of(store, 1)
        service.call_next_ticket(store.id, vendor.id)
        with pytest.raises(InvalidTransitionError):
            service.skip_ticket(store.id, ticket.id, vendor.id)

    def test_ticket_of_other_store_not_found(self, service, store, store_factory, vendor, queue_of):
        other = store_factory(name="Other")
        (ticket,) = queue_of(other, 1)
        with pytest.raises(NotFoundError):
            service.skip_ticket(store.id, ticket.id, vendor.id)


# ============== Cancel ==============

class TestCancel:
    def test_cancel_waiting(self, db_session, service, store, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        cancelled = service.cancel_ticket(ticket.id, customer.id)
        assert cancelled.status == TicketStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert cancelled.completed_at is not None
        assert history_for(db_session, ticket.id) == []

    def test_cancel_serving_frees_slot(self, db_session, service, store, vendor, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        service.call_next_ticket(store.id, vendor.id)
        service.cancel_ticket(ticket.id, customer.id)
        assert serving_count(db_session, store.id) == 0
        assert history_for(db_session, ticket.id) == []

    def test_terminal_ticket_rejected(self, service, store, customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        service.cancel_ticket(ticket.id, customer.id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.cancel_ticket(ticket.id, customer.id)
        assert exc_info.value.current == "cancelled"

    def test_other_users_ticket_not_found(self, service, store, customer, other_customer):
        ticket, _ = service.create_ticket(store.id, customer.id)
        with pytest.raises(NotFoundError):
            service.cancel_ticket(ticket.id, other_customer.id)


# ============== Listings ==============

class TestListings:
    def test_active_and_history(self, service, store, store_factory, vendor, customer):
        other = store_factory(name="Dr. Patel", category="Doctor")
        done, _ = service.create_ticket(store.id, customer.id)
        service.cancel_ticket(done.id, customer.id)
        live, _ = service.create_ticket(other.id, customer.id)

        active = service.list_active_tickets(customer.id)
        assert [view["ticket"].id for view in active] == [live.id]
        assert active[0]["people_ahead"] == 0

        history = service.list_ticket_history(customer.id)
        assert [t.id for t in history] == [done.id]

    def test_history_pagination(self, service, clock, store, customer):
        ids = []
        for _ in range(3):
            ticket, _ = service.create_ticket(store.id, customer.id)
            service.cancel_ticket(ticket.id, customer.id)
            ids.append(ticket.id)
            clock.advance(1)

        page = service.list_ticket_history(customer.id, limit=2, offset=1)
        assert [t.id for t in page] == [ids[1], ids[0]]

    def test_store_queue_view(self, service, store, vendor, queue_of):
        queue_of(store, 3)
        service.call_next_ticket(store.id, vendor.id)
        view = service.get_store_queue(store.id, vendor.id)
        assert view["current_ticket"] == 1
        assert view["next_ticket"] == 2
        assert view["queue_length"] == 2
        assert [t.ticket_number for t in view["waiting_tickets"]] == [2, 3]

    def test_store_queue_requires_owner(self, service, store, customer):
        with pytest.raises(ForbiddenError):
            service.get_store_queue(store.id, customer.id)


# ============== Full walk-through ==============

def test_two_customer_walkthrough(db_session, service, clock, store, vendor, customer, other_customer):
    a, wait_a = service.create_ticket(store.id, customer.id)
    b, wait_b = service.create_ticket(store.id, other_customer.id)
    assert (a.ticket_number, a.position, wait_a) == (1, 1, 0)
    assert (b.ticket_number, b.position, wait_b) == (2, 2, 5)

    service.call_next_ticket(store.id, vendor.id)
    view = service.get_ticket(b.id, other_customer.id)
    assert view["people_ahead"] == 0
    assert view["estimated_wait_time"] == 0
    assert view["currently_serving"] == 1

    clock.advance(8)
    service.complete_current_ticket(store.id, vendor.id)
    assert history_for(db_session, a.id)[0].service_time_minutes == 8

    serving = service.call_next_ticket(store.id, vendor.id)
    assert serving.id == b.id

    # One person ahead now costs 0.7 * 8 + 0.3 * 5 = 7.1 minutes
    assert WaitTimeService(db_session).estimate_wait(store, 1) == 7
