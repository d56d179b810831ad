"""Read-only queue queries shared by the store and ticket services.

Positions are never cached: "people ahead" is always a live count of
waiting tickets with a smaller ticket number at the same store.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from queuego.models.ticket import Ticket, TicketStatus


def waiting_count(db: Session, store_id: int) -> int:
    stmt = select(func.count(Ticket.id)).where(
        Ticket.store_id == store_id,
        Ticket.status == TicketStatus.WAITING,
    )
    return db.execute(stmt).scalar_one()


def waiting_counts(db: Session, store_ids: Iterable[int]) -> Dict[int, int]:
    """Waiting ticket count per store, zero for stores with an empty queue."""
    ids = list(store_ids)
    if not ids:
        return {}
    stmt = (
        select(Ticket.store_id, func.count(Ticket.id))
        .where(Ticket.store_id.in_(ids), Ticket.status == TicketStatus.WAITING)
        .group_by(Ticket.store_id)
    )
    counts = {store_id: 0 for store_id in ids}
    counts.update({store_id: count for store_id, count in db.execute(stmt).all()})
    return counts


def people_ahead(db: Session, ticket: Ticket) -> int:
    stmt = select(func.count(Ticket.id)).where(
        Ticket.store_id == ticket.store_id,
        Ticket.status == TicketStatus.WAITING,
        Ticket.ticket_number < ticket.ticket_number,
    )
    return db.execute(stmt).scalar_one()


def serving_ticket(db: Session, store_id: int) -> Optional[Ticket]:
    return (
        db.query(Ticket)
        .filter(Ticket.store_id == store_id, Ticket.status == TicketStatus.SERVING)
        .first()
    )


def waiting_tickets(db: Session, store_id: int) -> List[Ticket]:
    """Waiting tickets in call order (ascending ticket number)."""
    return (
        db.query(Ticket)
        .filter(Ticket.store_id == store_id, Ticket.status == TicketStatus.WAITING)
        .order_by(Ticket.ticket_number.asc())
        .all()
    )
