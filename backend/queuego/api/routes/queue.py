"""Vendor queue management routes."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Query, Request

from queuego.api.deps import Notifier
from queuego.core.auth import CurrentUser
from queuego.core.rate_limit import limiter, store_limiter
from queuego.db.session import DbSession
from queuego.schemas.ticket import ServiceHistoryResponse, StoreQueueResponse, TicketResponse
from queuego.services.ticket_service import TicketService

router = APIRouter()


@router.get("/{store_id}/queue", response_model=StoreQueueResponse)
@limiter.limit("120/minute")
def get_store_queue(request: Request, store_id: int, db: DbSession, current_user: CurrentUser):
    """Now serving, next up and every waiting ticket in call order."""
    return TicketService(db).get_store_queue(store_id, current_user.user_id)


@router.post("/{store_id}/queue/call-next", response_model=TicketResponse)
@store_limiter.limit("60/minute")
def call_next(
    request: Request,
    store_id: int,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Complete whoever is being served and seat the oldest waiting ticket."""
    ticket = TicketService(db, publisher=notifier).call_next_ticket(store_id, current_user.user_id)
    background_tasks.add_task(notifier.flush)
    return ticket


@router.post("/{store_id}/queue/complete", response_model=TicketResponse)
@store_limiter.limit("60/minute")
def complete_current(
    request: Request,
    store_id: int,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    ticket = TicketService(db, publisher=notifier).complete_current_ticket(
        store_id, current_user.user_id
    )
    background_tasks.add_task(notifier.flush)
    return ticket


@router.post("/{store_id}/queue/skip/{ticket_id}", response_model=TicketResponse)
@store_limiter.limit("60/minute")
def skip(
    request: Request,
    store_id: int,
    ticket_id: int,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Mark a waiting or called ticket as a no-show."""
    ticket = TicketService(db, publisher=notifier).skip_ticket(
        store_id, ticket_id, current_user.user_id
    )
    background_tasks.add_task(notifier.flush)
    return ticket


@router.get("/{store_id}/queue/history", response_model=List[ServiceHistoryResponse])
@limiter.limit("60/minute")
def service_history(
    request: Request,
    store_id: int,
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(50, ge=1, le=200),
):
    """Recent measured service times, newest first."""
    return TicketService(db).list_service_history(store_id, current_user.user_id, limit=limit)
