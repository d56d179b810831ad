"""Customer ticket routes."""

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Query, Request, status

from queuego.api.deps import Notifier
from queuego.core.auth import CurrentUser
from queuego.core.rate_limit import limiter, user_limiter
from queuego.db.session import DbSession
from queuego.schemas.ticket import (
    TicketCreate,
    TicketCreatedResponse,
    TicketDetailResponse,
    TicketHistoryItem,
    TicketResponse,
)
from queuego.services.ticket_service import TicketService

router = APIRouter()


def _detail_response(view: Dict[str, Any]) -> TicketDetailResponse:
    return TicketDetailResponse(
        **TicketHistoryItem.model_validate(view["ticket"]).model_dump(),
        people_ahead=view["people_ahead"],
        currently_serving=view["currently_serving"],
        estimated_wait_time=view["estimated_wait_time"],
    )


@router.post("", response_model=TicketCreatedResponse, status_code=status.HTTP_201_CREATED)
@user_limiter.limit("10/minute")
def create_ticket(
    request: Request,
    data: TicketCreate,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Join a store's queue."""
    ticket, estimated_wait = TicketService(db, publisher=notifier).create_ticket(
        data.store_id, current_user.user_id
    )
    background_tasks.add_task(notifier.flush)
    return TicketCreatedResponse(
        **TicketResponse.model_validate(ticket).model_dump(),
        estimated_wait_time=estimated_wait,
    )


@router.get("/active", response_model=List[TicketDetailResponse])
@limiter.limit("120/minute")
def list_active_tickets(request: Request, db: DbSession, current_user: CurrentUser):
    """The caller's live tickets with their current place in line."""
    views = TicketService(db).list_active_tickets(current_user.user_id)
    return [_detail_response(view) for view in views]


@router.get("/history", response_model=List[TicketHistoryItem])
@limiter.limit("60/minute")
def list_ticket_history(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    return TicketService(db).list_ticket_history(current_user.user_id, limit=limit, offset=offset)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
@limiter.limit("120/minute")
def get_ticket(request: Request, ticket_id: int, db: DbSession, current_user: CurrentUser):
    return _detail_response(TicketService(db).get_ticket(ticket_id, current_user.user_id))


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
@limiter.limit("30/minute")
def cancel_ticket(
    request: Request,
    ticket_id: int,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Leave the queue."""
    ticket = TicketService(db, publisher=notifier).cancel_ticket(ticket_id, current_user.user_id)
    background_tasks.add_task(notifier.flush)
    return ticket
