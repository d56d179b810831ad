"""Ticket and queue schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from queuego.models.ticket import TicketStatus
from queuego.schemas.store import StoreResponse


class TicketCreate(BaseModel):
    store_id: int = Field(..., ge=1)


class TicketResponse(BaseModel):
    id: int
    store_id: int
    user_id: int
    ticket_number: int
    secret_code: str
    status: TicketStatus
    position: Optional[int]
    created_at: datetime
    called_at: Optional[datetime]
    served_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    deposit_amount: int
    deposit_refunded: bool

    model_config = ConfigDict(from_attributes=True)


class TicketCreatedResponse(TicketResponse):
    estimated_wait_time: int


class TicketHistoryItem(TicketResponse):
    store: StoreResponse


class TicketDetailResponse(TicketHistoryItem):
    people_ahead: int
    currently_serving: Optional[int]
    estimated_wait_time: int


class StoreQueueResponse(BaseModel):
    current_ticket: Optional[int]
    next_ticket: Optional[int]
    queue_length: int
    waiting_tickets: List[TicketResponse]


class ServiceHistoryResponse(BaseModel):
    id: int
    store_id: int
    ticket_id: int
    service_time_minutes: int
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)
