"""Ticket lifecycle notifications.

Lifecycle transitions publish typed ``TicketEvent`` objects instead of
calling a messaging provider directly. Delivery happens later through a
sink (WhatsApp Cloud API or the log) and is at-most-once and best-effort:
a failing sink is logged and never reaches the code that changed the
ticket.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from queuego.core.config import settings
from queuego.models.store import Store
from queuego.models.ticket import Ticket
from queuego.models.user import User

logger = logging.getLogger(__name__)

WHATSAPP_API_BASE = "https://graph.facebook.com/v21.0"


class TicketEventType(str, Enum):
    CREATED = "ticket_created"
    CALLED = "ticket_called"
    COMPLETED = "ticket_completed"
    CANCELLED = "ticket_cancelled"
    SKIPPED = "ticket_skipped"


@dataclass
class TicketEvent:
    """Something that happened to a ticket and may interest its holder."""

    kind: TicketEventType
    ticket_id: int
    ticket_number: int
    secret_code: str
    store_id: int
    store_name: str
    user_id: int
    recipient: Optional[str] = None
    position: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None
    service_minutes: Optional[int] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def render(self) -> str:
        """Customer-facing message text."""
        if self.kind == TicketEventType.CREATED:
            return (
                f"🎫 *Ticket Booked!*\n\n"
                f"Store: {self.store_name}\n"
                f"Ticket #: {self.ticket_number}\n"
                f"Position: {self.position}\n"
                f"Est. Wait: ~{self.estimated_wait_minutes} mins\n"
                f"Secret Code: {self.secret_code}\n\n"
                f"We'll notify you when it's your turn!"
            )
        if self.kind == TicketEventType.CALLED:
            return (
                f"🔔 *IT'S YOUR TURN!*\n\n"
                f"Store: {self.store_name}\n"
                f"Ticket #: {self.ticket_number}\n"
                f"Secret Code: {self.secret_code}\n\n"
                f"⚡ Please proceed to the counter now!"
            )
        if self.kind == TicketEventType.COMPLETED:
            return (
                f"✅ *Service Completed!*\n\n"
                f"Store: {self.store_name}\n"
                f"Ticket #: {self.ticket_number}\n"
                f"Service Time: {self.service_minutes} mins\n\n"
                f"Thank you for using QueueGo! 🙏\n"
                f"We hope to see you again soon."
            )
        if self.kind == TicketEventType.CANCELLED:
            return (
                f"Your ticket #{self.ticket_number} at {self.store_name} was cancelled."
            )
        return (
            f"Ticket #{self.ticket_number} at {self.store_name} was marked as a no-show."
        )


class NotificationPublisher(Protocol):
    """Anything lifecycle code can hand events to."""

    def publish(self, event: TicketEvent) -> None:
        ...


class NotificationSink(Protocol):
    async def deliver(self, event: TicketEvent) -> None:
        ...


class LoggingSink:
    """Writes notifications to the log. Used when no provider is configured."""

    async def deliver(self, event: TicketEvent) -> None:
        logger.info(
            f"Notification {event.kind.value} for ticket {event.ticket_id} "
            f"(user {event.user_id}, store {event.store_id})"
        )


class WhatsAppSink:
    """Sends notifications as WhatsApp text messages."""

    def __init__(
        self,
        phone_number_id: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._phone_number_id = phone_number_id or settings.whatsapp_phone_number_id
        self._access_token = access_token or settings.whatsapp_access_token
        self._timeout = timeout or settings.notification_timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._phone_number_id and self._access_token)

    @property
    def _messages_url(self) -> str:
        return f"{WHATSAPP_API_BASE}/{self._phone_number_id}/messages"

    @staticmethod
    def _normalize_phone(phone: str) -> str:
        """Strip everything but digits (WhatsApp expects E.164 without '+')."""
        return "".join(ch for ch in phone if ch.isdigit())

    async def deliver(self, event: TicketEvent) -> None:
        if not event.recipient:
            logger.debug(f"No phone on file for user {event.user_id}; skipping {event.kind.value}")
            return

        body = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": self._normalize_phone(event.recipient),
            "type": "text",
            "text": {"body": event.render()},
        }
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._messages_url, json=body, headers=headers)
            response.raise_for_status()
        logger.info(f"WhatsApp {event.kind.value} sent for ticket {event.ticket_id}")


def default_sink() -> NotificationSink:
    if settings.whatsapp_configured:
        return WhatsAppSink()
    return LoggingSink()


class NotificationDispatcher:
    """Collects events during a request and delivers them afterwards.

    ``publish`` only queues; ``flush`` delivers everything queued so far.
    Neither ever raises.
    """

    def __init__(self, sink: Optional[NotificationSink] = None, enabled: Optional[bool] = None):
        self.sink = sink or default_sink()
        self.enabled = settings.notifications_enabled if enabled is None else enabled
        self.pending: List[TicketEvent] = []

    def publish(self, event: TicketEvent) -> None:
        if not self.enabled:
            return
        self.pending.append(event)

    async def flush(self) -> int:
        """Deliver queued events. Returns how many were delivered."""
        events, self.pending = self.pending, []
        delivered = 0
        for event in events:
            try:
                await self.sink.deliver(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Failed to deliver {event.kind.value} notification "
                    f"for ticket {event.ticket_id}: {e}"
                )
        return delivered


def publish_ticket_event(
    db: Session,
    publisher: Optional[NotificationPublisher],
    kind: TicketEventType,
    ticket: Ticket,
    store: Store,
    **details,
) -> None:
    """Build the event for ``ticket`` and hand it to ``publisher``.

    Called after the transition is committed, so it never raises: a failure
    here is logged and the caller carries on.
    """
    if publisher is None:
        return
    try:
        holder = db.get(User, ticket.user_id)
        publisher.publish(TicketEvent(
            kind=kind,
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            secret_code=ticket.secret_code,
            store_id=store.id,
            store_name=store.name,
            user_id=ticket.user_id,
            recipient=holder.phone if holder else None,
            **details,
        ))
    except Exception as e:
        logger.warning(f"Failed to publish {kind.value} for ticket {ticket.id}: {e}")
