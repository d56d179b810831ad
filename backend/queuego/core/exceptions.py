"""Domain errors raised by the queue services.

Every error carries a stable machine-readable ``code`` and the HTTP status
the API layer answers with, so clients can tell "not your ticket" apart from
"store closed" or "nothing to serve".
"""

from fastapi import status


class QueueError(Exception):
    """Base class for caller-visible queue failures."""

    code = "QUEUE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(QueueError):
    """Raised when an entity is missing or not visible to the caller."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(QueueError):
    """Raised when the caller does not own the resource."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class StoreClosedError(QueueError):
    """Raised when a store is not accepting new tickets."""

    code = "STORE_CLOSED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__("Store is currently closed")


class DuplicateTicketError(QueueError):
    """Raised when a user already holds an active ticket at a store."""

    code = "ACTIVE_TICKET_EXISTS"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, store_id: int, ticket_id: int):
        self.store_id = store_id
        self.ticket_id = ticket_id
        super().__init__("You already have an active ticket for this store")


class InvalidTransitionError(QueueError):
    """Raised when a ticket cannot move from its current status."""

    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, ticket_id: int, current: str, target: str):
        self.ticket_id = ticket_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move ticket {ticket_id} from '{current}' to '{target}'")


class EmptyQueueError(QueueError):
    """Raised when call-next finds no waiting ticket."""

    code = "QUEUE_EMPTY"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__("No tickets in queue")


class NoTicketServingError(QueueError):
    """Raised when complete finds no ticket in service."""

    code = "NO_TICKET_SERVING"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__("No ticket currently being served")
