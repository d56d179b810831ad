"""Shared route dependencies."""

from typing import Annotated

from fastapi import Depends

from queuego.services.notification_service import NotificationDispatcher


def get_notifier() -> NotificationDispatcher:
    """A fresh dispatcher per request; routes flush it in the background."""
    return NotificationDispatcher()


Notifier = Annotated[NotificationDispatcher, Depends(get_notifier)]
