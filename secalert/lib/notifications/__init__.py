"""Notification package exposing the dispatcher and delivery channels."""

from .dispatcher import NotificationDispatcher
from .models import NotificationMessage, build_alert_message

__all__ = [
    "NotificationDispatcher",
    "NotificationMessage",
    "build_alert_message",
]
