"""Notification channel implementations."""

from .base import NotificationChannel
from .email import EmailChannel
from .webhook import WebhookChannel

__all__ = ["NotificationChannel", "EmailChannel", "WebhookChannel"]
