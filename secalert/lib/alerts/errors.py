from __future__ import annotations

from typing import Optional

__all__ = [
    "SecAlertError",
    "ValidationError",
    "NotFoundError",
    "ChannelSendError",
    "ConfigError",
]


class SecAlertError(RuntimeError):
    """Base class for errors raised by the alert engine."""


class ValidationError(SecAlertError):
    """Raised when an incoming event (or request) is malformed."""


class NotFoundError(SecAlertError):
    """Raised when an alert id is unknown or no longer active."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert '{alert_id}' not found")
        self.alert_id = alert_id


class ChannelSendError(SecAlertError):
    """Raised when a single notification channel fails to deliver."""

    def __init__(self, message: str, *, channel: Optional[str] = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.channel = channel
        self.retryable = retryable


class ConfigError(ValueError):
    """Raised when configuration or rule files cannot be loaded."""
