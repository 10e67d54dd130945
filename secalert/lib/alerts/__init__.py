"""Alerts package exposing the rule engine, lifecycle and models."""

from .bus import EventBus
from .engine import AlertCreated, AlertEngine, Submission
from .errors import ChannelSendError, ConfigError, NotFoundError, SecAlertError, ValidationError
from .lifecycle import AlertLifecycleManager
from .models import (
    Alert,
    AlertStatus,
    ChannelDelivery,
    Condition,
    DispatchOutcome,
    NotificationTarget,
    Rule,
    SecurityEvent,
    Severity,
)
from .store import AlertStore, InMemoryAlertStore

__all__ = [
    "AlertCreated",
    "AlertEngine",
    "AlertLifecycleManager",
    "AlertStore",
    "Alert",
    "AlertStatus",
    "ChannelDelivery",
    "ChannelSendError",
    "Condition",
    "ConfigError",
    "DispatchOutcome",
    "EventBus",
    "InMemoryAlertStore",
    "NotFoundError",
    "NotificationTarget",
    "Rule",
    "SecAlertError",
    "SecurityEvent",
    "Severity",
    "Submission",
    "ValidationError",
]
