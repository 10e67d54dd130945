from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ValidationError


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value)))


@dataclass(frozen=True, slots=True)
class Condition:
    """Single comparison clause evaluated against ``event.data[field]``."""

    field: str
    operator: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True, slots=True)
class NotificationTarget:
    """A channel kind plus the channel-specific destination config."""

    channel: str
    config: Mapping[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        if "url" in self.config:
            return str(self.config["url"])
        recipients = self.config.get("to")
        if isinstance(recipients, (list, tuple)):
            return ", ".join(str(item) for item in recipients)
        if recipients:
            return str(recipients)
        return self.channel


@dataclass(frozen=True, slots=True)
class Rule:
    id: str
    name: str
    event_type: str
    severity: Severity
    enabled: bool = True
    conditions: Tuple[Condition, ...] = ()
    notifications: Tuple[NotificationTarget, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """An observed occurrence submitted for evaluation against rules."""

    type: str
    data: Mapping[str, Any]
    source: str = "unknown"
    priority: str = "normal"
    received_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SecurityEvent":
        if not isinstance(payload, Mapping):
            raise ValidationError("Event payload must be an object")
        event_type = payload.get("type")
        data = payload.get("data")
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValidationError("Missing required fields: type, data")
        if data is None or not isinstance(data, Mapping):
            raise ValidationError("Missing required fields: type, data")
        received_at = _parse_datetime(payload.get("received_at")) or utcnow()
        return cls(
            type=event_type.strip(),
            data=MappingProxyType(dict(data)),
            source=str(payload.get("source") or "unknown"),
            priority=str(payload.get("priority") or "normal"),
            received_at=received_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "data": dict(self.data),
            "source": self.source,
            "priority": self.priority,
            "received_at": _format_datetime(self.received_at),
        }


@dataclass(frozen=True, slots=True)
class ChannelDelivery:
    """Outcome of one channel send for one alert."""

    channel: str
    target: str
    success: bool
    error: Optional[str] = None
    completed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "target": self.target,
            "success": self.success,
            "error": self.error,
            "completed_at": _format_datetime(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelDelivery":
        return cls(
            channel=str(data["channel"]),
            target=str(data.get("target") or ""),
            success=bool(data.get("success")),
            error=data.get("error"),
            completed_at=_parse_datetime(data.get("completed_at")) or utcnow(),
        )


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    alert_id: str
    deliveries: Tuple[ChannelDelivery, ...] = ()

    @property
    def succeeded(self) -> bool:
        # No configured channels is a trivially successful dispatch.
        return all(delivery.success for delivery in self.deliveries)

    @property
    def status(self) -> "AlertStatus":
        return AlertStatus.SENT if self.succeeded else AlertStatus.FAILED


@dataclass(slots=True)
class Alert:
    """The record produced when an event satisfies a rule."""

    id: str
    rule_id: str
    rule_name: str
    severity: Severity
    event: SecurityEvent
    timestamp: datetime
    status: AlertStatus = AlertStatus.PENDING
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    dismissed_by: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    deliveries: Tuple[ChannelDelivery, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
            "event": self.event.to_dict(),
            "timestamp": _format_datetime(self.timestamp),
            "status": self.status.value,
            "acknowledged_at": _format_datetime(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "dismissed_at": _format_datetime(self.dismissed_at),
            "dismissed_by": self.dismissed_by,
            "dispatched_at": _format_datetime(self.dispatched_at),
            "deliveries": [delivery.to_dict() for delivery in self.deliveries],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Alert":
        event_data = data.get("event") or {}
        event = SecurityEvent(
            type=str(event_data.get("type", "")),
            data=MappingProxyType(dict(event_data.get("data") or {})),
            source=str(event_data.get("source") or "unknown"),
            priority=str(event_data.get("priority") or "normal"),
            received_at=_parse_datetime(event_data.get("received_at")) or utcnow(),
        )
        return cls(
            id=str(data["id"]),
            rule_id=str(data["rule_id"]),
            rule_name=str(data.get("rule_name") or ""),
            severity=Severity(data["severity"]),
            event=event,
            timestamp=_parse_datetime(data["timestamp"]) or utcnow(),
            status=AlertStatus(data.get("status", AlertStatus.PENDING.value)),
            acknowledged_at=_parse_datetime(data.get("acknowledged_at")),
            acknowledged_by=data.get("acknowledged_by"),
            dismissed_at=_parse_datetime(data.get("dismissed_at")),
            dismissed_by=data.get("dismissed_by"),
            dispatched_at=_parse_datetime(data.get("dispatched_at")),
            deliveries=tuple(ChannelDelivery.from_dict(item) for item in data.get("deliveries") or ()),
        )
