from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict

from secalert.lib.alerts import Alert


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    """Channel-agnostic rendering of an alert."""

    subject: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)


def format_alert_body(alert: Alert) -> str:
    event = alert.event
    details = json.dumps(dict(event.data), indent=2, sort_keys=True, default=str)
    lines = [
        f"Security Alert: {alert.rule_name}",
        f"Severity: {alert.severity.value}",
        f"Timestamp: {alert.timestamp.isoformat()}",
        f"Event Type: {event.type}",
        f"Source: {event.source}",
        f"Priority: {event.priority}",
        "",
        "Event Details:",
        details,
        "",
        f"Alert ID: {alert.id}",
    ]
    return "\n".join(lines)


def build_alert_message(alert: Alert) -> NotificationMessage:
    return NotificationMessage(
        subject=f"[{alert.severity.value.upper()}] {alert.rule_name}",
        body=format_alert_body(alert),
        payload=alert.to_dict(),
    )


def build_test_message(channel: str, *, timestamp: str) -> NotificationMessage:
    return NotificationMessage(
        subject="Test Alert from SecAlert",
        body=(
            "This is a test notification. If you receive this, your "
            f"{channel} configuration is working correctly."
        ),
        payload={
            "test": True,
            "message": "Test notification from SecAlert",
            "channel": channel,
            "timestamp": timestamp,
        },
    )
