from __future__ import annotations

import itertools
import secrets
import threading
from datetime import datetime
from typing import Optional

from .models import Alert, AlertStatus, Rule, SecurityEvent, ensure_utc, utcnow


class AlertIdGenerator:
    """Time token + monotonic counter + random suffix, unique per process."""

    def __init__(self, prefix: str = "alert") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self, now: Optional[datetime] = None) -> str:
        moment = now or utcnow()
        with self._lock:
            sequence = next(self._counter)
        millis = int(moment.timestamp() * 1000)
        return f"{self._prefix}-{millis}-{sequence}-{secrets.token_hex(4)}"


_default_id_generator = AlertIdGenerator()


def create_alert(
    rule: Rule,
    event: SecurityEvent,
    *,
    now: Optional[datetime] = None,
    id_generator: Optional[AlertIdGenerator] = None,
) -> Alert:
    created_at = ensure_utc(now) if now is not None else utcnow()
    generator = id_generator or _default_id_generator
    return Alert(
        id=generator(created_at),
        rule_id=rule.id,
        rule_name=rule.name,
        severity=rule.severity,
        event=event,
        timestamp=created_at,
        status=AlertStatus.PENDING,
    )
