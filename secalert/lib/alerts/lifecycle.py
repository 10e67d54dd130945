from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .bus import ALERT_ACKNOWLEDGED, ALERT_DISMISSED, EventBus
from .errors import NotFoundError
from .models import Alert, AlertStatus, DispatchOutcome, Severity, utcnow
from .store import AlertStore

logger = logging.getLogger("secalert.lifecycle")

DEFAULT_ACTOR = "system"

_TRANSITIONS: Dict[AlertStatus, FrozenSet[AlertStatus]] = {
    AlertStatus.PENDING: frozenset(
        {AlertStatus.SENT, AlertStatus.FAILED, AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED}
    ),
    AlertStatus.SENT: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED}),
    AlertStatus.FAILED: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.DISMISSED}),
    AlertStatus.DISMISSED: frozenset(),
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


class AlertLifecycleManager:
    """
    Owns status transitions for alerts after creation.

    Every read-modify-write on the store happens under one lock, so racing
    acknowledge/dismiss/dispatch updates for the same id cannot be lost.
    Callers receive snapshots; the stored records are never handed out.
    """

    def __init__(
        self,
        store: AlertStore,
        *,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def store(self) -> AlertStore:
        return self._store

    def close(self) -> None:
        with self._lock:
            self._store.close()

    def register(self, alert: Alert) -> Alert:
        with self._lock:
            self._store.add(alert)
            return replace(alert)

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            return replace(self._require(alert_id))

    def _require(self, alert_id: str) -> Alert:
        alert = self._store.find(alert_id)
        if alert is None:
            raise NotFoundError(alert_id)
        return alert

    def record_dispatch(self, alert_id: str, outcome: DispatchOutcome) -> Optional[Alert]:
        with self._lock:
            alert = self._store.find(alert_id)
            if alert is None:
                logger.info("lifecycle.dispatch_for_inactive_alert", extra={"alert_id": alert_id})
                return None
            updated = replace(
                alert,
                deliveries=tuple(outcome.deliveries),
                dispatched_at=self._clock(),
            )
            target = outcome.status
            if alert.status is AlertStatus.PENDING and can_transition(alert.status, target):
                updated.status = target
            self._store.update(updated)
            return replace(updated)

    def acknowledge(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        with self._lock:
            alert = self._require(alert_id)
            if alert.status is AlertStatus.ACKNOWLEDGED:
                return replace(alert)
            updated = replace(
                alert,
                status=AlertStatus.ACKNOWLEDGED,
                acknowledged_at=self._clock(),
                acknowledged_by=actor or DEFAULT_ACTOR,
            )
            self._store.update(updated)
            snapshot = replace(updated)
        logger.info("Alert %s acknowledged by %s", alert_id, snapshot.acknowledged_by)
        self._publish(ALERT_ACKNOWLEDGED, snapshot)
        return snapshot

    def dismiss(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        with self._lock:
            alert = self._require(alert_id)
            dismissed = replace(
                alert,
                status=AlertStatus.DISMISSED,
                dismissed_at=self._clock(),
                dismissed_by=actor or DEFAULT_ACTOR,
            )
            self._store.update(dismissed)
            self._store.remove(alert_id)
        logger.info("Alert %s dismissed by %s", alert_id, dismissed.dismissed_by)
        self._publish(ALERT_DISMISSED, dismissed)
        return dismissed

    def list_alerts(
        self,
        *,
        severity: Optional[Severity | str] = None,
        status: Optional[AlertStatus | str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        severity_filter = Severity(severity) if severity else None
        status_filter = AlertStatus(status) if status else None
        with self._lock:
            alerts = [replace(alert) for alert in self._store.all()]

        if severity_filter is not None:
            alerts = [alert for alert in alerts if alert.severity is severity_filter]
        if status_filter is not None:
            alerts = [alert for alert in alerts if alert.status is status_filter]

        # Newest first; equal timestamps keep the most recent registration first.
        alerts.reverse()
        alerts.sort(key=lambda alert: alert.timestamp, reverse=True)
        if limit is not None:
            alerts = alerts[: max(limit, 0)]
        return alerts

    def stats(self, *, recent: int = 5) -> Dict[str, Any]:
        alerts = self.list_alerts()
        by_severity = {severity.value: 0 for severity in Severity}
        by_status = {
            status.value: 0 for status in AlertStatus if status is not AlertStatus.DISMISSED
        }
        for alert in alerts:
            by_severity[alert.severity.value] += 1
            by_status[alert.status.value] += 1
        return {
            "total_alerts": len(alerts),
            "by_severity": by_severity,
            "by_status": by_status,
            "recent": [
                {
                    "id": alert.id,
                    "rule_name": alert.rule_name,
                    "severity": alert.severity.value,
                    "timestamp": alert.timestamp.isoformat(),
                }
                for alert in alerts[:recent]
            ],
        }

    def _publish(self, topic: str, alert: Alert) -> None:
        if self._bus is not None:
            self._bus.publish(topic, alert)
