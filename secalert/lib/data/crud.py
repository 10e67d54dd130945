from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from secalert.lib.alerts import Alert

from .tables import alerts


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def alert_to_row(alert: Alert) -> Dict[str, Any]:
    payload = alert.to_dict()
    return {
        "alert_id": alert.id,
        "rule_id": alert.rule_id,
        "rule_name": alert.rule_name,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "event": payload["event"],
        "created_at": _to_utc(alert.timestamp),
        "acknowledged_at": _to_utc(alert.acknowledged_at),
        "acknowledged_by": alert.acknowledged_by,
        "dismissed_at": _to_utc(alert.dismissed_at),
        "dismissed_by": alert.dismissed_by,
        "dispatched_at": _to_utc(alert.dispatched_at),
        "deliveries": payload["deliveries"],
    }


def row_to_alert(row: Dict[str, Any]) -> Alert:
    return Alert.from_dict(
        {
            "id": row["alert_id"],
            "rule_id": row["rule_id"],
            "rule_name": row["rule_name"],
            "severity": row["severity"],
            "status": row["status"],
            "event": row["event"],
            "timestamp": _to_utc(row["created_at"]),
            "acknowledged_at": _to_utc(row["acknowledged_at"]),
            "acknowledged_by": row["acknowledged_by"],
            "dismissed_at": _to_utc(row["dismissed_at"]),
            "dismissed_by": row["dismissed_by"],
            "dispatched_at": _to_utc(row["dispatched_at"]),
            "deliveries": row["deliveries"] or [],
        }
    )


def insert_alert(session: Session, alert: Alert) -> None:
    session.execute(insert(alerts).values(active=True, **alert_to_row(alert)))


def get_active_alert(session: Session, alert_id: str) -> Optional[Dict[str, Any]]:
    result = session.execute(
        select(alerts).where(alerts.c.alert_id == alert_id, alerts.c.active.is_(True))
    ).mappings().first()
    return dict(result) if result is not None else None


def update_alert(session: Session, alert: Alert) -> int:
    result = session.execute(
        update(alerts)
        .where(alerts.c.alert_id == alert.id, alerts.c.active.is_(True))
        .values(**alert_to_row(alert))
    )
    return result.rowcount or 0


def deactivate_alert(session: Session, alert_id: str) -> int:
    result = session.execute(
        update(alerts)
        .where(alerts.c.alert_id == alert_id, alerts.c.active.is_(True))
        .values(active=False)
    )
    return result.rowcount or 0


def list_active_alerts(session: Session) -> List[Dict[str, Any]]:
    result = session.execute(
        select(alerts).where(alerts.c.active.is_(True)).order_by(alerts.c.row_id)
    ).mappings()
    return [dict(row) for row in result]
