from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from secalert.lib.alerts import AlertStatus, SecurityEvent, Severity
from secalert.lib.alerts.factory import AlertIdGenerator, create_alert

from stubs import make_rule


def _event() -> SecurityEvent:
    return SecurityEvent.from_payload({"type": "login_failure", "data": {"count": 5}, "source": "sshd"})


def test_alert_copies_rule_fields_and_starts_pending():
    rule = make_rule(severity="critical")
    event = _event()

    alert = create_alert(rule, event)

    assert alert.rule_id == rule.id
    assert alert.rule_name == rule.name
    assert alert.severity is Severity.CRITICAL
    assert alert.status is AlertStatus.PENDING
    assert alert.event is event
    assert alert.deliveries == ()
    assert alert.id.startswith("alert-")


def test_naive_timestamps_are_treated_as_utc():
    alert = create_alert(make_rule(), _event(), now=datetime(2025, 1, 2, 3, 4, 5))
    assert alert.timestamp == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_ids_are_unique_under_concurrency():
    generator = AlertIdGenerator()
    moment = datetime(2025, 1, 1, tzinfo=timezone.utc)

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: generator(moment), range(1000)))

    assert len(set(ids)) == 1000


def test_to_dict_serializes_enums_and_timestamps():
    alert = create_alert(make_rule(), _event(), now=datetime(2025, 1, 2, tzinfo=timezone.utc))

    payload = alert.to_dict()

    assert payload["severity"] == "high"
    assert payload["status"] == "pending"
    assert payload["timestamp"] == "2025-01-02T00:00:00+00:00"
    assert payload["event"]["source"] == "sshd"
    assert payload["event"]["data"] == {"count": 5}
