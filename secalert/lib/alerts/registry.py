from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import yaml

from secalert.lib.utils.coerce import to_bool

from .errors import ConfigError
from .models import Condition, NotificationTarget, Rule, Severity


def _parse_severity(raw: Any, rule_id: str) -> Severity:
    try:
        return Severity(str(raw).strip().lower())
    except ValueError as exc:
        raise ConfigError(f"Rule '{rule_id}' has unsupported severity: {raw!r}") from exc


def _parse_conditions(raw: Any, rule_id: str) -> Tuple[Condition, ...]:
    if raw in (None, ""):
        return ()
    if not isinstance(raw, list):
        raise ConfigError(f"Rule '{rule_id}' conditions must be a list")
    conditions: List[Condition] = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("field"):
            raise ConfigError(f"Rule '{rule_id}' has a condition without 'field'")
        # Unknown operators are kept; they never match at evaluation time.
        conditions.append(
            Condition(
                field=str(entry["field"]),
                operator=str(entry.get("operator", "")).strip().lower(),
                value=entry.get("value"),
            )
        )
    return tuple(conditions)


def _parse_notifications(raw: Any, rule_id: str) -> Tuple[NotificationTarget, ...]:
    if not raw:
        return ()
    if not isinstance(raw, dict):
        raise ConfigError(f"Rule '{rule_id}' notifications must be a mapping")

    targets: List[NotificationTarget] = []
    for channel, value in raw.items():
        channel = str(channel).strip().lower()
        if channel == "email":
            recipients = [value] if isinstance(value, str) else list(value or [])
            recipients = [str(item).strip() for item in recipients if str(item).strip()]
            if recipients:
                targets.append(NotificationTarget(channel="email", config={"to": recipients}))
        elif channel == "webhook":
            if isinstance(value, dict):
                if value.get("url"):
                    targets.append(NotificationTarget(channel="webhook", config=dict(value)))
            elif value:
                targets.append(NotificationTarget(channel="webhook", config={"url": str(value)}))
        elif value:
            config = dict(value) if isinstance(value, dict) else {"value": value}
            targets.append(NotificationTarget(channel=channel, config=config))
    return tuple(targets)


def build_rule(data: Mapping[str, Any]) -> Rule:
    rule_id = data.get("id")
    if rule_id in (None, ""):
        raise ConfigError("Rule configuration missing 'id'")
    rule_id = str(rule_id)
    event_type = data.get("eventType") or data.get("event_type")
    if not event_type:
        raise ConfigError(f"Rule '{rule_id}' missing required 'eventType'")

    return Rule(
        id=rule_id,
        name=str(data.get("name") or rule_id),
        event_type=str(event_type),
        severity=_parse_severity(data.get("severity", "medium"), rule_id),
        enabled=to_bool(data.get("enabled"), default=True),
        conditions=_parse_conditions(data.get("conditions"), rule_id),
        notifications=_parse_notifications(data.get("notifications"), rule_id),
        description=data.get("description"),
    )


def build_rules(entries: Iterable[Mapping[str, Any]]) -> List[Rule]:
    rules: List[Rule] = []
    seen: Dict[str, Rule] = {}
    for entry in entries or []:
        if not isinstance(entry, Mapping):
            raise ConfigError("Each rule entry must be a mapping")
        rule = build_rule(entry)
        if rule.id in seen:
            raise ConfigError(f"Duplicate rule id '{rule.id}'")
        seen[rule.id] = rule
        rules.append(rule)
    return rules


def load_rules_file(path: Path) -> List[Rule]:
    """Load rules from a YAML or JSON file holding a list (or ``{"rules": [...]}``)."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read rules file {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            payload = json.loads(text)
        else:
            payload = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse rules file {path}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("rules")
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ConfigError(f"Rules file {path} must contain a list of rules")
    return build_rules(payload)
