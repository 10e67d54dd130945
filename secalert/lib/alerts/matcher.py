from __future__ import annotations

import logging
from typing import Iterable, List

from .conditions import matches
from .models import Rule, SecurityEvent

logger = logging.getLogger("secalert.matcher")


def rule_applies(rule: Rule, event: SecurityEvent) -> bool:
    return rule.enabled and rule.event_type == event.type and matches(rule.conditions, event)


def match_rules(rules: Iterable[Rule], event: SecurityEvent) -> List[Rule]:
    """Return the enabled rules matching ``event``, in configuration order."""
    matched: List[Rule] = []
    for rule in rules:
        try:
            if rule_applies(rule, event):
                matched.append(rule)
        except Exception:  # noqa: BLE001 - a broken rule never matches
            logger.warning(
                "matcher.rule_error",
                extra={"rule_id": getattr(rule, "id", None), "event_type": getattr(event, "type", None)},
                exc_info=True,
            )
    return matched
