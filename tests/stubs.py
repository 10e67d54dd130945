from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from secalert.lib.alerts import (
    Alert,
    AlertEngine,
    AlertLifecycleManager,
    AlertStatus,
    AlertStore,
    EventBus,
    InMemoryAlertStore,
    NotFoundError,
    Rule,
)
from secalert.lib.alerts.registry import build_rule
from secalert.lib.notifications import NotificationDispatcher, NotificationMessage


class StubChannel:
    """Channel double with configurable latency and outcome."""

    def __init__(
        self,
        name: str = "stub",
        *,
        succeed: bool = True,
        delay: float = 0.0,
        latency: Optional[Callable[[], float]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.name = name
        self.succeed = succeed
        self.delay = delay
        self.latency = latency
        self.error = error
        self.sent: List[tuple[Dict[str, Any], NotificationMessage]] = []
        self.closed = False

    async def send(self, target: Mapping[str, Any], message: NotificationMessage) -> bool:
        delay = self.latency() if self.latency is not None else self.delay
        if delay:
            await asyncio.sleep(delay)
        self.sent.append((dict(target), message))
        if self.error is not None:
            raise self.error
        return self.succeed

    async def close(self) -> None:
        self.closed = True


def make_rule(**overrides: Any) -> Rule:
    data: Dict[str, Any] = {
        "id": "brute-force",
        "name": "Brute force login",
        "eventType": "login_failure",
        "severity": "high",
        "conditions": [{"field": "count", "operator": "greater_than", "value": 3}],
    }
    data.update(overrides)
    return build_rule(data)


def make_engine(
    rules: Sequence[Rule],
    channels: Optional[Mapping[str, Any]] = None,
    *,
    store: Optional[AlertStore] = None,
) -> AlertEngine:
    bus = EventBus()
    lifecycle = AlertLifecycleManager(store if store is not None else InMemoryAlertStore(), bus=bus)
    dispatcher = NotificationDispatcher(channels or {})
    return AlertEngine(rules, dispatcher, lifecycle, bus=bus)


def race(calls: Sequence[Callable[[], Any]]) -> List[Any]:
    """Release every call at once, one thread each; exceptions come back as results."""
    barrier = threading.Barrier(len(calls))

    def run(call: Callable[[], Any]) -> Any:
        barrier.wait()
        try:
            return call()
        except Exception as exc:  # noqa: BLE001
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def acknowledge_dismiss_calls(manager: AlertLifecycleManager, alert_id: str, pairs: int = 4) -> List[Callable[[], Any]]:
    calls: List[Callable[[], Any]] = []
    for index in range(pairs):
        calls.append(partial(manager.acknowledge, alert_id, f"analyst-{index}"))
        calls.append(partial(manager.dismiss, alert_id, f"responder-{index}"))
    return calls


def assert_single_dismissal(results: Sequence[Any], alert_id: str) -> None:
    assert all(isinstance(result, (Alert, NotFoundError)) for result in results)
    dismissed = [r for r in results if isinstance(r, Alert) and r.status is AlertStatus.DISMISSED]
    acknowledged = [r for r in results if isinstance(r, Alert) and r.status is AlertStatus.ACKNOWLEDGED]
    assert len(dismissed) == 1
    assert all(r.id == alert_id for r in dismissed + acknowledged)
    # Every acknowledgement that landed is visible on the dismissed record.
    assert {r.acknowledged_by for r in acknowledged} <= {dismissed[0].acknowledged_by}
    assert all(r.alert_id == alert_id for r in results if isinstance(r, NotFoundError))
