from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from .bus import ALERT_CREATED, ALERT_DISPATCHED, EventBus
from .factory import AlertIdGenerator, create_alert
from .lifecycle import AlertLifecycleManager
from .matcher import match_rules
from .models import Alert, ChannelDelivery, DispatchOutcome, Rule, SecurityEvent

if TYPE_CHECKING:
    from secalert.lib.notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger("secalert.engine")
debug_logger = logging.getLogger("secalert.debug.engine")


@dataclass(slots=True)
class AlertCreated:
    alert: Alert
    rule: Rule


@dataclass
class Submission:
    """Alerts produced by one submitted event plus a handle on their dispatch."""

    event: SecurityEvent
    alerts: List[Alert] = field(default_factory=list)
    tasks: List["asyncio.Task[Optional[Alert]]"] = field(default_factory=list, repr=False)

    @property
    def matched(self) -> bool:
        return bool(self.alerts)

    async def wait(self) -> List[Alert]:
        """Wait for dispatch and return each alert's post-dispatch state.

        Alerts dismissed while their dispatch was in flight are omitted.
        """
        if not self.tasks:
            return []
        results = await asyncio.gather(*self.tasks)
        return [alert for alert in results if alert is not None]


class AlertEngine:
    def __init__(
        self,
        rules: Sequence[Rule],
        dispatcher: "NotificationDispatcher",
        lifecycle: AlertLifecycleManager,
        *,
        bus: Optional[EventBus] = None,
        id_generator: Optional[AlertIdGenerator] = None,
    ) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._dispatcher = dispatcher
        self._lifecycle = lifecycle
        self._bus = bus or EventBus()
        self._id_generator = id_generator
        self._inflight: Set["asyncio.Task[Optional[Alert]]"] = set()
        self._bus.subscribe(ALERT_CREATED, self._schedule_dispatch)
        logger.info("Alert engine initialized with %s rules", len(self._rules))

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def lifecycle(self) -> AlertLifecycleManager:
        return self._lifecycle

    @property
    def dispatcher(self) -> "NotificationDispatcher":
        return self._dispatcher

    @property
    def pending_dispatches(self) -> int:
        return len(self._inflight)

    async def submit_event(self, event: Union[SecurityEvent, Mapping[str, Any]]) -> Submission:
        """
        Match ``event`` against the rules, register an alert per matching rule
        and start dispatching them. Returns without waiting for delivery.

        Raises:
            ValidationError: the raw event payload is missing ``type`` or ``data``.
        """
        if not isinstance(event, SecurityEvent):
            event = SecurityEvent.from_payload(event)

        debug_logger.debug("engine.event_received", extra={"event_type": event.type, "source": event.source})
        submission = Submission(event=event)
        matched = match_rules(self._rules, event)
        if not matched:
            logger.debug("No matching rules for event type: %s", event.type)
            return submission

        for rule in matched:
            alert = self._lifecycle.register(create_alert(rule, event, id_generator=self._id_generator))
            logger.info("Alert created: %s (rule %s)", alert.id, rule.id)
            debug_logger.debug(
                "engine.alert_created",
                extra={"alert_id": alert.id, "rule_id": rule.id, "severity": alert.severity.value},
            )
            submission.alerts.append(alert)
            for result in self._bus.publish(ALERT_CREATED, AlertCreated(alert=alert, rule=rule)):
                if isinstance(result, asyncio.Task):
                    submission.tasks.append(result)
        return submission

    def _schedule_dispatch(self, created: AlertCreated) -> "asyncio.Task[Optional[Alert]]":
        task = asyncio.get_running_loop().create_task(
            self._run_dispatch(created.alert, created.rule),
            name=f"dispatch-{created.alert.id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_dispatch(self, alert: Alert, rule: Rule) -> Optional[Alert]:
        logger.info("Dispatching %s alert: %s", alert.severity.value, alert.rule_name)
        try:
            outcome = await self._dispatcher.dispatch(alert, rule)
            updated = self._lifecycle.record_dispatch(alert.id, outcome)
        except Exception as exc:  # noqa: BLE001 - dispatch must never crash the engine
            logger.exception("engine.dispatch_error", extra={"alert_id": alert.id})
            updated = self._record_crash(alert, rule, exc)
        if updated is not None:
            self._bus.publish(ALERT_DISPATCHED, updated)
            debug_logger.debug(
                "engine.dispatch_complete",
                extra={"alert_id": alert.id, "status": updated.status.value},
            )
        return updated

    def _record_crash(self, alert: Alert, rule: Rule, exc: Exception) -> Optional[Alert]:
        """Settle the alert as failed when the dispatcher itself blew up."""
        outcome = DispatchOutcome(
            alert.id,
            (
                ChannelDelivery(
                    channel="dispatcher",
                    target=rule.id,
                    success=False,
                    error=f"{type(exc).__name__}: {exc}",
                ),
            ),
        )
        try:
            return self._lifecycle.record_dispatch(alert.id, outcome)
        except Exception:  # noqa: BLE001
            logger.exception("engine.dispatch_record_error", extra={"alert_id": alert.id})
            return None

    async def drain(self) -> None:
        """Wait until every in-flight dispatch has completed."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        try:
            await self._dispatcher.close()
        finally:
            self._lifecycle.close()

    def get_alert(self, alert_id: str) -> Alert:
        return self._lifecycle.get(alert_id)

    def list_alerts(self, **filters: Any) -> List[Alert]:
        return self._lifecycle.list_alerts(**filters)

    def acknowledge(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        return self._lifecycle.acknowledge(alert_id, actor)

    def dismiss(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        return self._lifecycle.dismiss(alert_id, actor)

    def stats(self) -> Dict[str, Any]:
        return self._lifecycle.stats()
