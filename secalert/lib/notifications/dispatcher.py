from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from secalert.lib.alerts import (
    Alert,
    ChannelDelivery,
    ChannelSendError,
    DispatchOutcome,
    NotificationTarget,
    Rule,
    ValidationError,
)

from .channels.base import NotificationChannel
from .models import NotificationMessage, build_alert_message, build_test_message

logger = logging.getLogger("secalert.dispatcher")
debug_logger = logging.getLogger("secalert.debug.dispatcher")


class NotificationDispatcher:
    """
    Fans an alert out to every notification target configured on its rule.

    All targets of one alert are sent concurrently. Channels are looked up by
    kind from the injected mapping; the dispatcher itself knows no transport.
    Failures of any kind are captured per target and never raised.
    """

    def __init__(self, channels: Optional[Mapping[str, NotificationChannel]] = None) -> None:
        self._channels: Dict[str, NotificationChannel] = dict(channels or {})

    @property
    def channels(self) -> Dict[str, NotificationChannel]:
        return dict(self._channels)

    def register_channel(self, kind: str, channel: NotificationChannel) -> None:
        self._channels[kind] = channel

    async def dispatch(self, alert: Alert, rule: Rule) -> DispatchOutcome:
        targets = list(rule.notifications)
        if not targets:
            debug_logger.debug("dispatch.no_targets", extra={"alert_id": alert.id, "rule_id": rule.id})
            return DispatchOutcome(alert_id=alert.id)

        message = build_alert_message(alert)
        deliveries = await asyncio.gather(
            *(self._deliver(alert.id, target, message) for target in targets)
        )
        outcome = DispatchOutcome(alert_id=alert.id, deliveries=tuple(deliveries))
        if outcome.succeeded:
            logger.info("Alert dispatched successfully: %s", alert.id)
        else:
            failed = [delivery.channel for delivery in deliveries if not delivery.success]
            logger.error("Failed to dispatch alert %s via %s", alert.id, ", ".join(failed))
        return outcome

    async def _deliver(
        self,
        alert_id: str,
        target: NotificationTarget,
        message: NotificationMessage,
    ) -> ChannelDelivery:
        destination = target.describe()
        try:
            await self._send(target, message)
        except ChannelSendError as exc:
            logger.warning(
                "dispatch.channel_failed",
                extra={"alert_id": alert_id, "channel": target.channel, "error": str(exc)},
            )
            return _delivery(target, destination, error=str(exc))
        except Exception as exc:  # noqa: BLE001 - collaborator bugs count as channel failures
            logger.exception(
                "dispatch.channel_error",
                extra={"alert_id": alert_id, "channel": target.channel},
            )
            error = ChannelSendError(f"{type(exc).__name__}: {exc}", channel=target.channel)
            return _delivery(target, destination, error=str(error))
        return _delivery(target, destination)

    async def _send(self, target: NotificationTarget, message: NotificationMessage) -> None:
        channel = self._channels.get(target.channel)
        if channel is None:
            raise ChannelSendError(
                f"No notification channel registered for '{target.channel}'",
                channel=target.channel,
            )
        delivered = await channel.send(target.config, message)
        if delivered is False:
            raise ChannelSendError(f"Channel '{target.channel}' reported failure", channel=target.channel)

    async def send_test(self, kind: str, target_config: Mapping[str, object]) -> None:
        """Send a canned message through a single channel, raising on failure."""
        if kind not in self._channels:
            raise ValidationError(f"Unsupported channel type: {kind}")
        message = build_test_message(kind, timestamp=datetime.now(timezone.utc).isoformat())
        target = NotificationTarget(channel=kind, config=dict(target_config))
        try:
            await self._send(target, message)
        except ChannelSendError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ChannelSendError(f"{type(exc).__name__}: {exc}", channel=kind) from exc

    async def close(self) -> None:
        for channel in self._channels.values():
            close_fn = getattr(channel, "close", None)
            if callable(close_fn):
                result = close_fn()
                if asyncio.iscoroutine(result):
                    await result


def _delivery(target: NotificationTarget, destination: str, *, error: Optional[str] = None) -> ChannelDelivery:
    return ChannelDelivery(
        channel=target.channel,
        target=destination,
        success=error is None,
        error=error,
    )
