from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger("secalert.bus")

Handler = Callable[[Any], Any]

ALERT_CREATED = "alert.created"
ALERT_DISPATCHED = "alert.dispatched"
ALERT_ACKNOWLEDGED = "alert.acknowledged"
ALERT_DISMISSED = "alert.dismissed"


class EventBus:
    """
    In-process publish/subscribe used between the engine's components.

    Handlers run synchronously in registration order; a failing handler is
    logged and does not prevent the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, topic: str, payload: Any) -> List[Any]:
        with self._lock:
            handlers = list(self._handlers.get(topic, ()))
        results: List[Any] = []
        for handler in handlers:
            try:
                results.append(handler(payload))
            except Exception:  # noqa: BLE001 - subscribers must not break publishers
                logger.exception("bus.handler_error", extra={"topic": topic})
        return results
