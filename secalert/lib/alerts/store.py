from __future__ import annotations

from collections import OrderedDict
from typing import List, Optional, Protocol

from .models import Alert


class AlertStore(Protocol):
    """Active-alert storage keyed by alert id."""

    def add(self, alert: Alert) -> None:
        ...

    def find(self, alert_id: str) -> Optional[Alert]:
        ...

    def update(self, alert: Alert) -> None:
        ...

    def remove(self, alert_id: str) -> Optional[Alert]:
        ...

    def all(self) -> List[Alert]:
        """Every active alert, oldest registration first."""
        ...

    def close(self) -> None:
        """Release connections or other resources held by the store."""
        ...


class InMemoryAlertStore(AlertStore):
    def __init__(self) -> None:
        self._alerts: "OrderedDict[str, Alert]" = OrderedDict()

    def add(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert

    def find(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def update(self, alert: Alert) -> None:
        if alert.id in self._alerts:
            self._alerts[alert.id] = alert

    def remove(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.pop(alert_id, None)

    def all(self) -> List[Alert]:
        return list(self._alerts.values())

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._alerts)
