from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..models import NotificationMessage


class NotificationChannel(Protocol):
    name: str

    async def send(self, target: Mapping[str, Any], message: NotificationMessage) -> bool:
        """Deliver ``message`` to ``target``; return False or raise ChannelSendError on failure."""
        ...

    async def close(self) -> None:
        ...
