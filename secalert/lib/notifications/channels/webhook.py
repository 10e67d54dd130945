from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from secalert.lib.alerts import ChannelSendError
from secalert.lib.utils.retry import with_retry_async

from ..models import NotificationMessage
from .base import NotificationChannel

logger = logging.getLogger("secalert.channels.webhook")

DEFAULT_USER_AGENT = "SecAlert/1.0"


class WebhookChannel(NotificationChannel):
    name = "webhook"

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        headers: Optional[Mapping[str, str]] = None,
        attempts: int = 3,
        base_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._headers: Dict[str, str] = {"User-Agent": DEFAULT_USER_AGENT}
        self._headers.update(headers or {})
        self._attempts = max(1, attempts)
        self._base_delay = base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, target: Mapping[str, Any], message: NotificationMessage) -> bool:
        url = target.get("url")
        if not url:
            raise ChannelSendError("Webhook target missing 'url'", channel=self.name)
        extra_headers = target.get("headers") if isinstance(target.get("headers"), Mapping) else {}

        async def _call() -> bool:
            start = time.perf_counter()
            try:
                response = await self._get_client().post(
                    str(url),
                    json=message.payload,
                    headers={str(k): str(v) for k, v in extra_headers.items()},
                )
            except httpx.TransportError as exc:
                raise ChannelSendError(
                    f"Webhook request to {url} failed: {exc}",
                    channel=self.name,
                    retryable=True,
                ) from exc
            duration = time.perf_counter() - start
            status = response.status_code
            if status >= 400:
                raise ChannelSendError(
                    f"Webhook failed: {status} {response.reason_phrase}",
                    channel=self.name,
                    retryable=status >= 500 or status == 429,
                )
            logger.info(
                "Alert webhook sent",
                extra={"url": str(url), "status": status, "duration": duration},
            )
            return True

        return await with_retry_async(
            _call,
            attempts=self._attempts,
            base_delay=self._base_delay,
            logger=logger,
            description=f"webhook POST {url}",
            exceptions=(ChannelSendError,),
        )
