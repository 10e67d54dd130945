from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Iterable, List, Mapping

from secalert.lib.alerts import ChannelSendError
from secalert.lib.utils.retry import with_retry

from ..models import NotificationMessage
from .base import NotificationChannel

logger = logging.getLogger("secalert.channels.email")


class EmailChannel(NotificationChannel):
    name = "email"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: float = 10.0,
        attempts: int = 3,
        base_delay: float = 0.5,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address
        self._use_tls = use_tls
        self._timeout = timeout
        self._attempts = max(1, attempts)
        self._base_delay = base_delay

    async def send(self, target: Mapping[str, Any], message: NotificationMessage) -> bool:
        recipients = self._recipients(target.get("to"))
        if not recipients:
            raise ChannelSendError("Email target has no recipients", channel=self.name)
        # smtplib blocks; keep it off the event loop.
        await asyncio.to_thread(self._send_with_retry, recipients, message)
        return True

    async def close(self) -> None:
        return None

    def _send_with_retry(self, recipients: List[str], message: NotificationMessage) -> None:
        with_retry(
            lambda: self._send(recipients, message),
            attempts=self._attempts,
            base_delay=self._base_delay,
            logger=logger,
            description=f"SMTP delivery to {', '.join(recipients)}",
            exceptions=(ChannelSendError,),
        )

    def _send(self, recipients: List[str], message: NotificationMessage) -> None:
        email = EmailMessage()
        email["From"] = self._from_address
        email["To"] = ", ".join(recipients)
        email["Subject"] = message.subject
        email.set_content(message.body)

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(email)
        except smtplib.SMTPAuthenticationError as exc:
            raise ChannelSendError(f"SMTP authentication failed: {exc}", channel=self.name) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise ChannelSendError(f"SMTP recipients refused: {exc}", channel=self.name) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise ChannelSendError(f"SMTP delivery failed: {exc}", channel=self.name, retryable=True) from exc
        logger.info("Alert email sent", extra={"recipients": recipients, "subject": message.subject})

    @staticmethod
    def _recipients(raw: Any) -> List[str]:
        if raw is None:
            return []
        items: Iterable[Any] = [raw] if isinstance(raw, str) else raw
        return [str(item).strip() for item in items if str(item).strip()]
