from __future__ import annotations

import logging
from typing import Dict

from secalert.lib.config import NotificationsConfig

from .channels.base import NotificationChannel
from .channels.email import EmailChannel
from .channels.webhook import WebhookChannel
from .dispatcher import NotificationDispatcher

logger = logging.getLogger("secalert.notifications")


def build_channels(config: NotificationsConfig) -> Dict[str, NotificationChannel]:
    channels: Dict[str, NotificationChannel] = {}
    if config.email is not None:
        email_conf = config.email
        channels["email"] = EmailChannel(
            host=email_conf.smtp_host,
            port=email_conf.smtp_port,
            username=email_conf.username,
            password=email_conf.password,
            from_address=email_conf.from_address,
            use_tls=email_conf.use_tls,
            timeout=email_conf.timeout,
            attempts=email_conf.attempts,
        )
    if config.webhook is not None:
        webhook_conf = config.webhook
        channels["webhook"] = WebhookChannel(
            timeout=webhook_conf.timeout,
            headers=webhook_conf.headers,
            attempts=webhook_conf.attempts,
        )
    logger.info("Notification channels configured: %s", ", ".join(sorted(channels)) or "none")
    return channels


def build_dispatcher(config: NotificationsConfig) -> NotificationDispatcher:
    return NotificationDispatcher(build_channels(config))
