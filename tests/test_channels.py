from __future__ import annotations

import asyncio
import json
import smtplib

import httpx
import pytest

from secalert.lib.alerts import ChannelSendError
from secalert.lib.notifications import NotificationMessage
from secalert.lib.notifications.channels import EmailChannel, WebhookChannel


MESSAGE = NotificationMessage(
    subject="[HIGH] Brute force login",
    body="Security Alert: Brute force login",
    payload={"id": "alert-1", "severity": "high"},
)


def _webhook(handler, **kwargs) -> WebhookChannel:
    kwargs.setdefault("base_delay", 0)
    return WebhookChannel(transport=httpx.MockTransport(handler), **kwargs)


def test_webhook_posts_alert_payload():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    channel = _webhook(handler, headers={"X-Env": "test"})

    async def scenario():
        try:
            return await channel.send(
                {"url": "https://hooks.example.com/a", "headers": {"X-Token": "secret"}},
                MESSAGE,
            )
        finally:
            await channel.close()

    assert asyncio.run(scenario()) is True
    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == "https://hooks.example.com/a"
    assert json.loads(request.content) == MESSAGE.payload
    assert request.headers["X-Token"] == "secret"
    assert request.headers["X-Env"] == "test"
    assert request.headers["User-Agent"] == "SecAlert/1.0"


def test_webhook_retries_server_errors():
    responses = iter([httpx.Response(503), httpx.Response(500), httpx.Response(204)])
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return next(responses)

    channel = _webhook(handler, attempts=3)

    assert asyncio.run(channel.send({"url": "https://hooks.example.com/a"}, MESSAGE)) is True
    assert len(calls) == 3


def test_webhook_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404)

    channel = _webhook(handler, attempts=3)

    with pytest.raises(ChannelSendError) as excinfo:
        asyncio.run(channel.send({"url": "https://hooks.example.com/a"}, MESSAGE))

    assert "404" in str(excinfo.value)
    assert excinfo.value.channel == "webhook"
    assert len(calls) == 1


def test_webhook_transport_errors_are_retried_then_raised():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    channel = _webhook(handler, attempts=2)

    with pytest.raises(ChannelSendError) as excinfo:
        asyncio.run(channel.send({"url": "https://hooks.example.com/a"}, MESSAGE))

    assert excinfo.value.retryable is True
    assert len(calls) == 2


def test_webhook_requires_url():
    channel = _webhook(lambda request: httpx.Response(200))

    with pytest.raises(ChannelSendError):
        asyncio.run(channel.send({}, MESSAGE))


class FakeSMTP:
    instances: list = []
    fail_login: bool = False
    fail_sends: int = 0

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        if FakeSMTP.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")
        self.logged_in = (username, password)

    def send_message(self, message):
        if FakeSMTP.fail_sends > 0:
            FakeSMTP.fail_sends -= 1
            raise smtplib.SMTPServerDisconnected("connection lost")
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_login = False
    FakeSMTP.fail_sends = 0
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _email(**kwargs) -> EmailChannel:
    defaults = dict(
        host="smtp.example.com",
        port=587,
        username="alerts",
        password="hunter2",
        from_address="alerts@example.com",
        base_delay=0,
    )
    defaults.update(kwargs)
    return EmailChannel(**defaults)


def test_email_sends_to_all_recipients(fake_smtp):
    channel = _email()

    result = asyncio.run(channel.send({"to": ["soc@example.com", "oncall@example.com"]}, MESSAGE))

    assert result is True
    (server,) = fake_smtp.instances
    assert server.host == "smtp.example.com"
    assert server.started_tls is True
    assert server.logged_in == ("alerts", "hunter2")
    (message,) = server.messages
    assert message["To"] == "soc@example.com, oncall@example.com"
    assert message["Subject"] == MESSAGE.subject
    assert message["From"] == "alerts@example.com"


def test_email_skips_tls_and_login_when_not_configured(fake_smtp):
    channel = _email(username="", use_tls=False)

    asyncio.run(channel.send({"to": "soc@example.com"}, MESSAGE))

    (server,) = fake_smtp.instances
    assert server.started_tls is False
    assert server.logged_in is None


def test_email_retries_transient_failures(fake_smtp):
    fake_smtp.fail_sends = 1
    channel = _email(attempts=2)

    assert asyncio.run(channel.send({"to": ["soc@example.com"]}, MESSAGE)) is True
    assert len(fake_smtp.instances) == 2


def test_email_authentication_failure_is_not_retried(fake_smtp):
    fake_smtp.fail_login = True
    channel = _email(attempts=3)

    with pytest.raises(ChannelSendError) as excinfo:
        asyncio.run(channel.send({"to": ["soc@example.com"]}, MESSAGE))

    assert "authentication" in str(excinfo.value)
    assert len(fake_smtp.instances) == 1


def test_email_requires_recipients(fake_smtp):
    with pytest.raises(ChannelSendError):
        asyncio.run(_email().send({"to": []}, MESSAGE))
    assert fake_smtp.instances == []
