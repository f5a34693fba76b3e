from __future__ import annotations

from jirasync.core.config import Settings
from jirasync.services.communication import channels as channels_module
from jirasync.services.communication import (
    CommunicationChannelName,
    CommunicationPayload,
    CommunicationService,
    EmailChannel,
)


class _RecordingChannel:
    name = CommunicationChannelName.email

    def __init__(self) -> None:
        self.sent: list[CommunicationPayload] = []

    def send(self, payload: CommunicationPayload) -> bool:
        self.sent.append(payload)
        return True


class _FakeSMTP:
    instances: list["_FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host
        self.port = port
        self.calls: list[str] = []
        self.messages: list = []
        _FakeSMTP.instances.append(self)

    def __enter__(self) -> "_FakeSMTP":
        return self

    def __exit__(self, *exc) -> None:  # noqa: ANN002
        return None

    def ehlo(self) -> None:
        self.calls.append("ehlo")

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, user: str, password: str) -> None:
        self.calls.append(f"login:{user}")

    def send_message(self, message) -> None:  # noqa: ANN001
        self.messages.append(message)


def test_service_defaults_recipients_to_ops_list() -> None:
    email = _RecordingChannel()
    service = CommunicationService(Settings(OPS_ALERT_EMAILS="a@x.test, b@x.test"), email=email)

    assert service.send(CommunicationPayload(subject="Alert", text="body")) is True
    assert email.sent[0].to == ["a@x.test", "b@x.test"]


def test_service_skips_without_recipients() -> None:
    email = _RecordingChannel()
    service = CommunicationService(Settings(OPS_ALERT_EMAILS=""), email=email)

    assert service.send(CommunicationPayload(subject="Alert")) is False
    assert email.sent == []


def test_whatsapp_channel_is_not_delivered() -> None:
    service = CommunicationService(Settings(OPS_ALERT_EMAILS="ops@x.test"))
    payload = CommunicationPayload(subject="Alert", to=["+15550100"])
    assert service.send(payload, channel=CommunicationChannelName.whatsapp) is False


def test_email_channel_sends_multipart_message(monkeypatch) -> None:
    _FakeSMTP.instances.clear()
    monkeypatch.setattr(channels_module.smtplib, "SMTP", _FakeSMTP)
    settings = Settings(SMTP_HOST="smtp.test", SMTP_PORT=2525, SMTP_USER="bot", SMTP_FROM="bot@x.test")

    sent = EmailChannel(settings).send(
        CommunicationPayload(subject="Alert", to=["ops@x.test"], text="plain", html="<p>rich</p>")
    )

    assert sent is True
    server = _FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.test", 2525)
    assert server.calls == ["ehlo", "starttls", "ehlo", "login:bot"]
    message = server.messages[0]
    assert message["To"] == "ops@x.test"
    assert message.is_multipart()


def test_email_channel_without_smtp_host_skips(monkeypatch) -> None:
    monkeypatch.setattr(channels_module.smtplib, "SMTP", _FakeSMTP)
    _FakeSMTP.instances.clear()

    sent = EmailChannel(Settings(SMTP_HOST="")).send(CommunicationPayload(subject="Alert", to=["ops@x.test"]))

    assert sent is False
    assert _FakeSMTP.instances == []
