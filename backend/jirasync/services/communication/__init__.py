"""Outbound communication used for operational alerts."""

from __future__ import annotations

import logging

from jirasync.core.config import Settings
from jirasync.services.communication.channels import EmailChannel, WhatsAppChannel
from jirasync.services.communication.types import (
    CommunicationChannel,
    CommunicationChannelName,
    CommunicationPayload,
)

__all__ = [
    "CommunicationChannel",
    "CommunicationChannelName",
    "CommunicationPayload",
    "CommunicationService",
    "EmailChannel",
    "WhatsAppChannel",
]

logger = logging.getLogger(__name__)


class CommunicationService:
    """Sends a payload over the requested channel, defaulting recipients to the ops list."""

    def __init__(self, settings: Settings, *, email: EmailChannel | None = None, whatsapp: WhatsAppChannel | None = None) -> None:
        self._settings = settings
        self.email = email or EmailChannel(settings)
        self.whatsapp = whatsapp or WhatsAppChannel()

    def channel(self, name: CommunicationChannelName) -> CommunicationChannel:
        if name is CommunicationChannelName.email:
            return self.email
        if name is CommunicationChannelName.whatsapp:
            return self.whatsapp
        raise ValueError(f"Unsupported communication channel {name!r}")

    def send(
        self,
        payload: CommunicationPayload,
        *,
        channel: CommunicationChannelName = CommunicationChannelName.email,
    ) -> bool:
        handler = self.channel(CommunicationChannelName(channel))
        recipients = payload.to or self._settings.ops_alert_recipients
        if not recipients:
            logger.warning("No recipients resolved; skipping %s message %r", handler.name.value, payload.subject)
            return False
        return handler.send(payload.with_recipients(recipients))
