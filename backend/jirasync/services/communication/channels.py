"""Delivery channels: one class per channel."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from jirasync.core.config import Settings
from jirasync.services.communication.types import CommunicationChannelName, CommunicationPayload

logger = logging.getLogger(__name__)


class EmailChannel:
    name = CommunicationChannelName.email

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def send(self, payload: CommunicationPayload) -> bool:
        settings = self._settings
        if not payload.to:
            logger.warning("No email recipients specified; skipping send of %r", payload.subject)
            return False
        if not settings.SMTP_HOST:
            logger.info("SMTP not configured; skipping send to %s", ", ".join(payload.to))
            return False
        sender = payload.sender or settings.SMTP_FROM
        if not sender:
            logger.warning("SMTP_FROM not configured; skipping send to %s", ", ".join(payload.to))
            return False

        message = EmailMessage()
        message["From"] = sender
        message["To"] = ", ".join(payload.to)
        message["Subject"] = payload.subject
        message.set_content(payload.text or payload.subject)
        if payload.html:
            message.add_alternative(payload.html, subtype="html")

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
                server.ehlo()
                if settings.SMTP_TLS:
                    server.starttls()
                    server.ehlo()
                if settings.SMTP_USER:
                    server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.send_message(message)
            logger.info("Email sent: %s", ", ".join(payload.to))
            return True
        except Exception:
            logger.exception("Email send failed: %s", ", ".join(payload.to))
            return False


class WhatsAppChannel:
    name = CommunicationChannelName.whatsapp

    def send(self, payload: CommunicationPayload) -> bool:
        # TODO: deliver through the WhatsApp Business Cloud API once a sender number is provisioned.
        logger.warning(
            "WhatsApp delivery not implemented; dropping message %r for %s",
            payload.subject,
            ", ".join(payload.to),
        )
        return False
