"""Shared types for outbound operational communication."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Protocol


class CommunicationChannelName(str, enum.Enum):
    email = "email"
    whatsapp = "whatsapp"


@dataclass(frozen=True)
class CommunicationPayload:
    subject: str
    to: list[str] = field(default_factory=list)
    text: str | None = None
    html: str | None = None
    sender: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def with_recipients(self, recipients: list[str]) -> CommunicationPayload:
        return replace(self, to=list(recipients))


class CommunicationChannel(Protocol):
    name: CommunicationChannelName

    def send(self, payload: CommunicationPayload) -> bool: ...
