"""Mail message type and transport protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class MailDeliveryError(RuntimeError):
    """Transport could not deliver a message."""


@dataclass(slots=True, frozen=True)
class Mail:
    """One outgoing plain-text message."""

    sender: str
    recipient: str
    subject: str
    body: str


class Mailer(Protocol):
    """Protocol implemented by mail transports."""

    def send(self, mail: Mail) -> None:
        """Deliver a message or raise MailDeliveryError."""
