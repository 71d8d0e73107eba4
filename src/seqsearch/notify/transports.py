"""Mail transports selected by ``SEQSEARCH_MAIL_TRANSPORT``."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from seqsearch.config import MailSettings
from seqsearch.notify.base import Mail, MailDeliveryError, Mailer

logger = logging.getLogger(__name__)


class NullMailer:
    """Drops messages after logging them."""

    def send(self, mail: Mail) -> None:
        logger.info("Mail transport disabled, dropping %r to %s", mail.subject, mail.recipient)


class SmtpMailer:
    """Sends messages through an SMTP relay."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        host: str,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout_seconds = timeout_seconds

    def build_message(self, mail: Mail) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = mail.subject
        message["From"] = mail.sender
        message["To"] = mail.recipient
        message.set_content(mail.body)
        return message

    def send(self, mail: Mail) -> None:
        message = self.build_message(mail)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                if self.starttls:
                    server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as error:
            raise MailDeliveryError(f"SMTP delivery to {mail.recipient} failed: {error}") from error


def build_mailer(settings: MailSettings) -> Mailer:
    """Create the configured transport."""

    if settings.transport == "smtp":
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            timeout_seconds=settings.smtp_timeout_seconds,
        )
    if settings.transport == "null":
        return NullMailer()
    raise ValueError(f"Unsupported mail transport: {settings.transport!r}")
