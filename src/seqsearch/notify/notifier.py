"""Outcome-specific submitter notifications."""

from __future__ import annotations

import logging

from seqsearch.config import NotificationTemplates
from seqsearch.jobs.models import Outcome, OutcomeKind
from seqsearch.notify.base import Mail, Mailer

logger = logging.getLogger(__name__)


class OutcomeNotifier:
    """Renders the template for an outcome and hands it to a transport.

    Delivery failures are logged and dropped. They are never retried and never
    change the stored ticket status.
    """

    def __init__(self, *, mailer: Mailer, sender: str, templates: NotificationTemplates) -> None:
        self.mailer = mailer
        self.sender = sender
        self.templates = templates

    def render(self, *, ticket: str, outcome: Outcome) -> tuple[str, str]:
        """Return (subject, body) for an outcome."""

        templates = self.templates
        if outcome.kind == OutcomeKind.SUCCESS:
            subject, body = templates.success_subject, templates.success_body
        elif outcome.kind == OutcomeKind.TIMEOUT:
            subject, body = templates.timeout_subject, templates.timeout_body
        else:
            subject, body = templates.error_subject, templates.error_body
        return subject.format(ticket=ticket), body.format(ticket=ticket)

    def notify(self, *, ticket: str, email: str | None, outcome: Outcome) -> bool:
        """Send the outcome message; returns True when the transport accepted it."""

        if not email:
            return False
        subject, body = self.render(ticket=ticket, outcome=outcome)
        try:
            self.mailer.send(Mail(sender=self.sender, recipient=email, subject=subject, body=body))
        except Exception:  # noqa: BLE001
            logger.exception("Notification for %s to %s failed", ticket, email)
            return False
        logger.info("Sent %s notification for %s", outcome.kind.value, ticket)
        return True
