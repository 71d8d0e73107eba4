"""Submitter notifications for finished jobs."""

from seqsearch.notify.base import Mail, MailDeliveryError, Mailer
from seqsearch.notify.notifier import OutcomeNotifier
from seqsearch.notify.transports import NullMailer, SmtpMailer, build_mailer

__all__ = [
    "Mail",
    "MailDeliveryError",
    "Mailer",
    "NullMailer",
    "OutcomeNotifier",
    "SmtpMailer",
    "build_mailer",
]
