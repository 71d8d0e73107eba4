from __future__ import annotations

import smtplib
from unittest.mock import patch

import allure
import pytest

from seqsearch.config import MailSettings, NotificationTemplates
from seqsearch.jobs.models import Outcome, OutcomeKind
from seqsearch.notify import (
    Mail,
    MailDeliveryError,
    NullMailer,
    OutcomeNotifier,
    SmtpMailer,
    build_mailer,
)

pytestmark = [
    allure.epic("Notifications"),
    allure.feature("Outcome Mail"),
]

TICKET = "0f8fad5b-d9cb-469f-a165-70867728950e"
MAIL = Mail(
    sender="queue@example.org",
    recipient="submitter@example.org",
    subject=f"Done -- {TICKET}",
    body=f"Results: https://search.example.org/result/{TICKET}",
)


@pytest.mark.parametrize(
    ("kind", "expected_subject"),
    [
        (OutcomeKind.SUCCESS, f"Done -- {TICKET}"),
        (OutcomeKind.TIMEOUT, f"Timeout -- {TICKET}"),
        (OutcomeKind.RUNTIME_ERROR, f"Error -- {TICKET}"),
        (OutcomeKind.LAUNCH_ERROR, f"Error -- {TICKET}"),
    ],
)
def test_render_selects_template_by_outcome(
    kind: OutcomeKind,
    expected_subject: str,
    mailer,
) -> None:
    notifier = OutcomeNotifier(mailer=mailer, sender="q@x", templates=NotificationTemplates())

    subject, body = notifier.render(ticket=TICKET, outcome=Outcome(kind=kind))

    assert subject == expected_subject
    assert body == TICKET


def test_notify_returns_false_on_delivery_failure(mailer) -> None:
    mailer.fail = True
    notifier = OutcomeNotifier(mailer=mailer, sender="q@x", templates=NotificationTemplates())

    assert not notifier.notify(
        ticket=TICKET,
        email="submitter@example.org",
        outcome=Outcome(kind=OutcomeKind.SUCCESS),
    )


def test_notify_skips_missing_address(mailer) -> None:
    notifier = OutcomeNotifier(mailer=mailer, sender="q@x", templates=NotificationTemplates())

    assert not notifier.notify(ticket=TICKET, email=None, outcome=Outcome(kind=OutcomeKind.SUCCESS))
    assert not notifier.notify(ticket=TICKET, email="", outcome=Outcome(kind=OutcomeKind.SUCCESS))
    assert mailer.sent == []


def test_smtp_mailer_sends_with_starttls_and_login() -> None:
    transport = SmtpMailer(host="smtp.example.org", port=2525, user="bot", password="secret")

    with patch("seqsearch.notify.transports.smtplib.SMTP") as smtp_cls:
        server = smtp_cls.return_value.__enter__.return_value
        transport.send(MAIL)

    smtp_cls.assert_called_once_with("smtp.example.org", 2525, timeout=30.0)
    server.starttls.assert_called_once_with()
    server.login.assert_called_once_with("bot", "secret")
    message = server.send_message.call_args.args[0]
    assert message["To"] == "submitter@example.org"
    assert message["From"] == "queue@example.org"
    assert message["Subject"] == f"Done -- {TICKET}"
    assert TICKET in message.get_content()


def test_smtp_mailer_without_credentials_skips_login() -> None:
    transport = SmtpMailer(host="localhost", port=25, starttls=False)

    with patch("seqsearch.notify.transports.smtplib.SMTP") as smtp_cls:
        server = smtp_cls.return_value.__enter__.return_value
        transport.send(MAIL)

    server.starttls.assert_not_called()
    server.login.assert_not_called()
    server.send_message.assert_called_once()


def test_smtp_errors_become_delivery_errors() -> None:
    transport = SmtpMailer(host="localhost")

    with patch("seqsearch.notify.transports.smtplib.SMTP") as smtp_cls:
        smtp_cls.side_effect = smtplib.SMTPConnectError(421, b"busy")
        with pytest.raises(MailDeliveryError, match="submitter@example.org"):
            transport.send(MAIL)


def test_build_mailer_selects_transport() -> None:
    assert isinstance(build_mailer(MailSettings()), NullMailer)
    smtp = build_mailer(MailSettings(transport="smtp", smtp_host="relay", smtp_port=465))
    assert isinstance(smtp, SmtpMailer)
    assert (smtp.host, smtp.port) == ("relay", 465)
    with pytest.raises(ValueError, match="carrier-pigeon"):
        build_mailer(MailSettings(transport="carrier-pigeon"))


def test_null_mailer_accepts_everything() -> None:
    NullMailer().send(MAIL)
