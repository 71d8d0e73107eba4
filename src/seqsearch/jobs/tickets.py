"""Ticket issuance and format validation."""

from __future__ import annotations

import re
from uuid import uuid4

from seqsearch.jobs.errors import InvalidTicketError

_TICKET_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
)


def new_ticket() -> str:
    """Issue a fresh opaque ticket."""

    return str(uuid4())


def is_valid_ticket(value: object) -> bool:
    """Return True when value has the exact issued ticket format."""

    return isinstance(value, str) and _TICKET_PATTERN.fullmatch(value) is not None


def require_valid_ticket(value: object) -> str:
    """Return the ticket unchanged or raise InvalidTicketError."""

    if not is_valid_ticket(value):
        raise InvalidTicketError(str(value))
    return value  # type: ignore[return-value]
