from __future__ import annotations

import allure
import pytest

from seqsearch.jobs.errors import InvalidTicketError
from seqsearch.jobs.tickets import is_valid_ticket, new_ticket, require_valid_ticket

pytestmark = [
    allure.epic("Job Queue"),
    allure.feature("Tickets"),
]


def test_new_tickets_are_unique_and_valid() -> None:
    tickets = {new_ticket() for _ in range(200)}

    assert len(tickets) == 200
    assert all(is_valid_ticket(ticket) for ticket in tickets)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "../secret",
        "not-a-ticket",
        "0f8fad5b-d9cb-469f-a165-70867728950e/../x",
        "0F8FAD5B-D9CB-469F-A165-70867728950E",
        "0f8fad5b-d9cb-169f-a165-70867728950e",
        " 0f8fad5b-d9cb-469f-a165-70867728950e",
        "0f8fad5b-d9cb-469f-a165-70867728950e\n",
        None,
        42,
    ],
)
def test_malformed_tickets_are_rejected(value: object) -> None:
    assert not is_valid_ticket(value)
    with pytest.raises(InvalidTicketError):
        require_valid_ticket(value)


def test_require_valid_ticket_returns_value_unchanged() -> None:
    ticket = "0f8fad5b-d9cb-469f-a165-70867728950e"

    assert require_valid_ticket(ticket) == ticket


def test_invalid_ticket_error_is_value_error() -> None:
    with pytest.raises(ValueError, match="Invalid ticket"):
        require_valid_ticket("../etc/passwd")
