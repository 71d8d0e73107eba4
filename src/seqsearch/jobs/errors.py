"""Exceptions raised by the job queue components."""

from __future__ import annotations


class JobQueueError(RuntimeError):
    """Base error for job queue operations."""


class InvalidTicketError(JobQueueError, ValueError):
    """Ticket string does not have the issued format."""

    def __init__(self, ticket: str) -> None:
        super().__init__(f"Invalid ticket: {ticket!r}")
        self.ticket = ticket


class InvalidJobRequestError(JobQueueError, ValueError):
    """Submitted job parameters are incomplete or unknown."""


class JobRecordError(JobQueueError):
    """Job record is missing or cannot be decoded."""


class QueueUnavailableError(JobQueueError):
    """Backing store could not serve a queue operation."""
