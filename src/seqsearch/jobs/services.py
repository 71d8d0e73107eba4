"""Use-case services for job submission and status queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path

from seqsearch.catalog import database_names
from seqsearch.jobs.errors import InvalidJobRequestError, QueueUnavailableError
from seqsearch.jobs.models import JobRecord, JobRequest, JobStatus
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.tickets import new_ticket, require_valid_ticket

logger = logging.getLogger(__name__)


class JobService:
    """Coordinates record materialization, status, and queue insert."""

    def __init__(
        self,
        *,
        repository: JobQueueRepository,
        records: JobRecordStore,
        databases_dir: Path | None = None,
    ) -> None:
        self.repository = repository
        self.records = records
        self.databases_dir = databases_dir

    def submit(self, request: JobRequest, *, ordering_key: float | None = None) -> str:
        """Persist a job and queue it, returning the new ticket.

        The record is on disk and the status is PENDING before the queue entry
        exists, so a worker can never claim a ticket it cannot load.
        """

        self._validate_request(request)
        ticket = new_ticket()
        record_path = self.records.write(ticket, JobRecord.from_request(request))
        self.repository.set_status(
            ticket=ticket,
            status=JobStatus.PENDING,
            event_type="submitted",
            details={"databases": list(request.databases), "mode": request.mode},
        )
        try:
            self.repository.enqueue(ticket=ticket, ordering_key=ordering_key)
        except QueueUnavailableError as error:
            self._abandon_unqueued(ticket=ticket, error=error)
            raise
        logger.info("Submitted %s (record=%s)", ticket, record_path)
        return ticket

    def status(self, ticket: str) -> JobStatus | None:
        return self.repository.get_status(ticket=require_valid_ticket(ticket))

    def statuses(self, tickets: Iterable[str]) -> dict[str, JobStatus | None]:
        return self.repository.get_statuses(
            tickets=[require_valid_ticket(ticket) for ticket in tickets],
        )

    def job_dir(self, ticket: str) -> Path:
        """Validated per-ticket directory where the pipeline writes results."""

        return self.records.job_dir(ticket)

    def cancel(self, ticket: str) -> bool:
        """Withdraw a ticket that no worker has claimed yet.

        Returns False unless the ticket was still PENDING. Leftover duplicate
        entries of a running or finished ticket are dropped either way.
        """

        removed = self.repository.remove_pending(ticket=require_valid_ticket(ticket))
        if removed == 0:
            return False
        canceled = self.repository.transition_status(
            ticket=ticket,
            from_status=JobStatus.PENDING,
            to_status=JobStatus.ERROR,
            event_type="canceled",
            details={"removed_entries": removed},
        )
        if canceled:
            logger.info("Canceled %s", ticket)
        else:
            logger.info("Dropped %d stale queue entries for non-PENDING %s", removed, ticket)
        return canceled

    def reap_stale(self, *, older_than: timedelta) -> list[str]:
        """Mark tickets stuck in RUNNING as ERROR; they are never requeued.

        older_than must exceed the worker job timeout, otherwise live jobs are
        reaped.
        """

        reaped: list[str] = []
        for ticket in self.repository.list_stale_running(older_than=older_than):
            moved = self.repository.transition_status(
                ticket=ticket,
                from_status=JobStatus.RUNNING,
                to_status=JobStatus.ERROR,
                event_type="reaped",
                details={"older_than_seconds": int(older_than.total_seconds())},
            )
            if moved:
                logger.warning("Reaped stale running ticket %s", ticket)
                reaped.append(ticket)
        return reaped

    def _abandon_unqueued(self, *, ticket: str, error: QueueUnavailableError) -> None:
        try:
            self.repository.transition_status(
                ticket=ticket,
                from_status=JobStatus.PENDING,
                to_status=JobStatus.ERROR,
                event_type="enqueue_failed",
                details={"error": str(error)},
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not mark unqueued ticket %s as ERROR", ticket)

    def _validate_request(self, request: JobRequest) -> None:
        if not request.query.strip():
            raise InvalidJobRequestError("Query must not be empty.")
        if not request.databases:
            raise InvalidJobRequestError("At least one database must be selected.")
        if any(not name.strip() or " " in name for name in request.databases):
            raise InvalidJobRequestError(
                "Database names must be non-empty and contain no spaces.",
            )
        if not request.mode.strip():
            raise InvalidJobRequestError("Mode must not be empty.")
        if self.databases_dir is not None:
            known = database_names(self.databases_dir)
            unknown = [name for name in request.databases if name not in known]
            if unknown:
                raise InvalidJobRequestError(f"Unknown databases: {', '.join(unknown)}")
