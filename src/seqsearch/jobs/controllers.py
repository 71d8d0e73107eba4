"""Controllers for job queue CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from seqsearch.catalog import list_databases
from seqsearch.config import Settings
from seqsearch.jobs.models import JobRequest, JobStatus
from seqsearch.jobs.pool import build_worker, run_worker_pool
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.services import JobService


@dataclass(slots=True)
class SubmitCommand:
    """CLI input for job submission."""

    db_path: Path | None
    query: str
    databases: tuple[str, ...]
    mode: str
    email: str | None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for ticket status lookup."""

    db_path: Path | None
    tickets: tuple[str, ...]


@dataclass(slots=True)
class TicketCommand:
    """CLI input for single-ticket operations."""

    db_path: Path | None
    ticket: str


@dataclass(slots=True)
class ListCommand:
    """CLI input for queue and status listings."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class WorkerCommand:
    """CLI input for worker execution."""

    db_path: Path | None
    once: bool
    max_jobs: int | None
    max_idle_polls: int | None
    processes: int = 1


@dataclass(slots=True)
class ReapCommand:
    """CLI input for stale RUNNING ticket cleanup."""

    db_path: Path | None
    older_than_seconds: int


class JobCliController:
    """Coordinates submission, worker, and inspection CLI operations."""

    def submit(self, command: SubmitCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            ticket = _service(settings, repository).submit(
                JobRequest(
                    query=command.query,
                    databases=command.databases,
                    mode=command.mode,
                    email=command.email,
                ),
            )
            status = repository.get_status(ticket=ticket)
        return [f"Ticket: {ticket} status={status.value if status else 'UNKNOWN'}"]

    def status(self, command: StatusCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            statuses = _service(settings, repository).statuses(command.tickets)
        return [
            f"{ticket} {status.value if status is not None else 'UNKNOWN'}"
            for ticket, status in statuses.items()
        ]

    def cancel(self, command: TicketCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            canceled = _service(settings, repository).cancel(command.ticket)
        if canceled:
            return [f"Canceled: {command.ticket}"]
        return [f"Not pending, nothing to cancel: {command.ticket}"]

    def events(self, command: TicketCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            events = repository.list_events(ticket=command.ticket)
        if not events:
            return [f"No events for {command.ticket}"]
        return [
            f"{event.created_at.isoformat()} {event.event_type} "
            f"{event.status_from.value if event.status_from else '-'} -> "
            f"{event.status_to.value if event.status_to else '-'}"
            + (f" {event.details}" if event.details else "")
            for event in events
        ]

    def queue(self, command: ListCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            entries = repository.list_pending(limit=command.limit)
            total = repository.pending_count()
        lines = [f"Pending: {total}"]
        lines.extend(
            f"  #{entry.seq} {entry.ticket} enqueued_at={entry.enqueued_at.isoformat()}"
            for entry in entries
        )
        return lines

    def tickets(self, command: ListCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = JobStatus(command.status.upper()) if command.status else None
        with _repository(settings) as repository:
            rows = repository.list_statuses(status=status, limit=command.limit)
        if not rows:
            return ["No tickets found."]
        return [
            f"{row.ticket} {row.status.value} updated_at={row.updated_at.isoformat()}"
            for row in rows
        ]

    def summary(self, db_path: Path | None) -> list[str]:
        settings = _settings(db_path)
        with _repository(settings) as repository:
            counts = repository.summary()
            pending = repository.pending_count()
        lines = ["Ticket status summary:"]
        lines.extend(f"  {status.value:10s}: {count}" for status, count in counts.items())
        lines.append(f"  {'queued':10s}: {pending}")
        return lines

    def run_worker(self, command: WorkerCommand) -> list[str]:
        settings = _settings(command.db_path)
        settings.validate_paths()
        if command.processes > 1:
            # Members skip migrations, so the schema must exist before they start.
            with _repository(settings):
                pass
            failed = run_worker_pool(
                settings,
                processes=command.processes,
                max_jobs=command.max_jobs,
                max_idle_polls=command.max_idle_polls,
            )
            return [f"Worker pool finished: processes={command.processes} failed={failed}"]

        with _repository(settings) as repository:
            worker = build_worker(settings, repository)
            summary = (
                worker.run_once()
                if command.once
                else worker.run_loop(
                    max_jobs=command.max_jobs,
                    max_idle_polls=command.max_idle_polls,
                )
            )
        return [
            "Worker summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed} timeouts={summary.timeouts} "
            f"skipped={summary.skipped} idle_polls={summary.idle_polls}",
        ]

    def reap(self, command: ReapCommand) -> list[str]:
        settings = _settings(command.db_path)
        older_than = timedelta(seconds=command.older_than_seconds)
        if older_than.total_seconds() <= settings.worker.job_timeout_seconds:
            raise ValueError(
                "--older-than must exceed the job timeout "
                f"({settings.worker.job_timeout_seconds:g}s).",
            )
        with _repository(settings) as repository:
            reaped = _service(settings, repository).reap_stale(older_than=older_than)
        return [f"Reaped {len(reaped)} ticket(s)", *(f"  {ticket}" for ticket in reaped)]

    def databases(self) -> list[str]:
        settings = _settings(None)
        entries = list_databases(settings.paths.databases_dir)
        if not entries:
            return [f"No databases found in {settings.paths.databases_dir}"]
        return [
            f"{entry.order:3d} {entry.name} {entry.version}" + (" (default)" if entry.default else "")
            for entry in entries
        ]


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


def _service(settings: Settings, repository: JobQueueRepository) -> JobService:
    return JobService(
        repository=repository,
        records=JobRecordStore(settings.paths.jobs_base),
        databases_dir=(
            settings.paths.databases_dir if settings.worker.validate_databases else None
        ),
    )


@contextmanager
def _repository(settings: Settings) -> Iterator[JobQueueRepository]:
    repository = JobQueueRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
