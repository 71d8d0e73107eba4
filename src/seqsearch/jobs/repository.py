"""Persistent pending queue and ticket status store."""

from __future__ import annotations

import json
import time
from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from seqsearch.jobs.errors import QueueUnavailableError
from seqsearch.jobs.models import (
    JobEventView,
    JobStatus,
    QueueEntryView,
    TicketStatusView,
)
from seqsearch.jobs.tickets import require_valid_ticket
from seqsearch.storage.alembic_runner import upgrade_head
from seqsearch.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from seqsearch.storage.sqlmodel_models import JobEvent, JobStatusRow, PendingJob


class JobQueueRepository:
    """Queue and status persistence facade backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    def enqueue(self, *, ticket: str, ordering_key: float | None = None) -> QueueEntryView:
        """Append a queue entry; duplicate tickets produce duplicate entries."""

        require_valid_ticket(ticket)
        now = utc_now()
        row = PendingJob(
            ticket=ticket,
            ordering_key=time.time() if ordering_key is None else ordering_key,
            enqueued_at=to_db_datetime(now),
        )
        try:
            with Session(self.engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_queue_entry_view(row)
        except SQLAlchemyError as error:
            raise QueueUnavailableError(f"Enqueue failed for {ticket}: {error}") from error

    def claim_next(self) -> str | None:
        """Atomically remove and return the ticket with the smallest ordering key.

        The select and the delete are one ``DELETE ... RETURNING`` statement, so
        SQLite's write lock covers both and no two callers can receive the same
        entry.
        """

        next_seq = (
            sa_select(PendingJob.seq)
            .order_by(col(PendingJob.ordering_key).asc(), col(PendingJob.seq).asc())
            .limit(1)
            .scalar_subquery()
        )
        statement = (
            sa_delete(PendingJob)
            .where(col(PendingJob.seq) == next_seq)
            .returning(PendingJob.ticket)
        )
        try:
            with Session(self.engine) as session:
                ticket = session.execute(statement).scalar_one_or_none()
                session.commit()
        except SQLAlchemyError as error:
            raise QueueUnavailableError(f"Claim failed: {error}") from error
        return ticket

    def remove_pending(self, *, ticket: str) -> int:
        """Drop every queued entry for a ticket and return how many were removed."""

        require_valid_ticket(ticket)
        statement = (
            sa_delete(PendingJob)
            .where(col(PendingJob.ticket) == ticket)
            .returning(PendingJob.seq)
        )
        try:
            with Session(self.engine) as session:
                removed = session.execute(statement).scalars().all()
                session.commit()
        except SQLAlchemyError as error:
            raise QueueUnavailableError(f"Remove failed for {ticket}: {error}") from error
        return len(removed)

    def list_pending(self, *, limit: int = 50) -> list[QueueEntryView]:
        """List queued entries in claim order."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(PendingJob)
                .order_by(col(PendingJob.ordering_key).asc(), col(PendingJob.seq).asc())
                .limit(limit),
            ).all()
        return [_to_queue_entry_view(row) for row in rows]

    def pending_count(self) -> int:
        with Session(self.engine) as session:
            return int(session.exec(select(func.count()).select_from(PendingJob)).one())

    def set_status(
        self,
        *,
        ticket: str,
        status: JobStatus,
        event_type: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Overwrite the ticket status and record one audit event."""

        require_valid_ticket(ticket)
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            previous = session.exec(
                select(JobStatusRow.status).where(JobStatusRow.ticket == ticket),
            ).one_or_none()
            session.execute(
                sqlite_insert(JobStatusRow)
                .values(ticket=ticket, status=status.value, created_at=now, updated_at=now)
                .on_conflict_do_update(
                    index_elements=["ticket"],
                    set_={"status": status.value, "updated_at": now},
                ),
            )
            self._add_event(
                session=session,
                ticket=ticket,
                event_type=event_type or status.value.lower(),
                status_from=JobStatus(previous) if previous is not None else None,
                status_to=status,
                details=details or {},
            )
            session.commit()

    def transition_status(
        self,
        *,
        ticket: str,
        from_status: JobStatus,
        to_status: JobStatus,
        event_type: str,
        details: dict[str, object] | None = None,
    ) -> bool:
        """Move a ticket to to_status only if it is still in from_status."""

        require_valid_ticket(ticket)
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            result = session.execute(
                sa_update(JobStatusRow)
                .where(
                    col(JobStatusRow.ticket) == ticket,
                    col(JobStatusRow.status) == from_status.value,
                )
                .values(status=to_status.value, updated_at=now),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            self._add_event(
                session=session,
                ticket=ticket,
                event_type=event_type,
                status_from=from_status,
                status_to=to_status,
                details=details or {},
            )
            session.commit()
            return True

    def get_status(self, *, ticket: str) -> JobStatus | None:
        """Return the current status or None when the ticket is unknown."""

        require_valid_ticket(ticket)
        with Session(self.engine) as session:
            value = session.exec(
                select(JobStatusRow.status).where(JobStatusRow.ticket == ticket),
            ).one_or_none()
        return JobStatus(value) if value is not None else None

    def get_statuses(self, *, tickets: Iterable[str]) -> dict[str, JobStatus | None]:
        """Batch status lookup preserving input order."""

        wanted = [require_valid_ticket(ticket) for ticket in tickets]
        if not wanted:
            return {}
        with Session(self.engine) as session:
            rows = session.exec(
                select(JobStatusRow.ticket, JobStatusRow.status).where(
                    col(JobStatusRow.ticket).in_(wanted),
                ),
            ).all()
        found = {ticket: JobStatus(status) for ticket, status in rows}
        return {ticket: found.get(ticket) for ticket in wanted}

    def list_statuses(
        self,
        *,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[TicketStatusView]:
        """List recently updated tickets, optionally filtered by status."""

        with Session(self.engine) as session:
            statement = (
                select(JobStatusRow).order_by(col(JobStatusRow.updated_at).desc()).limit(limit)
            )
            if status is not None:
                statement = statement.where(JobStatusRow.status == status.value)
            rows = session.exec(statement).all()
        return [_to_ticket_status_view(row) for row in rows]

    def list_stale_running(self, *, older_than: timedelta) -> list[str]:
        """Tickets that have been RUNNING without update for longer than older_than."""

        cutoff = to_db_datetime(utc_now() - older_than)
        with Session(self.engine) as session:
            rows = session.exec(
                select(JobStatusRow.ticket).where(
                    JobStatusRow.status == JobStatus.RUNNING.value,
                    col(JobStatusRow.updated_at) < cutoff,
                ),
            ).all()
        return list(rows)

    def summary(self) -> dict[JobStatus, int]:
        """Ticket counts per status."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(JobStatusRow.status, func.count()).group_by(JobStatusRow.status),
            ).all()
        counts = {status: 0 for status in JobStatus}
        for status, count in rows:
            counts[JobStatus(status)] = int(count)
        return counts

    def list_events(self, *, ticket: str) -> list[JobEventView]:
        """Return the status event stream for a ticket, oldest first."""

        require_valid_ticket(ticket)
        with Session(self.engine) as session:
            rows = session.exec(
                select(JobEvent)
                .where(JobEvent.ticket == ticket)
                .order_by(col(JobEvent.created_at).asc(), col(JobEvent.id).asc()),
            ).all()

        events: list[JobEventView] = []
        for row in rows:
            details = {}
            if row.details_json:
                parsed = json.loads(row.details_json)
                if isinstance(parsed, dict):
                    details = parsed
            events.append(
                JobEventView(
                    event_id=row.id or 0,
                    ticket=row.ticket,
                    event_type=row.event_type,
                    status_from=JobStatus(row.status_from) if row.status_from else None,
                    status_to=JobStatus(row.status_to) if row.status_to else None,
                    created_at=to_utc_aware_datetime(row.created_at),
                    details=details,
                ),
            )
        return events

    def _add_event(  # noqa: PLR0913
        self,
        *,
        session: Session,
        ticket: str,
        event_type: str,
        status_from: JobStatus | None,
        status_to: JobStatus | None,
        details: dict[str, object],
    ) -> None:
        session.add(
            JobEvent(
                ticket=ticket,
                event_type=event_type,
                status_from=status_from.value if status_from is not None else None,
                status_to=status_to.value if status_to is not None else None,
                details_json=json.dumps(details, ensure_ascii=False, sort_keys=True)
                if details
                else None,
                created_at=to_db_datetime(utc_now()),
            ),
        )


def _to_queue_entry_view(row: PendingJob) -> QueueEntryView:
    return QueueEntryView(
        seq=row.seq or 0,
        ticket=row.ticket,
        ordering_key=row.ordering_key,
        enqueued_at=to_utc_aware_datetime(row.enqueued_at),
    )


def _to_ticket_status_view(row: JobStatusRow) -> TicketStatusView:
    return TicketStatusView(
        ticket=row.ticket,
        status=JobStatus(row.status),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
