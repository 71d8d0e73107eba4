"""Domain models for the job queue and execution outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Durable ticket lifecycle states."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.ERROR}


class OutcomeKind(str, Enum):
    """Classified result of one pipeline execution."""

    SUCCESS = "success"
    LAUNCH_ERROR = "launch_error"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"


@dataclass(slots=True, frozen=True)
class JobRequest:
    """Submission payload handed over by the HTTP layer or CLI."""

    query: str
    databases: tuple[str, ...]
    mode: str
    email: str | None = None


@dataclass(slots=True, frozen=True)
class JobRecord:
    """Parameters persisted for a ticket at submission time."""

    query: str
    databases: tuple[str, ...]
    mode: str
    email: str | None = None

    @classmethod
    def from_request(cls, request: JobRequest) -> JobRecord:
        email = request.email.strip() if request.email else None
        return cls(
            query=request.query,
            databases=tuple(request.databases),
            mode=request.mode,
            email=email or None,
        )


@dataclass(slots=True)
class Outcome:
    """Execution outcome returned by the pipeline runner."""

    kind: OutcomeKind
    exit_code: int | None = None
    detail: str | None = None
    duration_seconds: float = 0.0

    @property
    def status(self) -> JobStatus:
        """Terminal status stored for this outcome."""

        if self.kind == OutcomeKind.SUCCESS:
            return JobStatus.COMPLETED
        return JobStatus.ERROR

    def to_event_details(self) -> dict[str, object]:
        return {
            "outcome": self.kind.value,
            "exit_code": self.exit_code,
            "detail": self.detail,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(slots=True)
class QueueEntryView:
    """Pending queue entry."""

    seq: int
    ticket: str
    ordering_key: float
    enqueued_at: datetime


@dataclass(slots=True)
class TicketStatusView:
    """Current status of one ticket."""

    ticket: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class JobEventView:
    """Status event entry for audit trail."""

    event_id: int
    ticket: str
    event_type: str
    status_from: JobStatus | None
    status_to: JobStatus | None
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    timeouts: int = 0
    skipped: int = 0
    idle_polls: int = 0

    def add(self, other: WorkerRunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.timeouts += other.timeouts
        self.skipped += other.skipped
        self.idle_polls += other.idle_polls
