"""Queue worker that claims tickets and drives the search pipeline."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from seqsearch.jobs.errors import JobRecordError, QueueUnavailableError
from seqsearch.jobs.models import JobStatus, OutcomeKind, WorkerRunSummary
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.runner import PipelineRunner
from seqsearch.jobs.tickets import is_valid_ticket
from seqsearch.notify import OutcomeNotifier

logger = logging.getLogger(__name__)


class JobWorker:
    """Consumes queued tickets one at a time.

    Several workers may share one database; the atomic claim is their only
    coordination. Nothing that goes wrong with a single ticket stops the loop.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: JobQueueRepository,
        records: JobRecordStore,
        runner: PipelineRunner,
        notifier: OutcomeNotifier,
        worker_id: str,
        poll_interval_seconds: float = 0.1,
    ) -> None:
        self.repository = repository
        self.records = records
        self.runner = runner
        self.notifier = notifier
        self.worker_id = worker_id
        self.poll_interval_seconds = poll_interval_seconds
        self._stop = threading.Event()
        self._current_ticket: str | None = None

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self, *, reason: str = "requested") -> None:
        """Stop after the current ticket finishes."""

        if not self._stop.is_set():
            logger.info(
                "[%s] Stop %s, current ticket=%s",
                self.worker_id,
                reason,
                self._current_ticket or "-",
            )
        self._stop.set()

    def run_once(self) -> WorkerRunSummary:
        """Claim and process at most one ticket."""

        summary = WorkerRunSummary()
        if self._stop.is_set():
            summary.idle_polls = 1
            return summary

        try:
            ticket = self.repository.claim_next()
        except QueueUnavailableError as error:
            logger.warning("[%s] Queue unavailable, backing off: %s", self.worker_id, error)
            summary.idle_polls = 1
            return summary

        if ticket is None:
            summary.idle_polls = 1
            return summary

        if not is_valid_ticket(ticket):
            logger.error("[%s] Skipping malformed queue entry %r", self.worker_id, ticket)
            summary.skipped = 1
            return summary

        summary.processed = 1
        self._current_ticket = ticket
        try:
            self._process_ticket(ticket=ticket, summary=summary)
        except Exception:  # noqa: BLE001
            logger.exception("[%s] Unexpected error while processing %s", self.worker_id, ticket)
            summary.failed = 1
            self._mark_error(ticket=ticket)
        finally:
            self._current_ticket = None
        return summary

    def run_loop(
        self,
        *,
        max_jobs: int | None = None,
        max_idle_polls: int | None = None,
    ) -> WorkerRunSummary:
        """Run until stopped, max_jobs processed, or max_idle_polls empty polls in a row.

        Args:
            max_jobs: Stop after processing this many tickets (None = unlimited).
            max_idle_polls: Consecutive empty polls before exiting (None = never).
        """

        aggregate = WorkerRunSummary()
        consecutive_idle = 0
        logger.info("[%s] Worker started", self.worker_id)
        with self._signal_handlers():
            while not self._stop.is_set():
                if max_jobs is not None and aggregate.processed >= max_jobs:
                    break

                summary = self.run_once()
                aggregate.add(summary)

                if summary.idle_polls:
                    consecutive_idle += 1
                    if max_idle_polls is not None and consecutive_idle >= max_idle_polls:
                        break
                    self._stop.wait(self.poll_interval_seconds)
                    continue
                consecutive_idle = 0
        logger.info("[%s] Worker stopped", self.worker_id)
        return aggregate

    def _process_ticket(self, *, ticket: str, summary: WorkerRunSummary) -> None:
        try:
            record = self.records.read(ticket)
        except JobRecordError as error:
            logger.error("[%s] Cannot load job record for %s: %s", self.worker_id, ticket, error)
            marked = self.repository.transition_status(
                ticket=ticket,
                from_status=JobStatus.PENDING,
                to_status=JobStatus.ERROR,
                event_type="record_unreadable",
                details={"error": str(error), "worker_id": self.worker_id},
            )
            if marked:
                summary.failed = 1
            else:
                _count_as_skipped(summary)
            return

        logger.info("[%s] Processing %s", self.worker_id, ticket)
        outcome = self.runner.run(record, ticket)
        if outcome is None:
            logger.warning("[%s] Skipping duplicate queue entry for %s", self.worker_id, ticket)
            _count_as_skipped(summary)
            return

        if outcome.kind == OutcomeKind.SUCCESS:
            summary.succeeded = 1
        else:
            summary.failed = 1
            if outcome.kind == OutcomeKind.TIMEOUT:
                summary.timeouts = 1

        self.notifier.notify(ticket=ticket, email=record.email, outcome=outcome)

    def _mark_error(self, *, ticket: str) -> None:
        for from_status in (JobStatus.RUNNING, JobStatus.PENDING):
            try:
                moved = self.repository.transition_status(
                    ticket=ticket,
                    from_status=from_status,
                    to_status=JobStatus.ERROR,
                    event_type="worker_error",
                    details={"worker_id": self.worker_id},
                )
            except Exception:  # noqa: BLE001
                logger.exception("[%s] Could not mark %s as ERROR", self.worker_id, ticket)
                return
            if moved:
                return

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        def _handler(signum: int, _: object | None) -> None:
            self.request_stop(reason=f"on {signal.Signals(signum).name}")

        previous: dict[signal.Signals, object] = {}
        try:
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous[signum] = signal.signal(signum, _handler)
        except ValueError:
            # Only the main thread may install handlers; request_stop() still works.
            logger.debug("[%s] Running without signal handlers", self.worker_id)
        try:
            yield
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)


def _count_as_skipped(summary: WorkerRunSummary) -> None:
    summary.processed = 0
    summary.skipped = 1
