"""Subprocess runner for the external search pipeline."""

from __future__ import annotations

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from typing import IO

from seqsearch.config import PathSettings
from seqsearch.jobs.models import JobRecord, JobStatus, Outcome, OutcomeKind
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.tickets import require_valid_ticket

logger = logging.getLogger(__name__)

PIPELINE_STDOUT_FILENAME = "pipeline_stdout.log"
PIPELINE_STDERR_FILENAME = "pipeline_stderr.log"


class PipelineRunner:
    """Launch the search pipeline for one ticket and classify how it ended."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: JobQueueRepository,
        records: JobRecordStore,
        paths: PathSettings,
        timeout_seconds: float = 3_600.0,
        kill_grace_seconds: float = 5.0,
        debug: bool = False,
    ) -> None:
        self.repository = repository
        self.records = records
        self.paths = paths
        self.timeout_seconds = timeout_seconds
        self.kill_grace_seconds = kill_grace_seconds
        self.debug = debug

    def build_args(self, record: JobRecord, ticket: str) -> list[str]:
        """Positional pipeline invocation for one ticket."""

        return [
            str(self.paths.search_pipeline),
            str(self.paths.mmseqs),
            str(self.paths.jobs_base),
            require_valid_ticket(ticket),
            str(self.paths.databases_dir),
            " ".join(record.databases),
            record.mode,
        ]

    def run(self, record: JobRecord, ticket: str) -> Outcome | None:
        """Execute the pipeline for a PENDING ticket.

        Returns None without launching anything when the ticket is no longer
        PENDING, which is the case for a duplicate queue entry of a ticket that
        already ran. The terminal status is only written while the ticket is
        still RUNNING.
        """

        run_args = self.build_args(record, ticket)
        claimed = self.repository.transition_status(
            ticket=ticket,
            from_status=JobStatus.PENDING,
            to_status=JobStatus.RUNNING,
            event_type="started",
            details={"timeout_seconds": self.timeout_seconds},
        )
        if not claimed:
            logger.warning("Ticket %s is not PENDING, not running the pipeline", ticket)
            return None

        outcome = self._execute(run_args=run_args, ticket=ticket)
        finished = self.repository.transition_status(
            ticket=ticket,
            from_status=JobStatus.RUNNING,
            to_status=outcome.status,
            event_type=outcome.kind.value,
            details=outcome.to_event_details(),
        )
        if not finished:
            logger.warning(
                "Ticket %s left RUNNING while the pipeline ran; keeping %s",
                ticket,
                self.repository.get_status(ticket=ticket),
            )
        return outcome

    def _execute(self, *, run_args: list[str], ticket: str) -> Outcome:
        started = time.monotonic()
        try:
            with self._output_streams(ticket) as (stdout_handle, stderr_handle):
                process = subprocess.Popen(  # noqa: S603
                    run_args,
                    stdout=stdout_handle,
                    stderr=stderr_handle,
                    start_new_session=True,
                )
        except OSError as error:
            logger.error("Pipeline for %s failed to start: %s", ticket, error)
            return Outcome(
                kind=OutcomeKind.LAUNCH_ERROR,
                detail=f"Pipeline failed to start: {error}",
                duration_seconds=time.monotonic() - started,
            )

        logger.info("Pipeline for %s started (pid=%s)", ticket, process.pid)
        exit_codes: queue.Queue[int] = queue.Queue(maxsize=1)
        waiter = threading.Thread(
            target=lambda: exit_codes.put(process.wait()),
            name=f"pipeline-wait-{process.pid}",
            daemon=True,
        )
        waiter.start()

        try:
            exit_code = exit_codes.get(timeout=self.timeout_seconds)
        except queue.Empty:
            _kill_process_group(process)
            try:
                exit_codes.get(timeout=self.kill_grace_seconds)
            except queue.Empty:
                logger.warning("Pipeline pid=%s did not exit after kill", process.pid)
            logger.warning(
                "Pipeline for %s timed out after %.0f seconds",
                ticket,
                self.timeout_seconds,
            )
            return Outcome(
                kind=OutcomeKind.TIMEOUT,
                detail=f"Timed out after {self.timeout_seconds:g} seconds",
                duration_seconds=time.monotonic() - started,
            )

        duration = time.monotonic() - started
        if exit_code == 0:
            logger.info("Pipeline for %s finished in %.1fs", ticket, duration)
            return Outcome(kind=OutcomeKind.SUCCESS, exit_code=0, duration_seconds=duration)

        logger.error("Pipeline for %s exited with code %s", ticket, exit_code)
        return Outcome(
            kind=OutcomeKind.RUNTIME_ERROR,
            exit_code=exit_code,
            detail=f"Pipeline exited with code {exit_code}",
            duration_seconds=duration,
        )

    @contextmanager
    def _output_streams(self, ticket: str) -> Iterator[tuple[IO[bytes] | None, IO[bytes] | None]]:
        if self.debug:
            yield None, None
            return

        job_dir = self.records.job_dir(ticket)
        job_dir.mkdir(parents=True, exist_ok=True)
        with ExitStack() as stack:
            stdout_handle = stack.enter_context((job_dir / PIPELINE_STDOUT_FILENAME).open("wb"))
            stderr_handle = stack.enter_context((job_dir / PIPELINE_STDERR_FILENAME).open("wb"))
            yield stdout_handle, stderr_handle


def _kill_process_group(process: subprocess.Popen[bytes]) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except OSError as error:
        logger.warning("Failed to kill pipeline pid=%s: %s", process.pid, error)
