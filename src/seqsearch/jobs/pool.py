"""Worker construction and the multi-process worker pool."""

from __future__ import annotations

import logging
import multiprocessing
import os
import signal
from dataclasses import replace

from seqsearch.config import Settings
from seqsearch.jobs.models import WorkerRunSummary
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.runner import PipelineRunner
from seqsearch.jobs.worker import JobWorker
from seqsearch.log import configure_logging
from seqsearch.notify import OutcomeNotifier, build_mailer

logger = logging.getLogger(__name__)


def build_worker(settings: Settings, repository: JobQueueRepository) -> JobWorker:
    """Wire a worker from settings around an open repository."""

    records = JobRecordStore(settings.paths.jobs_base)
    runner = PipelineRunner(
        repository=repository,
        records=records,
        paths=settings.paths,
        timeout_seconds=settings.worker.job_timeout_seconds,
        kill_grace_seconds=settings.worker.kill_grace_seconds,
        debug=settings.worker.debug,
    )
    notifier = OutcomeNotifier(
        mailer=build_mailer(settings.mail),
        sender=settings.mail.sender,
        templates=settings.mail.templates,
    )
    return JobWorker(
        repository=repository,
        records=records,
        runner=runner,
        notifier=notifier,
        worker_id=settings.worker.worker_id,
        poll_interval_seconds=settings.worker.poll_interval_seconds,
    )


def run_worker_process(
    settings: Settings,
    max_jobs: int | None = None,
    max_idle_polls: int | None = None,
) -> WorkerRunSummary:
    """Entry point of one pool member; the schema must already exist."""

    configure_logging(settings.log_level)
    repository = JobQueueRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        return build_worker(settings, repository).run_loop(
            max_jobs=max_jobs,
            max_idle_polls=max_idle_polls,
        )
    finally:
        repository.close()


def run_worker_pool(
    settings: Settings,
    *,
    processes: int,
    max_jobs: int | None = None,
    max_idle_polls: int | None = None,
) -> int:
    """Run independent worker processes until they exit; returns failed member count.

    SIGINT/SIGTERM are forwarded to every member as SIGTERM, which each worker
    treats as "stop after the current ticket".
    """

    if processes < 1:
        raise ValueError("Worker pool needs at least one process.")

    members: list[multiprocessing.Process] = []
    for index in range(processes):
        member_settings = replace(
            settings,
            worker=replace(settings.worker, worker_id=f"{settings.worker.worker_id}-{index}"),
        )
        process = multiprocessing.Process(
            target=run_worker_process,
            args=(member_settings, max_jobs, max_idle_polls),
            name=member_settings.worker.worker_id,
        )
        process.start()
        members.append(process)
        logger.info("Worker %s started (pid=%s)", process.name, process.pid)

    def _forward(signum: int, _: object | None) -> None:
        logger.info("Forwarding %s to %d worker(s)", signal.Signals(signum).name, len(members))
        for member in members:
            if member.is_alive() and member.pid is not None:
                try:
                    os.kill(member.pid, signal.SIGTERM)
                except ProcessLookupError:
                    continue

    original_sigint = signal.signal(signal.SIGINT, _forward)
    original_sigterm = signal.signal(signal.SIGTERM, _forward)
    try:
        for member in members:
            member.join()
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)

    failed = [member for member in members if member.exitcode != 0]
    for member in failed:
        logger.error("Worker %s exited with code %s", member.name, member.exitcode)
    return len(failed)
