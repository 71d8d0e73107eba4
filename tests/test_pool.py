from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import allure
import pytest

from seqsearch.config import PathSettings, Settings, WorkerSettings
from seqsearch.jobs.models import JobRequest, JobStatus
from seqsearch.jobs.pool import build_worker, run_worker_pool
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.jobs.services import JobService

pytestmark = [
    allure.epic("Job Execution"),
    allure.feature("Worker Pool"),
]


def _settings(repository: JobQueueRepository, paths: PathSettings) -> Settings:
    return Settings(
        db_path=repository.db_path,
        paths=paths,
        worker=WorkerSettings(worker_id="pool", poll_interval_seconds=0.05, job_timeout_seconds=30),
    )


def test_pool_members_share_the_queue(
    repository: JobQueueRepository,
    records: JobRecordStore,
    make_pipeline: Callable[[str], Path],
    path_settings: Callable[[Path], PathSettings],
) -> None:
    paths = path_settings(make_pipeline("sleep 0.2\nexit 0"))
    service = JobService(repository=repository, records=records)
    tickets = [
        service.submit(JobRequest(query=">q\nMKV\n", databases=("uniref90",), mode="all"))
        for _ in range(6)
    ]

    failed = run_worker_pool(
        _settings(repository, paths),
        processes=3,
        max_idle_polls=5,
    )

    assert failed == 0
    assert repository.pending_count() == 0
    statuses = repository.get_statuses(tickets=tickets)
    assert set(statuses.values()) == {JobStatus.COMPLETED}
    started_events = [
        event
        for ticket in tickets
        for event in repository.list_events(ticket=ticket)
        if event.event_type == "started"
    ]
    assert len(started_events) == len(tickets)


def test_pool_requires_a_member(
    repository: JobQueueRepository,
    make_pipeline: Callable[[str], Path],
    path_settings: Callable[[Path], PathSettings],
) -> None:
    with pytest.raises(ValueError, match="at least one"):
        run_worker_pool(
            _settings(repository, path_settings(make_pipeline("exit 0"))),
            processes=0,
        )


def test_build_worker_wires_settings(
    repository: JobQueueRepository,
    make_pipeline: Callable[[str], Path],
    path_settings: Callable[[Path], PathSettings],
) -> None:
    settings = _settings(repository, path_settings(make_pipeline("exit 0")))

    worker = build_worker(settings, repository)

    assert worker.worker_id == "pool"
    assert worker.poll_interval_seconds == 0.05
    assert worker.runner.timeout_seconds == 30
    assert worker.records.jobs_base == settings.paths.jobs_base
