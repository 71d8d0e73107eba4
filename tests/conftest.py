"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from seqsearch.config import PathSettings
from seqsearch.jobs.records import JobRecordStore
from seqsearch.jobs.repository import JobQueueRepository
from seqsearch.notify.base import Mail


# argv: <mmseqs> <jobs_base> <ticket> <databases_dir> <databases> <mode>
PIPELINE_PREAMBLE = """#!/bin/sh
mkdir -p "$2/$3"
printf '%s\\n' "$@" > "$2/$3/args.txt"
"""


class RecordingMailer:
    """Mail transport that keeps sent messages in memory."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[Mail] = []
        self.fail = fail

    def send(self, mail: Mail) -> None:
        if self.fail:
            raise RuntimeError("relay down")
        self.sent.append(mail)


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[JobQueueRepository]:
    repo = JobQueueRepository(tmp_path / "queue.db")
    repo.init_schema()
    yield repo
    repo.close()


@pytest.fixture()
def jobs_base(tmp_path: Path) -> Path:
    path = tmp_path / "jobs"
    path.mkdir()
    return path


@pytest.fixture()
def records(jobs_base: Path) -> JobRecordStore:
    return JobRecordStore(jobs_base)


@pytest.fixture()
def make_pipeline(tmp_path: Path) -> Callable[[str], Path]:
    """Write an executable fake search pipeline with the given shell body.

    The script records its positional arguments into ``args.txt`` in the
    ticket directory before running the body.
    """

    def _make(body: str) -> Path:
        script = tmp_path / "run_job.sh"
        script.write_text(PIPELINE_PREAMBLE + body + "\n", encoding="utf-8")
        script.chmod(0o755)
        return script

    return _make


@pytest.fixture()
def path_settings(tmp_path: Path, jobs_base: Path) -> Callable[[Path], PathSettings]:
    databases_dir = tmp_path / "databases"
    databases_dir.mkdir()

    def _build(search_pipeline: Path) -> PathSettings:
        return PathSettings(
            jobs_base=jobs_base,
            databases_dir=databases_dir,
            search_pipeline=search_pipeline,
            mmseqs=Path("/opt/mmseqs/bin/mmseqs"),
        )

    return _build


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()
