"""File-backed job records, one ``job.json`` per ticket directory."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from seqsearch.jobs.errors import JobRecordError
from seqsearch.jobs.models import JobRecord
from seqsearch.jobs.tickets import require_valid_ticket

JOB_RECORD_FILENAME = "job.json"


class JobRecordStore:
    """Reads and writes job records below the jobs base directory."""

    def __init__(self, jobs_base: Path) -> None:
        self.jobs_base = jobs_base

    def job_dir(self, ticket: str) -> Path:
        """Directory owned by one ticket; the ticket is validated first."""

        return self.jobs_base / require_valid_ticket(ticket)

    def record_path(self, ticket: str) -> Path:
        return self.job_dir(ticket) / JOB_RECORD_FILENAME

    def write(self, ticket: str, record: JobRecord) -> Path:
        """Persist the record atomically and durably, returning its path."""

        path = self.record_path(ticket)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = encode_record(record)
        fd, tmp_name = tempfile.mkstemp(prefix=".job-", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path

    def read(self, ticket: str) -> JobRecord:
        """Load and validate the record; raises JobRecordError when unusable."""

        return decode_record(self.read_bytes(ticket))

    def read_bytes(self, ticket: str) -> bytes:
        path = self.record_path(ticket)
        try:
            return path.read_bytes()
        except FileNotFoundError as error:
            raise JobRecordError(f"Job record not found: {path}") from error
        except OSError as error:
            raise JobRecordError(f"Job record unreadable: {path}: {error}") from error


def encode_record(record: JobRecord) -> bytes:
    """Serialize a record using deterministic formatting."""

    payload: dict[str, Any] = {
        "query": record.query,
        "databases": list(record.databases),
        "mode": record.mode,
        "email": record.email,
    }
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True).encode("utf-8")


def decode_record(raw: bytes) -> JobRecord:
    """Deserialize and validate a job record."""

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise JobRecordError(f"Job record is not valid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise JobRecordError("Job record must be a JSON object")

    query = payload.get("query")
    databases = payload.get("databases")
    mode = payload.get("mode")
    email = payload.get("email")
    if not isinstance(query, str):
        raise JobRecordError("job.query must be a string")
    if (
        not isinstance(databases, list)
        or not databases
        or not all(isinstance(name, str) and name for name in databases)
    ):
        raise JobRecordError("job.databases must be a non-empty list of names")
    if not isinstance(mode, str) or not mode:
        raise JobRecordError("job.mode must be a non-empty string")
    if email is not None and not isinstance(email, str):
        raise JobRecordError("job.email must be a string or null")
    return JobRecord(query=query, databases=tuple(databases), mode=mode, email=email or None)
