"""Runtime configuration for the job queue, worker, and notifications."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_MAIL_TRANSPORTS: tuple[str, ...] = ("null", "smtp")


@dataclass(slots=True)
class PathSettings:
    """Filesystem locations shared by submitters and workers."""

    jobs_base: Path = Path("jobs")
    databases_dir: Path = Path("databases")
    search_pipeline: Path = Path("run_job.sh")
    mmseqs: Path = Path("mmseqs")


@dataclass(slots=True)
class WorkerSettings:
    """Worker loop and pipeline execution settings."""

    worker_id: str = "worker"
    poll_interval_seconds: float = 0.1
    job_timeout_seconds: float = 3_600.0
    kill_grace_seconds: float = 5.0
    debug: bool = False
    validate_databases: bool = False


@dataclass(slots=True)
class NotificationTemplates:
    """Outcome-specific subject/body templates, formatted with ``{ticket}``."""

    error_subject: str = "Error -- {ticket}"
    error_body: str = "{ticket}"
    timeout_subject: str = "Timeout -- {ticket}"
    timeout_body: str = "{ticket}"
    success_subject: str = "Done -- {ticket}"
    success_body: str = "{ticket}"


@dataclass(slots=True)
class MailSettings:
    """Mail transport settings."""

    transport: str = "null"
    sender: str = "seqsearch@localhost"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_starttls: bool = True
    smtp_timeout_seconds: float = 30.0
    templates: NotificationTemplates = field(default_factory=NotificationTemplates)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern, built once per process."""

    db_path: Path = Path(".seqsearch.db")
    sqlite_busy_timeout_ms: int = 5_000
    log_level: str = "INFO"
    paths: PathSettings = field(default_factory=PathSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    mail: MailSettings = field(default_factory=MailSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("SEQSEARCH_DB_PATH", ".seqsearch.db")),
            sqlite_busy_timeout_ms=int(os.getenv("SEQSEARCH_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            log_level=os.getenv("SEQSEARCH_LOG_LEVEL", "INFO"),
            paths=PathSettings(
                jobs_base=Path(os.getenv("SEQSEARCH_JOBS_BASE", "jobs")),
                databases_dir=Path(os.getenv("SEQSEARCH_DATABASES_DIR", "databases")),
                search_pipeline=Path(os.getenv("SEQSEARCH_SEARCH_PIPELINE", "run_job.sh")),
                mmseqs=Path(os.getenv("SEQSEARCH_MMSEQS", "mmseqs")),
            ),
            worker=WorkerSettings(
                worker_id=os.getenv("SEQSEARCH_WORKER_ID", _default_worker_id()),
                poll_interval_seconds=float(
                    os.getenv("SEQSEARCH_POLL_INTERVAL_SECONDS", "0.1"),
                ),
                job_timeout_seconds=float(os.getenv("SEQSEARCH_JOB_TIMEOUT_SECONDS", "3600")),
                kill_grace_seconds=float(os.getenv("SEQSEARCH_KILL_GRACE_SECONDS", "5")),
                debug=_env_bool("SEQSEARCH_DEBUG", default=False),
                validate_databases=_env_bool("SEQSEARCH_VALIDATE_DATABASES", default=False),
            ),
            mail=MailSettings(
                transport=os.getenv("SEQSEARCH_MAIL_TRANSPORT", "null").strip().lower(),
                sender=os.getenv("SEQSEARCH_MAIL_SENDER", "seqsearch@localhost"),
                smtp_host=os.getenv("SEQSEARCH_SMTP_HOST", "localhost"),
                smtp_port=int(os.getenv("SEQSEARCH_SMTP_PORT", "587")),
                smtp_user=os.getenv("SEQSEARCH_SMTP_USER") or None,
                smtp_password=os.getenv("SEQSEARCH_SMTP_PASSWORD") or None,
                smtp_starttls=_env_bool("SEQSEARCH_SMTP_STARTTLS", default=True),
                smtp_timeout_seconds=float(os.getenv("SEQSEARCH_SMTP_TIMEOUT_SECONDS", "30")),
                templates=NotificationTemplates(
                    error_subject=os.getenv("SEQSEARCH_MAIL_ERROR_SUBJECT", "Error -- {ticket}"),
                    error_body=os.getenv("SEQSEARCH_MAIL_ERROR_TEMPLATE", "{ticket}"),
                    timeout_subject=os.getenv(
                        "SEQSEARCH_MAIL_TIMEOUT_SUBJECT",
                        "Timeout -- {ticket}",
                    ),
                    timeout_body=os.getenv("SEQSEARCH_MAIL_TIMEOUT_TEMPLATE", "{ticket}"),
                    success_subject=os.getenv(
                        "SEQSEARCH_MAIL_SUCCESS_SUBJECT",
                        "Done -- {ticket}",
                    ),
                    success_body=os.getenv("SEQSEARCH_MAIL_SUCCESS_TEMPLATE", "{ticket}"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values no component can work with."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("SEQSEARCH_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.worker.poll_interval_seconds < 0:
            raise ValueError("SEQSEARCH_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.worker.job_timeout_seconds <= 0:
            raise ValueError("SEQSEARCH_JOB_TIMEOUT_SECONDS must be > 0.")
        if self.worker.kill_grace_seconds < 0:
            raise ValueError("SEQSEARCH_KILL_GRACE_SECONDS must be >= 0.")
        if self.mail.transport not in SUPPORTED_MAIL_TRANSPORTS:
            raise ValueError(
                f"Unsupported SEQSEARCH_MAIL_TRANSPORT: {self.mail.transport!r}. "
                f"Expected one of: {', '.join(SUPPORTED_MAIL_TRANSPORTS)}.",
            )
        templates = self.mail.templates
        for name in (
            "error_subject",
            "error_body",
            "timeout_subject",
            "timeout_body",
            "success_subject",
            "success_body",
        ):
            _validate_template(name, getattr(templates, name))

    def validate_paths(self) -> None:
        """Raise configuration error if required filesystem paths are missing."""

        for label, path in (
            ("SEQSEARCH_DATABASES_DIR", self.paths.databases_dir),
            ("SEQSEARCH_JOBS_BASE", self.paths.jobs_base),
            ("SEQSEARCH_SEARCH_PIPELINE", self.paths.search_pipeline),
        ):
            if not path.exists():
                raise ValueError(f"{label} path does not exist: {path}")


def _validate_template(name: str, template: str) -> None:
    try:
        template.format(ticket="ticket")
    except (KeyError, IndexError, ValueError) as error:
        raise ValueError(
            f"Invalid mail template {name}: {template!r}. Only {{ticket}} is supported.",
        ) from error


def _default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
