from __future__ import annotations

import json
import re
from collections.abc import Callable
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from seqsearch.main import seqsearch

pytestmark = [
    allure.epic("Job Queue"),
    allure.feature("CLI Ops"),
]

TICKET_PATTERN = re.compile(r"Ticket: ([0-9a-f-]{36}) status=PENDING")


@pytest.fixture()
def cli_env(
    tmp_path: Path,
    jobs_base: Path,
    make_pipeline: Callable[[str], Path],
    monkeypatch: pytest.MonkeyPatch,
) -> Path:
    databases_dir = tmp_path / "databases"
    databases_dir.mkdir(exist_ok=True)
    (databases_dir / "uniref90.params").write_text(
        json.dumps({"display": {"name": "uniref90", "version": "2026_01", "default": True}}),
        encoding="utf-8",
    )
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("SEQSEARCH_DB_PATH", str(db_path))
    monkeypatch.setenv("SEQSEARCH_JOBS_BASE", str(jobs_base))
    monkeypatch.setenv("SEQSEARCH_DATABASES_DIR", str(databases_dir))
    monkeypatch.setenv("SEQSEARCH_SEARCH_PIPELINE", str(make_pipeline("exit 0")))
    monkeypatch.setenv("SEQSEARCH_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("SEQSEARCH_MAIL_TRANSPORT", "null")
    return db_path


def _submit(runner: CliRunner, *extra: str) -> str:
    result = runner.invoke(
        seqsearch,
        ["submit", "--query", ">q\nMKV\n", "--database", "uniref90", "--mode", "all", *extra],
    )
    assert result.exit_code == 0, result.output
    match = TICKET_PATTERN.search(result.output)
    assert match is not None, result.output
    return match.group(1)


def test_submit_worker_status_flow(cli_env: Path) -> None:
    runner = CliRunner()
    ticket = _submit(runner, "--email", "someone@example.org")

    queued = runner.invoke(seqsearch, ["queue"])
    assert queued.exit_code == 0, queued.output
    assert "Pending: 1" in queued.output
    assert ticket in queued.output

    worked = runner.invoke(seqsearch, ["worker", "--once"])
    assert worked.exit_code == 0, worked.output
    assert "processed=1 succeeded=1" in worked.output

    status = runner.invoke(seqsearch, ["status", ticket])
    assert status.exit_code == 0, status.output
    assert f"{ticket} COMPLETED" in status.output

    events = runner.invoke(seqsearch, ["events", ticket])
    assert events.exit_code == 0, events.output
    assert "submitted" in events.output
    assert "success" in events.output

    summary = runner.invoke(seqsearch, ["summary"])
    assert summary.exit_code == 0, summary.output
    assert re.search(r"COMPLETED\s*: 1", summary.output)

    listed = runner.invoke(seqsearch, ["tickets", "--status", "completed"])
    assert listed.exit_code == 0, listed.output
    assert ticket in listed.output


def test_submit_from_query_file(cli_env: Path, tmp_path: Path) -> None:
    query_file = tmp_path / "query.fasta"
    query_file.write_text(">q\nMKV\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        seqsearch,
        ["submit", "--query-file", str(query_file), "--database", "uniref90", "--mode", "all"],
    )

    assert result.exit_code == 0, result.output
    assert TICKET_PATTERN.search(result.output)


def test_submit_requires_exactly_one_query_source(cli_env: Path) -> None:
    result = CliRunner().invoke(seqsearch, ["submit", "--database", "uniref90", "--mode", "all"])

    assert result.exit_code != 0
    assert "--query" in result.output


def test_invalid_request_is_reported(cli_env: Path) -> None:
    result = CliRunner().invoke(
        seqsearch,
        ["submit", "--query", "  ", "--database", "uniref90", "--mode", "all"],
    )

    assert result.exit_code == 1
    assert "Query must not be empty" in result.output


def test_cancel_and_unknown_status(cli_env: Path) -> None:
    runner = CliRunner()
    ticket = _submit(runner)

    canceled = runner.invoke(seqsearch, ["cancel", ticket])
    assert canceled.exit_code == 0, canceled.output
    assert f"Canceled: {ticket}" in canceled.output

    again = runner.invoke(seqsearch, ["cancel", ticket])
    assert "nothing to cancel" in again.output

    unknown = "0f8fad5b-d9cb-469f-a165-70867728950e"
    status = runner.invoke(seqsearch, ["status", ticket, unknown])
    assert f"{ticket} ERROR" in status.output
    assert f"{unknown} UNKNOWN" in status.output


def test_malformed_ticket_is_rejected(cli_env: Path) -> None:
    result = CliRunner().invoke(seqsearch, ["status", "../secret"])

    assert result.exit_code == 1
    assert "Invalid ticket" in result.output


def test_reap_requires_threshold_above_job_timeout(cli_env: Path) -> None:
    runner = CliRunner()

    refused = runner.invoke(seqsearch, ["reap", "--older-than", "60"])
    assert refused.exit_code == 1
    assert "job timeout" in refused.output

    accepted = runner.invoke(seqsearch, ["reap", "--older-than", "7200"])
    assert accepted.exit_code == 0, accepted.output
    assert "Reaped 0 ticket(s)" in accepted.output


def test_databases_lists_catalog(cli_env: Path) -> None:
    result = CliRunner().invoke(seqsearch, ["databases"])

    assert result.exit_code == 0, result.output
    assert "uniref90 2026_01 (default)" in result.output


def test_unknown_log_level_is_rejected(cli_env: Path) -> None:
    result = CliRunner().invoke(seqsearch, ["--log-level", "chatty", "summary"])

    assert result.exit_code == 2
    assert "Unknown log level" in result.output
