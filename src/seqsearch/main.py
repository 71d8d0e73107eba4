"""CLI entrypoint for seqsearch."""

from collections.abc import Callable
from pathlib import Path

import rich_click as click

from seqsearch import __version__
from seqsearch.catalog import CatalogError
from seqsearch.jobs.controllers import (
    JobCliController,
    ListCommand,
    ReapCommand,
    StatusCommand,
    SubmitCommand,
    TicketCommand,
    WorkerCommand,
)
from seqsearch.jobs.errors import JobQueueError
from seqsearch.log import configure_logging

click.rich_click.USE_MARKDOWN = True
JOB_CONTROLLER = JobCliController()
STATUS_CHOICES = ["pending", "running", "completed", "error"]


@click.group()
@click.version_option(version=__version__, prog_name="seqsearch")
@click.option(
    "--log-level",
    envvar="SEQSEARCH_LOG_LEVEL",
    default="INFO",
    show_default=True,
    help="Logging level for all components.",
)
def seqsearch(log_level: str) -> None:
    """Sequence search job queue CLI."""

    try:
        configure_logging(log_level)
    except ValueError as error:
        raise click.BadParameter(str(error), param_hint="--log-level") from error


@seqsearch.command("submit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--query", default=None, help="Query sequence(s), typically FASTA text.")
@click.option(
    "--query-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the query from a file instead of --query.",
)
@click.option(
    "--database",
    "databases",
    multiple=True,
    required=True,
    help="Target database name. Can be repeated.",
)
@click.option("--mode", required=True, help="Pipeline search mode.")
@click.option("--email", default=None, help="Notify this address when the job finishes.")
def submit(  # noqa: PLR0913
    db_path: Path | None,
    query: str | None,
    query_file: Path | None,
    databases: tuple[str, ...],
    mode: str,
    email: str | None,
) -> None:
    """Submit a search job and print its ticket."""

    if (query is None) == (query_file is None):
        raise click.UsageError("Provide exactly one of --query or --query-file.")
    if query_file is not None:
        query = query_file.read_text(encoding="utf-8")
    _run(
        lambda: JOB_CONTROLLER.submit(
            SubmitCommand(
                db_path=db_path,
                query=query,
                databases=databases,
                mode=mode,
                email=email,
            ),
        ),
    )


@seqsearch.command("status")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("tickets", nargs=-1, required=True)
def status(db_path: Path | None, tickets: tuple[str, ...]) -> None:
    """Show the status of one or more tickets."""

    _run(lambda: JOB_CONTROLLER.status(StatusCommand(db_path=db_path, tickets=tickets)))


@seqsearch.command("cancel")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("ticket")
def cancel(db_path: Path | None, ticket: str) -> None:
    """Withdraw a ticket that has not been claimed yet."""

    _run(lambda: JOB_CONTROLLER.cancel(TicketCommand(db_path=db_path, ticket=ticket)))


@seqsearch.command("events")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("ticket")
def events(db_path: Path | None, ticket: str) -> None:
    """Show the status history of a ticket."""

    _run(lambda: JOB_CONTROLLER.events(TicketCommand(db_path=db_path, ticket=ticket)))


@seqsearch.command("queue")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max queue entries to display.",
)
def queue(db_path: Path | None, limit: int) -> None:
    """List queued tickets in claim order."""

    _run(
        lambda: JOB_CONTROLLER.queue(ListCommand(db_path=db_path, status=None, limit=limit)),
    )


@seqsearch.command("tickets")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice(STATUS_CHOICES, case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max tickets to display.",
)
def tickets(db_path: Path | None, status: str | None, limit: int) -> None:
    """List tickets by most recent status change."""

    _run(
        lambda: JOB_CONTROLLER.tickets(ListCommand(db_path=db_path, status=status, limit=limit)),
    )


@seqsearch.command("summary")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def summary(db_path: Path | None) -> None:
    """Show ticket counts per status."""

    _run(lambda: JOB_CONTROLLER.summary(db_path))


@seqsearch.command("worker")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--once", is_flag=True, default=False, help="Process at most one ticket.")
@click.option(
    "--max-jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after processing this many tickets (per process).",
)
@click.option(
    "--max-idle-polls",
    type=click.IntRange(min=1),
    default=None,
    help="Exit after this many consecutive empty polls.",
)
@click.option(
    "--processes",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of independent worker processes.",
)
def worker(
    db_path: Path | None,
    once: bool,
    max_jobs: int | None,
    max_idle_polls: int | None,
    processes: int,
) -> None:
    """Run the queue worker."""

    _run(
        lambda: JOB_CONTROLLER.run_worker(
            WorkerCommand(
                db_path=db_path,
                once=once,
                max_jobs=max_jobs,
                max_idle_polls=max_idle_polls,
                processes=processes,
            ),
        ),
    )


@seqsearch.command("reap")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--older-than",
    "older_than_seconds",
    type=click.IntRange(min=1),
    required=True,
    help="Seconds a ticket must have been RUNNING before it is marked ERROR.",
)
def reap(db_path: Path | None, older_than_seconds: int) -> None:
    """Mark tickets abandoned by crashed workers as ERROR."""

    _run(
        lambda: JOB_CONTROLLER.reap(
            ReapCommand(db_path=db_path, older_than_seconds=older_than_seconds),
        ),
    )


@seqsearch.command("databases")
def databases() -> None:
    """List searchable databases from the catalog directory."""

    _run(JOB_CONTROLLER.databases)


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except (JobQueueError, CatalogError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    seqsearch()
