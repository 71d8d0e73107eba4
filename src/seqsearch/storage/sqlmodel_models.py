"""SQLModel ORM tables for the pending queue and ticket status."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel


class PendingJob(SQLModel, table=True):
    __tablename__ = "pending_jobs"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_pending_jobs_order", "ordering_key", "seq"),)

    seq: int | None = Field(default=None, primary_key=True)
    ticket: str = Field(index=True)
    ordering_key: float
    enqueued_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class JobStatusRow(SQLModel, table=True):
    __tablename__ = "job_status"  # type: ignore[bad-override]

    ticket: str = Field(primary_key=True)
    status: str = Field(index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class JobEvent(SQLModel, table=True):
    __tablename__ = "job_events"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_job_events_ticket_time", "ticket", "created_at"),)

    id: int | None = Field(default=None, primary_key=True)
    ticket: str = Field(index=True)
    event_type: str = Field(index=True)
    status_from: str | None = None
    status_to: str | None = None
    details_json: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
