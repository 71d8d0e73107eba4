"""Pending queue, ticket status, and status event tables."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "pending_jobs",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket", sa.String(), nullable=False),
        sa.Column("ordering_key", sa.Float(), nullable=False),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_pending_jobs_ticket", "pending_jobs", ["ticket"])
    op.create_index("idx_pending_jobs_order", "pending_jobs", ["ordering_key", "seq"])

    op.create_table(
        "job_status",
        sa.Column("ticket", sa.String(), primary_key=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_job_status_status", "job_status", ["status"])

    op.create_table(
        "job_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("status_from", sa.String(), nullable=True),
        sa.Column("status_to", sa.String(), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_job_events_ticket", "job_events", ["ticket"])
    op.create_index("ix_job_events_event_type", "job_events", ["event_type"])
    op.create_index("idx_job_events_ticket_time", "job_events", ["ticket", "created_at"])


def downgrade() -> None:
    op.drop_table("job_events")
    op.drop_table("job_status")
    op.drop_table("pending_jobs")
