"""Create delivery job table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "delivery_jobs",
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("environment", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("clinic_id", sa.String(), nullable=False),
        sa.Column("clinic_name", sa.String(), nullable=False),
        sa.Column("selected_procedures_json", sa.Text(), nullable=False, server_default="[]"),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index("ix_delivery_jobs_status", "delivery_jobs", ["status"], unique=False)
    op.create_index(
        "ix_delivery_jobs_environment",
        "delivery_jobs",
        ["environment"],
        unique=False,
    )
    op.create_index(
        "idx_delivery_jobs_sweep",
        "delivery_jobs",
        ["environment", "status", "retry_count", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_delivery_jobs_sweep", table_name="delivery_jobs")
    op.drop_index("ix_delivery_jobs_environment", table_name="delivery_jobs")
    op.drop_index("ix_delivery_jobs_status", table_name="delivery_jobs")
    op.drop_table("delivery_jobs")
