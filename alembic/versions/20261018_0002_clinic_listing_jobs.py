"""Carry clinic listing requests on delivery jobs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None

_LISTING_COLUMNS = (
    ("city", sa.String()),
    ("state", sa.String()),
    ("address", sa.String()),
    ("website", sa.String()),
    ("clinic_category", sa.String()),
    ("primary_contact_name", sa.String()),
    ("additional_details", sa.Text()),
    ("request_type", sa.String()),
)


def upgrade() -> None:
    with op.batch_alter_table("delivery_jobs") as batch:
        batch.add_column(
            sa.Column(
                "kind",
                sa.String(),
                nullable=False,
                server_default="consultation",
            ),
        )
        for name, column_type in _LISTING_COLUMNS:
            batch.add_column(sa.Column(name, column_type, nullable=True))
        for name in ("first_name", "last_name", "clinic_id"):
            batch.alter_column(name, existing_type=sa.String(), nullable=True)


def downgrade() -> None:
    op.execute(sa.text("DELETE FROM delivery_jobs WHERE kind <> 'consultation'"))
    with op.batch_alter_table("delivery_jobs") as batch:
        for name in ("first_name", "last_name", "clinic_id"):
            batch.alter_column(name, existing_type=sa.String(), nullable=False)
        for name, _ in reversed(_LISTING_COLUMNS):
            batch.drop_column(name)
        batch.drop_column("kind")
