"""Add notification_records table.

Revision ID: 001
Revises:
Create Date: 2026-10-17

One row per (collection, external_id): the bookkeeping each polling loop
keeps about what it has already posted, edited or reminded.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notification_records",
        sa.Column("collection", sa.Text(), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("notified_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_updated_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_seen_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("due_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("source_created_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("outward_handle", sa.Text(), nullable=True),
        sa.Column("fingerprint", postgresql.JSONB(), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint(
            "collection", "external_id", name=op.f("pk_notification_records")
        ),
    )
    op.create_index(
        "idx_notification_records_last_seen",
        "notification_records",
        ["collection", "last_seen_at"],
        unique=False,
    )
    op.create_index(
        "idx_notification_records_due",
        "notification_records",
        ["collection", "due_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_notification_records_due", table_name="notification_records")
    op.drop_index("idx_notification_records_last_seen", table_name="notification_records")
    op.drop_table("notification_records")
