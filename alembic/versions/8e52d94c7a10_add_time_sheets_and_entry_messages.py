"""add time sheets and entry messages

Revision ID: 8e52d94c7a10
Revises: 3c1f0a7d2b41
Create Date: 2026-09-29 14:03:17.845120

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e52d94c7a10'
down_revision: Union[str, Sequence[str], None] = '3c1f0a7d2b41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "time_sheets",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("organisation_id", sa.String(), nullable=True),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("account_id", sa.String(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["organisation_id"], ["organisations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status in ('draft','submitted','approved','rejected')",
            name="ck_time_sheets_status_valid",
        ),
        sa.CheckConstraint(
            "rejection_reason IS NULL OR status = 'rejected'",
            name="ck_time_sheets_rejection_reason_only_when_rejected",
        ),
        sa.CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_time_sheets_date_range",
        ),
    )
    op.create_index("ix_time_sheets_id", "time_sheets", ["id"], unique=False)
    op.create_index("ix_time_sheets_status", "time_sheets", ["status"], unique=False)
    op.create_index("ix_time_sheets_organisation_id", "time_sheets", ["organisation_id"], unique=False)
    op.create_index("ix_time_sheets_project_id", "time_sheets", ["project_id"], unique=False)
    op.create_index("ix_time_sheets_account_id", "time_sheets", ["account_id"], unique=False)

    op.create_table(
        "time_sheet_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("time_sheet_id", sa.String(), nullable=False),
        sa.Column("time_entry_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["time_sheet_id"], ["time_sheets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["time_entry_id"], ["time_entries.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("time_entry_id", name="uq_time_sheet_entries_time_entry_id"),
    )
    op.create_index("ix_time_sheet_entries_id", "time_sheet_entries", ["id"], unique=False)
    op.create_index(
        "ix_time_sheet_entries_time_sheet_id", "time_sheet_entries", ["time_sheet_id"], unique=False
    )

    op.create_table(
        "entry_messages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("time_entry_id", sa.String(), nullable=False),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status_change", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["time_entry_id"], ["time_entries.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status_change IS NULL OR status_change in ('pending','approved','questioned')",
            name="ck_entry_messages_status_change_valid",
        ),
    )
    op.create_index("ix_entry_messages_id", "entry_messages", ["id"], unique=False)
    op.create_index("ix_entry_messages_time_entry_id", "entry_messages", ["time_entry_id"], unique=False)
    op.create_index("ix_entry_messages_author_id", "entry_messages", ["author_id"], unique=False)
    op.create_index(
        "ix_entry_messages_entry_created",
        "entry_messages",
        ["time_entry_id", "created_at", "id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_entry_messages_entry_created", table_name="entry_messages")
    op.drop_table("entry_messages")
    op.drop_table("time_sheet_entries")
    op.drop_table("time_sheets")
