from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)

from orilla.database import Base


class TimeSheet(Base):
    __tablename__ = "time_sheets"

    __table_args__ = (
        CheckConstraint(
            "status in ('draft','submitted','approved','rejected')",
            name="ck_time_sheets_status_valid",
        ),
        CheckConstraint(
            "rejection_reason IS NULL OR status = 'rejected'",
            name="ck_time_sheets_rejection_reason_only_when_rejected",
        ),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_time_sheets_date_range",
        ),
    )

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    status = Column(String, nullable=False, default="draft", index=True)

    organisation_id = Column(
        String, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    account_id = Column(
        String, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    rejection_reason = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class TimeSheetEntry(Base):
    __tablename__ = "time_sheet_entries"

    id = Column(Integer, primary_key=True, index=True)
    time_sheet_id = Column(
        String, ForeignKey("time_sheets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # an entry belongs to at most one sheet
    time_entry_id = Column(
        String,
        ForeignKey("time_entries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
