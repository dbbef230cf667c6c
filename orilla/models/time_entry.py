from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)

from orilla.database import Base


class TimeEntry(Base):
    __tablename__ = "time_entries"

    __table_args__ = (
        CheckConstraint("hours > 0", name="ck_time_entries_hours_positive"),
        CheckConstraint(
            "status in ('pending','approved','questioned')",
            name="ck_time_entries_status_valid",
        ),
    )

    id = Column(String, primary_key=True, index=True)

    organisation_id = Column(
        String, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(Date, nullable=False, index=True)
    hours = Column(Numeric(6, 2), nullable=False)
    billed = Column(Boolean, nullable=False, default=False)

    status = Column(String, nullable=False, default="pending", index=True)
    status_changed_at = Column(DateTime, nullable=True)
    status_changed_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_by = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_edited_at = Column(DateTime, nullable=True)
