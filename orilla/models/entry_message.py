from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text

from orilla.database import Base


class EntryMessage(Base):
    __tablename__ = "entry_messages"

    __table_args__ = (
        CheckConstraint(
            "status_change IS NULL OR status_change in ('pending','approved','questioned')",
            name="ck_entry_messages_status_change_valid",
        ),
        Index("ix_entry_messages_entry_created", "time_entry_id", "created_at", "id"),
    )

    # integer id doubles as the insertion-order tiebreak for threads
    id = Column(Integer, primary_key=True, index=True)
    time_entry_id = Column(
        String, ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    status_change = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
