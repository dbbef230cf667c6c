from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from orilla.core.statuses import EntryStatus
from orilla.models.entry_message import EntryMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EntryMessageRepository:
    """Append-only: messages are never updated or deleted."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        time_entry_id: str,
        author_id: str,
        content: str,
        status_change: Optional[EntryStatus] = None,
    ) -> EntryMessage:
        now = _utcnow()
        message = EntryMessage(
            time_entry_id=str(time_entry_id),
            author_id=str(author_id),
            content=content,
            status_change=None if status_change is None else status_change.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def find_by_entry_id(self, time_entry_id: str) -> list[EntryMessage]:
        return (
            self.db.query(EntryMessage)
            .filter(EntryMessage.time_entry_id == str(time_entry_id))
            .order_by(EntryMessage.created_at.asc(), EntryMessage.id.asc())
            .all()
        )

    def find_latest_by_entry_id(self, time_entry_id: str) -> Optional[EntryMessage]:
        return (
            self.db.query(EntryMessage)
            .filter(EntryMessage.time_entry_id == str(time_entry_id))
            .order_by(EntryMessage.created_at.desc(), EntryMessage.id.desc())
            .first()
        )

    def count_by_entry_id(self, time_entry_id: str) -> int:
        return int(
            self.db.query(func.count(EntryMessage.id))
            .filter(EntryMessage.time_entry_id == str(time_entry_id))
            .scalar()
            or 0
        )

    def author_ids_for_entries(self, entry_ids: Iterable[str]) -> set[str]:
        ids = [str(i) for i in entry_ids]
        if not ids:
            return set()
        rows = (
            self.db.query(EntryMessage.author_id)
            .filter(EntryMessage.time_entry_id.in_(ids))
            .distinct()
            .all()
        )
        return {r[0] for r in rows}
