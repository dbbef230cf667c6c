from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import uuid4

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from orilla.core.errors import ConflictError, NotFoundError
from orilla.core.permissions import ReadScope
from orilla.core.statuses import EntryStatus, SheetStatus
from orilla.models.time_entry import TimeEntry
from orilla.models.time_sheet import TimeSheet, TimeSheetEntry


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimeEntryRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, entry_id: str) -> Optional[TimeEntry]:
        return self.db.query(TimeEntry).filter(TimeEntry.id == str(entry_id)).first()

    def get(self, entry_id: str) -> TimeEntry:
        entry = self.find_by_id(entry_id)
        if entry is None:
            raise NotFoundError("TimeEntry", str(entry_id))
        return entry

    def find_by_ids(self, entry_ids: Iterable[str]) -> list[TimeEntry]:
        ids = [str(i) for i in entry_ids]
        if not ids:
            return []
        return self.db.query(TimeEntry).filter(TimeEntry.id.in_(ids)).all()

    def find_all(
        self,
        *,
        organisation_id: Optional[str] = None,
        project_id: Optional[str] = None,
        created_by: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        scope: Optional[ReadScope] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TimeEntry]:
        q = self.db.query(TimeEntry)

        if scope is not None:
            project_ids = sorted(scope.project_ids)
            in_member_sheet = (
                select(TimeSheetEntry.time_entry_id)
                .join(TimeSheet, TimeSheet.id == TimeSheetEntry.time_sheet_id)
                .where(TimeSheet.project_id.in_(project_ids))
            )
            q = q.filter(
                or_(
                    TimeEntry.created_by == scope.user_id,
                    TimeEntry.project_id.in_(project_ids),
                    TimeEntry.id.in_(in_member_sheet),
                )
            )

        if organisation_id is not None:
            q = q.filter(TimeEntry.organisation_id == str(organisation_id))
        if project_id is not None:
            q = q.filter(TimeEntry.project_id == str(project_id))
        if created_by is not None:
            q = q.filter(TimeEntry.created_by == str(created_by))
        if status is not None:
            q = q.filter(TimeEntry.status == str(status))
        if date_from is not None:
            q = q.filter(TimeEntry.date >= date_from)
        if date_to is not None:
            q = q.filter(TimeEntry.date <= date_to)

        return (
            q.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
            .offset(int(offset))
            .limit(int(limit))
            .all()
        )

    def create(
        self,
        *,
        title: str,
        hours: Decimal,
        date: date,
        created_by: Optional[str],
        description: str = "",
        organisation_id: Optional[str] = None,
        project_id: Optional[str] = None,
        billed: bool = False,
    ) -> TimeEntry:
        entry = TimeEntry(
            id=str(uuid4()),
            organisation_id=organisation_id,
            project_id=project_id,
            title=title,
            description=description or "",
            date=date,
            hours=hours,
            billed=bool(billed),
            status=EntryStatus.PENDING.value,
            created_by=created_by,
            created_at=_utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def update(self, entry_id: str, **changes) -> TimeEntry:
        entry = self.get(entry_id)
        for field, value in changes.items():
            setattr(entry, field, value)
        entry.last_edited_at = _utcnow()
        self.db.flush()
        return entry

    def delete(self, entry_id: str) -> None:
        self.db.query(TimeEntry).filter(TimeEntry.id == str(entry_id)).delete(
            synchronize_session=False
        )

    def update_status(
        self,
        entry_id: str,
        status: EntryStatus,
        actor_id: str,
        *,
        expected_status: EntryStatus,
    ) -> TimeEntry:
        """
        Compare-and-swap on ``status``. Zero rows touched means another
        reviewer moved the entry first; that surfaces as ConflictError.
        """
        now = _utcnow()
        changed = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.id == str(entry_id),
                TimeEntry.status == expected_status.value,
            )
            .update(
                {
                    TimeEntry.status: status.value,
                    TimeEntry.status_changed_at: now,
                    TimeEntry.status_changed_by: str(actor_id),
                    TimeEntry.approved_at: now if status == EntryStatus.APPROVED else None,
                },
                synchronize_session="fetch",
            )
        )
        if changed == 0:
            raise ConflictError(
                "TimeEntry",
                str(entry_id),
                f"Time entry {entry_id} is no longer {expected_status.value}",
            )

        entry = self.get(entry_id)
        self.db.refresh(entry)
        return entry

    def reset_review(self, entry_ids: Iterable[str]) -> int:
        ids = [str(i) for i in entry_ids]
        if not ids:
            return 0
        return (
            self.db.query(TimeEntry)
            .filter(TimeEntry.id.in_(ids))
            .update(
                {
                    TimeEntry.status: EntryStatus.PENDING.value,
                    TimeEntry.status_changed_at: None,
                    TimeEntry.status_changed_by: None,
                    TimeEntry.approved_at: None,
                },
                synchronize_session="fetch",
            )
        )

    def get_sheet_status(self, entry_id: str) -> Optional[SheetStatus]:
        row = (
            self.db.query(TimeSheet.status)
            .join(TimeSheetEntry, TimeSheetEntry.time_sheet_id == TimeSheet.id)
            .filter(TimeSheetEntry.time_entry_id == str(entry_id))
            .first()
        )
        if row is None:
            return None
        return SheetStatus(row[0])
