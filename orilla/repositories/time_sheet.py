from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import uuid4

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from orilla.core.aggregation import ApprovalReadiness, approval_readiness, total_hours
from orilla.core.errors import ConflictError, NotFoundError
from orilla.core.permissions import ReadScope
from orilla.core.statuses import SheetStatus
from orilla.models.organisation import Account, Organisation
from orilla.models.project import Project
from orilla.models.time_entry import TimeEntry
from orilla.models.time_sheet import TimeSheet, TimeSheetEntry
from orilla.repositories.time_entry import TimeEntryRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class TimeSheetWithEntries:
    time_sheet: TimeSheet
    entries: list[TimeEntry]
    total_hours: Decimal
    organisation: Optional[Organisation] = None
    project: Optional[Project] = None
    account: Optional[Account] = None


class TimeSheetRepository:
    def __init__(self, db: Session):
        self.db = db

    # -- records --

    def find_by_id(self, sheet_id: str) -> Optional[TimeSheet]:
        return self.db.query(TimeSheet).filter(TimeSheet.id == str(sheet_id)).first()

    def get(self, sheet_id: str) -> TimeSheet:
        sheet = self.find_by_id(sheet_id)
        if sheet is None:
            raise NotFoundError("TimeSheet", str(sheet_id))
        return sheet

    def find_all(
        self,
        *,
        status: Optional[str] = None,
        organisation_id: Optional[str] = None,
        project_id: Optional[str] = None,
        scope: Optional[ReadScope] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TimeSheet]:
        q = self.db.query(TimeSheet)
        if scope is not None:
            q = q.filter(
                or_(
                    TimeSheet.created_by == scope.user_id,
                    TimeSheet.project_id.in_(sorted(scope.project_ids)),
                )
            )
        if status is not None:
            q = q.filter(TimeSheet.status == str(status))
        if organisation_id is not None:
            q = q.filter(TimeSheet.organisation_id == str(organisation_id))
        if project_id is not None:
            q = q.filter(TimeSheet.project_id == str(project_id))
        return (
            q.order_by(TimeSheet.created_at.desc(), TimeSheet.id.asc())
            .offset(int(offset))
            .limit(int(limit))
            .all()
        )

    def create(
        self,
        *,
        title: str,
        created_by: Optional[str],
        description: str = "",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        organisation_id: Optional[str] = None,
        project_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> TimeSheet:
        now = _utcnow()
        sheet = TimeSheet(
            id=str(uuid4()),
            title=title,
            description=description or "",
            start_date=start_date,
            end_date=end_date,
            status=SheetStatus.DRAFT.value,
            organisation_id=organisation_id,
            project_id=project_id,
            account_id=account_id,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.db.add(sheet)
        self.db.flush()
        return sheet

    def update(self, sheet_id: str, **changes) -> TimeSheet:
        sheet = self.get(sheet_id)
        for field, value in changes.items():
            setattr(sheet, field, value)
        sheet.updated_at = _utcnow()
        self.db.flush()
        return sheet

    def delete(self, sheet_id: str) -> None:
        # time_sheet_entries rows cascade; the entries themselves survive
        self.db.query(TimeSheetEntry).filter(TimeSheetEntry.time_sheet_id == str(sheet_id)).delete(
            synchronize_session=False
        )
        self.db.query(TimeSheet).filter(TimeSheet.id == str(sheet_id)).delete(
            synchronize_session=False
        )

    # -- membership --

    def entry_ids_in_sheet(self, sheet_id: str) -> list[str]:
        rows = (
            self.db.query(TimeSheetEntry.time_entry_id)
            .filter(TimeSheetEntry.time_sheet_id == str(sheet_id))
            .order_by(TimeSheetEntry.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    def get_entries_in_sheet(self, sheet_id: str) -> list[TimeEntry]:
        return (
            self.db.query(TimeEntry)
            .join(TimeSheetEntry, TimeSheetEntry.time_entry_id == TimeEntry.id)
            .filter(TimeSheetEntry.time_sheet_id == str(sheet_id))
            .order_by(TimeEntry.date.asc(), TimeEntry.created_at.asc(), TimeEntry.id.asc())
            .all()
        )

    def find_sheet_for_entry(self, entry_id: str) -> Optional[TimeSheet]:
        return (
            self.db.query(TimeSheet)
            .join(TimeSheetEntry, TimeSheetEntry.time_sheet_id == TimeSheet.id)
            .filter(TimeSheetEntry.time_entry_id == str(entry_id))
            .first()
        )

    def assigned_entry_ids(self, entry_ids: Iterable[str]) -> set[str]:
        ids = [str(i) for i in entry_ids]
        if not ids:
            return set()
        rows = (
            self.db.query(TimeSheetEntry.time_entry_id)
            .filter(TimeSheetEntry.time_entry_id.in_(ids))
            .all()
        )
        return {r[0] for r in rows}

    def add_entries(self, sheet_id: str, entry_ids: Iterable[str]) -> None:
        now = _utcnow()
        for entry_id in entry_ids:
            self.db.add(
                TimeSheetEntry(
                    time_sheet_id=str(sheet_id),
                    time_entry_id=str(entry_id),
                    created_at=now,
                )
            )
        self.db.flush()
        self.update(sheet_id)

    def remove_entry(self, sheet_id: str, entry_id: str) -> bool:
        removed = (
            self.db.query(TimeSheetEntry)
            .filter(
                TimeSheetEntry.time_sheet_id == str(sheet_id),
                TimeSheetEntry.time_entry_id == str(entry_id),
            )
            .delete(synchronize_session=False)
        )
        if removed:
            self.update(sheet_id)
        return bool(removed)

    def get_available_entries(
        self,
        *,
        organisation_id: Optional[str] = None,
        project_id: Optional[str] = None,
        scope: Optional[ReadScope] = None,
    ) -> list[TimeEntry]:
        assigned = select(TimeSheetEntry.time_entry_id)
        q = self.db.query(TimeEntry).filter(TimeEntry.id.not_in(assigned))
        if scope is not None:
            q = q.filter(
                or_(
                    TimeEntry.created_by == scope.user_id,
                    TimeEntry.project_id.in_(sorted(scope.project_ids)),
                )
            )
        if organisation_id is not None:
            q = q.filter(TimeEntry.organisation_id == str(organisation_id))
        if project_id is not None:
            q = q.filter(TimeEntry.project_id == str(project_id))
        return q.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc()).all()

    # -- reads --

    def find_with_entries(self, sheet_id: str) -> Optional[TimeSheetWithEntries]:
        sheet = self.find_by_id(sheet_id)
        if sheet is None:
            return None

        entries = self.get_entries_in_sheet(sheet.id)

        organisation = None
        if sheet.organisation_id:
            organisation = self.db.get(Organisation, sheet.organisation_id)
        project = None
        if sheet.project_id:
            project = self.db.get(Project, sheet.project_id)
        account = None
        if sheet.account_id:
            account = self.db.get(Account, sheet.account_id)

        return TimeSheetWithEntries(
            time_sheet=sheet,
            entries=entries,
            total_hours=total_hours(entries),
            organisation=organisation,
            project=project,
            account=account,
        )

    def can_approve_sheet(self, sheet_id: str) -> ApprovalReadiness:
        self.get(sheet_id)
        return approval_readiness(self.get_entries_in_sheet(sheet_id))

    # -- workflow writes --

    def _transition(self, sheet_id: str, expected: SheetStatus, values: dict) -> TimeSheet:
        values = dict(values)
        values[TimeSheet.updated_at] = _utcnow()
        changed = (
            self.db.query(TimeSheet)
            .filter(TimeSheet.id == str(sheet_id), TimeSheet.status == expected.value)
            .update(values, synchronize_session="fetch")
        )
        if changed == 0:
            raise ConflictError(
                "TimeSheet",
                str(sheet_id),
                f"Time sheet {sheet_id} is no longer {expected.value}",
            )
        sheet = self.get(sheet_id)
        self.db.refresh(sheet)
        return sheet

    def submit_sheet(self, sheet_id: str) -> TimeSheet:
        return self._transition(
            sheet_id,
            SheetStatus.DRAFT,
            {
                TimeSheet.status: SheetStatus.SUBMITTED.value,
                TimeSheet.submitted_at: _utcnow(),
            },
        )

    def approve_sheet(self, sheet_id: str, approver_id: str) -> TimeSheet:
        return self._transition(
            sheet_id,
            SheetStatus.SUBMITTED,
            {
                TimeSheet.status: SheetStatus.APPROVED.value,
                TimeSheet.approved_at: _utcnow(),
                TimeSheet.approved_by: str(approver_id),
            },
        )

    def reject_sheet(self, sheet_id: str, reason: Optional[str] = None) -> TimeSheet:
        return self._transition(
            sheet_id,
            SheetStatus.SUBMITTED,
            {
                TimeSheet.status: SheetStatus.REJECTED.value,
                TimeSheet.rejected_at: _utcnow(),
                TimeSheet.rejection_reason: reason,
            },
        )

    def revert_to_draft(self, sheet_id: str, expected: SheetStatus, *, reset_entries: bool) -> TimeSheet:
        """
        Sheet update and entry reset share the caller's transaction; nothing
        is committed here.
        """
        sheet = self._transition(
            sheet_id,
            expected,
            {
                TimeSheet.status: SheetStatus.DRAFT.value,
                TimeSheet.submitted_at: None,
                TimeSheet.approved_at: None,
                TimeSheet.approved_by: None,
                TimeSheet.rejected_at: None,
                TimeSheet.rejection_reason: None,
            },
        )
        if reset_entries:
            TimeEntryRepository(self.db).reset_review(self.entry_ids_in_sheet(sheet_id))
        return sheet
