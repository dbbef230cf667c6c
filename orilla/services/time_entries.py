import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from orilla.core.authorization import Actor, is_system_admin
from orilla.core.errors import (
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from orilla.core.permissions import (
    REASON_NOT_A_MEMBER,
    REASON_NOT_AUTHENTICATED,
    ProjectRole,
    ReadScope,
)
from orilla.core.statuses import EntryStatus, SheetStatus
from orilla.database import session_scope
from orilla.models.organisation import Organisation
from orilla.models.project import Project
from orilla.models.time_entry import TimeEntry
from orilla.repositories.time_entry import TimeEntryRepository
from orilla.repositories.time_sheet import TimeSheetRepository
from orilla.services.permission_context import project_role_for

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "description", "date", "hours", "billed", "organisation_id", "project_id")
# changing any of these on a reviewed entry sends it back to pending
_REVIEWED_FIELDS = ("title", "description", "date", "hours", "organisation_id", "project_id")

# numeric(6, 2)
_HOURS_STEP = Decimal("0.01")
_MAX_HOURS = Decimal("9999.99")


def _validate_hours(hours) -> Decimal:
    try:
        value = hours if isinstance(hours, Decimal) else Decimal(str(hours))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("hours must be a number") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError("hours must be greater than zero")
    if value > _MAX_HOURS:
        raise ValidationError(f"hours must not exceed {_MAX_HOURS}")
    if value != value.quantize(_HOURS_STEP):
        raise ValidationError("hours must have at most two decimal places")
    return value


def _validate_scope(db: Session, organisation_id: Optional[str], project_id: Optional[str]) -> None:
    if organisation_id is not None and db.get(Organisation, organisation_id) is None:
        raise NotFoundError("Organisation", organisation_id)
    if project_id is not None and db.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)


def _require_author(db: Session, actor: Optional[Actor], entry: TimeEntry) -> Actor:
    if actor is None:
        raise PermissionDeniedError(REASON_NOT_AUTHENTICATED)
    if is_system_admin(actor) or entry.created_by == actor.id:
        return actor
    if project_role_for(db, entry.project_id, actor) == ProjectRole.OWNER:
        return actor
    raise PermissionDeniedError("only the entry author, a project owner or an admin can change this entry")


def require_visible(db: Session, scope: Optional[ReadScope], entry: TimeEntry) -> None:
    if scope is None:
        return
    sheet = TimeSheetRepository(db).find_sheet_for_entry(entry.id)
    project_ids = [entry.project_id, None if sheet is None else sheet.project_id]
    if not scope.allows(created_by=entry.created_by, project_ids=project_ids):
        raise PermissionDeniedError(REASON_NOT_A_MEMBER)


def create_entry(
    actor: Optional[Actor],
    *,
    title: str,
    hours,
    date: date,
    description: str = "",
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    billed: bool = False,
    db: Optional[Session] = None,
) -> TimeEntry:
    if actor is None:
        raise PermissionDeniedError(REASON_NOT_AUTHENTICATED)
    if not title or not title.strip():
        raise ValidationError("title is required")
    hours = _validate_hours(hours)

    with session_scope(db) as session:
        _validate_scope(session, organisation_id, project_id)
        entry = TimeEntryRepository(session).create(
            title=title.strip(),
            hours=hours,
            date=date,
            created_by=actor.id,
            description=description,
            organisation_id=organisation_id,
            project_id=project_id,
            billed=billed,
        )
        logger.info(
            "Time entry created",
            extra={"time_entry_id": entry.id, "actor_id": actor.id, "project_id": project_id},
        )
        return entry


def update_entry(
    entry_id: str,
    actor: Optional[Actor],
    changes: dict,
    *,
    db: Optional[Session] = None,
) -> TimeEntry:
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown time entry fields: {', '.join(sorted(unknown))}")
    changes = dict(changes)
    for field in ("title", "date", "hours", "billed", "description"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if "hours" in changes:
        changes["hours"] = _validate_hours(changes["hours"])
    if "title" in changes and (not changes["title"] or not str(changes["title"]).strip()):
        raise ValidationError("title is required")

    with session_scope(db) as session:
        entries = TimeEntryRepository(session)
        entry = entries.get(entry_id)
        actor = _require_author(session, actor, entry)

        sheet_status = entries.get_sheet_status(entry.id)
        if sheet_status is not None and sheet_status != SheetStatus.DRAFT:
            raise InvalidStateTransitionError(
                "Time entries in a submitted time sheet cannot be edited",
                current_status=sheet_status.value,
                action="edit entry",
            )

        _validate_scope(session, changes.get("organisation_id"), changes.get("project_id"))

        previous = EntryStatus(entry.status)
        reviewed = [f for f in _REVIEWED_FIELDS if f in changes and changes[f] != getattr(entry, f)]
        entry = entries.update(entry.id, **changes)
        if reviewed and previous != EntryStatus.PENDING:
            entries.reset_review([entry.id])
            session.refresh(entry)
            logger.info(
                "Time entry review reset by edit",
                extra={
                    "time_entry_id": entry.id,
                    "actor_id": actor.id,
                    "from_status": previous.value,
                    "fields": reviewed,
                },
            )
        logger.info("Time entry updated", extra={"time_entry_id": entry.id, "actor_id": actor.id})
        return entry


def delete_entry(entry_id: str, actor: Optional[Actor], *, db: Optional[Session] = None) -> None:
    with session_scope(db) as session:
        entries = TimeEntryRepository(session)
        entry = entries.get(entry_id)
        actor = _require_author(session, actor, entry)

        sheet_status = entries.get_sheet_status(entry.id)
        if sheet_status is not None:
            raise InvalidStateTransitionError(
                "Remove the entry from its time sheet before deleting it",
                current_status=sheet_status.value,
                action="delete entry",
            )

        entries.delete(entry.id)
        logger.info("Time entry deleted", extra={"time_entry_id": entry.id, "actor_id": actor.id})


def get_entry(
    entry_id: str,
    *,
    scope: Optional[ReadScope] = None,
    db: Optional[Session] = None,
) -> TimeEntry:
    with session_scope(db) as session:
        entry = TimeEntryRepository(session).get(entry_id)
        require_visible(session, scope, entry)
        return entry


def list_entries(
    *,
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    created_by: Optional[str] = None,
    status: Optional[EntryStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    scope: Optional[ReadScope] = None,
    limit: int = 50,
    offset: int = 0,
    db: Optional[Session] = None,
) -> list[TimeEntry]:
    with session_scope(db) as session:
        return TimeEntryRepository(session).find_all(
            organisation_id=organisation_id,
            project_id=project_id,
            created_by=created_by,
            status=None if status is None else status.value,
            date_from=date_from,
            date_to=date_to,
            scope=scope,
            limit=limit,
            offset=offset,
        )
