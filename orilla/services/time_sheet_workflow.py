"""
Time sheet state machine.

    draft     --submit-->  submitted
    submitted --approve--> approved
    submitted --reject-->  rejected
    submitted --revert-->  draft
    approved  --revert-->  draft   (entries reset to pending)
    rejected  --revert-->  draft   (entries reset to pending)

Every write goes through the repositories as a conditional update on the
observed status, so a reviewer racing another sees ConflictError instead of
overwriting. Membership edits and deletion are draft-only.

Each public function follows the same session contract: if db is provided,
this module will NOT commit/close and the caller owns the transaction.
"""

import logging
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orilla.core.aggregation import ApprovalReadiness
from orilla.core.authorization import Actor, is_system_admin
from orilla.core.errors import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from orilla.core.permissions import (
    REASON_NOT_A_MEMBER,
    REASON_NOT_AUTHENTICATED,
    SHEETS_EDIT,
    PermissionContext,
    ReadScope,
    can_approve_sheet,
    can_reject_sheet,
    can_revert_to_draft,
    can_submit_sheet,
    role_has,
)
from orilla.core.statuses import EntryStatus, SheetStatus
from orilla.database import session_scope
from orilla.models.organisation import Account, Organisation
from orilla.models.project import Project
from orilla.models.time_entry import TimeEntry
from orilla.models.time_sheet import TimeSheet
from orilla.repositories.time_entry import TimeEntryRepository
from orilla.repositories.time_sheet import TimeSheetRepository, TimeSheetWithEntries
from orilla.services.permission_context import project_role_for, sheet_context

logger = logging.getLogger(__name__)


class SheetAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REVERT = "revert"


TRANSITIONS = {
    (SheetStatus.DRAFT, SheetAction.SUBMIT): SheetStatus.SUBMITTED,
    (SheetStatus.SUBMITTED, SheetAction.APPROVE): SheetStatus.APPROVED,
    (SheetStatus.SUBMITTED, SheetAction.REJECT): SheetStatus.REJECTED,
    (SheetStatus.SUBMITTED, SheetAction.REVERT): SheetStatus.DRAFT,
    (SheetStatus.APPROVED, SheetAction.REVERT): SheetStatus.DRAFT,
    (SheetStatus.REJECTED, SheetAction.REVERT): SheetStatus.DRAFT,
}

# reverting out of these hands every member entry back to pending
_RESETS_ENTRIES = frozenset({SheetStatus.APPROVED, SheetStatus.REJECTED})

_EDITABLE_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "organisation_id",
    "project_id",
    "account_id",
)


def next_status(current: SheetStatus, action: SheetAction) -> SheetStatus:
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidStateTransitionError(
            f"Cannot {action.value} a {current.value} time sheet",
            current_status=current.value,
            action=action.value,
        ) from None


def _require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise PermissionDeniedError(REASON_NOT_AUTHENTICATED)
    return actor


def _require_draft(sheet: TimeSheet, action: str) -> None:
    if SheetStatus(sheet.status) != SheetStatus.DRAFT:
        raise InvalidStateTransitionError(
            f"Cannot {action} while the time sheet is {sheet.status}",
            current_status=sheet.status,
            action=action,
        )


def _require_edit_rights(db: Session, actor: Actor, sheet: TimeSheet) -> None:
    # editing a draft needs the same standing as submitting it
    decision = can_submit_sheet(actor, sheet_context(db, actor, sheet))
    if not decision.allowed:
        raise PermissionDeniedError(decision.reason)


def _check_entry_scope(
    db: Session,
    entry: TimeEntry,
    organisation_id: Optional[str],
    project_id: Optional[str],
) -> None:
    if project_id is not None and entry.project_id is not None and entry.project_id != project_id:
        raise ValidationError(f"Time entry {entry.id} belongs to another project")
    if organisation_id is None:
        return
    entry_org = entry.organisation_id
    if entry_org is None and entry.project_id is not None:
        project = db.get(Project, entry.project_id)
        entry_org = None if project is None else project.organisation_id
    if entry_org is not None and entry_org != organisation_id:
        raise ValidationError(f"Time entry {entry.id} belongs to another organisation")


def _require_entry_rights(db: Session, actor: Actor, entry: TimeEntry) -> None:
    if is_system_admin(actor) or entry.created_by == actor.id:
        return
    if role_has(project_role_for(db, entry.project_id, actor), SHEETS_EDIT):
        return
    raise PermissionDeniedError(
        f"only the author or a project editor can add time entry {entry.id} to a time sheet"
    )


def _validate_dates(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")


def _validate_scope(
    db: Session,
    organisation_id: Optional[str],
    project_id: Optional[str],
    account_id: Optional[str],
) -> None:
    if organisation_id is not None and db.get(Organisation, organisation_id) is None:
        raise NotFoundError("Organisation", organisation_id)
    if project_id is not None and db.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)
    if account_id is not None and db.get(Account, account_id) is None:
        raise NotFoundError("Account", account_id)


def _log_transition(sheet: TimeSheet, actor: Actor, from_status: SheetStatus, action: SheetAction) -> None:
    logger.info(
        "Time sheet status changed",
        extra={
            "time_sheet_id": sheet.id,
            "actor_id": actor.id,
            "action": action.value,
            "from_status": from_status.value,
            "to_status": sheet.status,
        },
    )


def _conditional(fn, sheet_id: str, action: SheetAction, actor: Actor):
    try:
        return fn()
    except ConflictError:
        logger.warning(
            "Time sheet status changed concurrently",
            extra={"time_sheet_id": sheet_id, "action": action.value, "actor_id": actor.id},
        )
        raise


# -- records --


def create_sheet(
    actor: Optional[Actor],
    *,
    title: str,
    description: str = "",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    account_id: Optional[str] = None,
    db: Optional[Session] = None,
) -> TimeSheet:
    actor = _require_actor(actor)
    if not title or not title.strip():
        raise ValidationError("title is required")
    _validate_dates(start_date, end_date)

    with session_scope(db) as session:
        _validate_scope(session, organisation_id, project_id, account_id)

        ctx = PermissionContext(
            project_id=project_id,
            membership=project_role_for(session, project_id, actor),
            sheet_status=SheetStatus.DRAFT,
        )
        decision = can_submit_sheet(actor, ctx)
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        sheet = TimeSheetRepository(session).create(
            title=title.strip(),
            created_by=actor.id,
            description=description,
            start_date=start_date,
            end_date=end_date,
            organisation_id=organisation_id,
            project_id=project_id,
            account_id=account_id,
        )
        logger.info(
            "Time sheet created",
            extra={"time_sheet_id": sheet.id, "actor_id": actor.id, "project_id": project_id},
        )
        return sheet


def update_sheet(
    sheet_id: str,
    actor: Optional[Actor],
    changes: dict,
    *,
    db: Optional[Session] = None,
) -> TimeSheet:
    actor = _require_actor(actor)
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown time sheet fields: {', '.join(sorted(unknown))}")
    for field in ("title", "description"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if "title" in changes and (not changes["title"] or not str(changes["title"]).strip()):
        raise ValidationError("title is required")

    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        _require_draft(sheet, "edit")
        _require_edit_rights(session, actor, sheet)

        _validate_dates(
            changes.get("start_date", sheet.start_date),
            changes.get("end_date", sheet.end_date),
        )
        _validate_scope(
            session,
            changes.get("organisation_id"),
            changes.get("project_id"),
            changes.get("account_id"),
        )

        new_project_id = changes.get("project_id", sheet.project_id)
        if new_project_id is not None and new_project_id != sheet.project_id:
            ctx = PermissionContext(
                project_id=new_project_id,
                membership=project_role_for(session, new_project_id, actor),
                sheet_status=SheetStatus.DRAFT,
            )
            decision = can_submit_sheet(actor, ctx)
            if not decision.allowed:
                raise PermissionDeniedError(decision.reason)

        if "project_id" in changes or "organisation_id" in changes:
            for entry in sheets.get_entries_in_sheet(sheet.id):
                _check_entry_scope(
                    session,
                    entry,
                    changes.get("organisation_id", sheet.organisation_id),
                    new_project_id,
                )
        return sheets.update(sheet.id, **changes)


def delete_sheet(sheet_id: str, actor: Optional[Actor], *, db: Optional[Session] = None) -> None:
    actor = _require_actor(actor)
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        _require_draft(sheet, "delete")
        _require_edit_rights(session, actor, sheet)
        sheets.delete(sheet.id)
        logger.info("Time sheet deleted", extra={"time_sheet_id": sheet.id, "actor_id": actor.id})


# -- membership --


def add_entries(
    sheet_id: str,
    entry_ids: Iterable[str],
    actor: Optional[Actor],
    *,
    db: Optional[Session] = None,
) -> TimeSheetWithEntries:
    actor = _require_actor(actor)
    ids = list(dict.fromkeys(str(i) for i in entry_ids))
    if not ids:
        raise ValidationError("entry_ids must not be empty")

    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        _require_draft(sheet, "add entries")
        _require_edit_rights(session, actor, sheet)

        found = {e.id: e for e in TimeEntryRepository(session).find_by_ids(ids)}
        missing = [i for i in ids if i not in found]
        if missing:
            raise ValidationError(f"Unknown time entries: {', '.join(missing)}")

        taken = sheets.assigned_entry_ids(ids)
        if taken:
            raise ValidationError(
                f"Time entries already belong to a time sheet: {', '.join(sorted(taken))}"
            )

        for entry_id in ids:
            entry = found[entry_id]
            _check_entry_scope(session, entry, sheet.organisation_id, sheet.project_id)
            _require_entry_rights(session, actor, entry)

        try:
            sheets.add_entries(sheet.id, ids)
        except IntegrityError as exc:
            raise ConflictError(
                "TimeSheet", sheet.id, "Time entries were assigned to another sheet concurrently"
            ) from exc

        logger.info(
            "Time entries added to sheet",
            extra={"time_sheet_id": sheet.id, "actor_id": actor.id, "entry_count": len(ids)},
        )
        return sheets.find_with_entries(sheet.id)


def remove_entry(
    sheet_id: str,
    entry_id: str,
    actor: Optional[Actor],
    *,
    db: Optional[Session] = None,
) -> TimeSheetWithEntries:
    """
    Entries approved in an earlier review pass survive a revert from
    ``submitted`` still approved; those cannot be removed until re-reviewed.
    """
    actor = _require_actor(actor)
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        _require_draft(sheet, "remove entries")
        _require_edit_rights(session, actor, sheet)

        entry = TimeEntryRepository(session).get(entry_id)
        if entry.id not in set(sheets.entry_ids_in_sheet(sheet.id)):
            raise NotFoundError("TimeSheetEntry", entry.id)
        if EntryStatus(entry.status) == EntryStatus.APPROVED:
            raise InvalidStateTransitionError(
                "Approved entries cannot be removed from a time sheet",
                current_status=entry.status,
                action="remove entry",
                reason="entry approved",
            )

        sheets.remove_entry(sheet.id, entry.id)
        logger.info(
            "Time entry removed from sheet",
            extra={"time_sheet_id": sheet.id, "time_entry_id": entry.id, "actor_id": actor.id},
        )
        return sheets.find_with_entries(sheet.id)


# -- transitions --


def submit(sheet_id: str, actor: Optional[Actor], *, db: Optional[Session] = None) -> TimeSheet:
    actor = _require_actor(actor)
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        current = SheetStatus(sheet.status)
        next_status(current, SheetAction.SUBMIT)

        decision = can_submit_sheet(actor, sheet_context(session, actor, sheet))
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        if not sheets.entry_ids_in_sheet(sheet.id):
            raise ValidationError("Cannot submit a time sheet with no entries")

        sheet = _conditional(lambda: sheets.submit_sheet(sheet.id), sheet.id, SheetAction.SUBMIT, actor)
        _log_transition(sheet, actor, current, SheetAction.SUBMIT)
        return sheet


def approve(sheet_id: str, actor: Optional[Actor], *, db: Optional[Session] = None) -> TimeSheet:
    actor = _require_actor(actor)
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        current = SheetStatus(sheet.status)
        next_status(current, SheetAction.APPROVE)

        decision = can_approve_sheet(actor, sheet_context(session, actor, sheet))
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        readiness = sheets.can_approve_sheet(sheet.id)
        if not readiness.can_approve:
            raise InvalidStateTransitionError(
                f"Time sheet cannot be approved: {readiness.reason}",
                current_status=current.value,
                action=SheetAction.APPROVE.value,
                reason=readiness.reason,
            )

        sheet = _conditional(
            lambda: sheets.approve_sheet(sheet.id, actor.id), sheet.id, SheetAction.APPROVE, actor
        )
        _log_transition(sheet, actor, current, SheetAction.APPROVE)
        return sheet


def reject(
    sheet_id: str,
    actor: Optional[Actor],
    *,
    reason: Optional[str] = None,
    db: Optional[Session] = None,
) -> TimeSheet:
    actor = _require_actor(actor)
    reason = reason.strip() if reason and reason.strip() else None
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        current = SheetStatus(sheet.status)
        next_status(current, SheetAction.REJECT)

        decision = can_reject_sheet(actor, sheet_context(session, actor, sheet))
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        sheet = _conditional(
            lambda: sheets.reject_sheet(sheet.id, reason), sheet.id, SheetAction.REJECT, actor
        )
        _log_transition(sheet, actor, current, SheetAction.REJECT)
        return sheet


def revert_to_draft(sheet_id: str, actor: Optional[Actor], *, db: Optional[Session] = None) -> TimeSheet:
    actor = _require_actor(actor)
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        current = SheetStatus(sheet.status)
        next_status(current, SheetAction.REVERT)

        ctx = sheet_context(session, actor, sheet, with_interaction=True)
        decision = can_revert_to_draft(actor, ctx)
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        reset_entries = current in _RESETS_ENTRIES
        sheet = _conditional(
            lambda: sheets.revert_to_draft(sheet.id, current, reset_entries=reset_entries),
            sheet.id,
            SheetAction.REVERT,
            actor,
        )
        _log_transition(sheet, actor, current, SheetAction.REVERT)
        return sheet


# -- reads --


def _require_visible(sheet: TimeSheet, scope: Optional[ReadScope]) -> None:
    if scope is not None and not scope.allows(created_by=sheet.created_by, project_ids=[sheet.project_id]):
        raise PermissionDeniedError(REASON_NOT_A_MEMBER)


def get_sheet(
    sheet_id: str,
    *,
    scope: Optional[ReadScope] = None,
    db: Optional[Session] = None,
) -> TimeSheetWithEntries:
    """``scope`` limits what a non-admin reader may see; None reads unrestricted."""
    with session_scope(db) as session:
        found = TimeSheetRepository(session).find_with_entries(sheet_id)
        if found is None:
            raise NotFoundError("TimeSheet", str(sheet_id))
        _require_visible(found.time_sheet, scope)
        return found


def list_sheets(
    *,
    status: Optional[SheetStatus] = None,
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    scope: Optional[ReadScope] = None,
    limit: int = 50,
    offset: int = 0,
    db: Optional[Session] = None,
) -> list[TimeSheet]:
    with session_scope(db) as session:
        return TimeSheetRepository(session).find_all(
            status=None if status is None else status.value,
            organisation_id=organisation_id,
            project_id=project_id,
            scope=scope,
            limit=limit,
            offset=offset,
        )


def can_approve(
    sheet_id: str,
    *,
    scope: Optional[ReadScope] = None,
    db: Optional[Session] = None,
) -> ApprovalReadiness:
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        _require_visible(sheets.get(sheet_id), scope)
        return sheets.can_approve_sheet(sheet_id)


def available_entries(
    *,
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    scope: Optional[ReadScope] = None,
    db: Optional[Session] = None,
) -> list[TimeEntry]:
    with session_scope(db) as session:
        return TimeSheetRepository(session).get_available_entries(
            organisation_id=organisation_id, project_id=project_id, scope=scope
        )


def action_permissions(
    sheet_id: str,
    actor: Optional[Actor],
    *,
    db: Optional[Session] = None,
) -> dict:
    """What the actor may do with the sheet right now, with the blocking reason if not."""
    with session_scope(db) as session:
        sheets = TimeSheetRepository(session)
        sheet = sheets.get(sheet_id)
        ctx: PermissionContext = sheet_context(session, actor, sheet, with_interaction=True)
        status = SheetStatus(sheet.status)

        def _gate(action: SheetAction, decision):
            if (status, action) not in TRANSITIONS:
                return {"allowed": False, "reason": f"sheet is {status.value}"}
            return {"allowed": decision.allowed, "reason": decision.reason}

        approve_gate = _gate(SheetAction.APPROVE, can_approve_sheet(actor, ctx))
        if approve_gate["allowed"]:
            readiness = sheets.can_approve_sheet(sheet.id)
            if not readiness.can_approve:
                approve_gate = {"allowed": False, "reason": readiness.reason}

        return {
            "submit": _gate(SheetAction.SUBMIT, can_submit_sheet(actor, ctx)),
            "approve": approve_gate,
            "reject": _gate(SheetAction.REJECT, can_reject_sheet(actor, ctx)),
            "revert": _gate(SheetAction.REVERT, can_revert_to_draft(actor, ctx)),
        }
