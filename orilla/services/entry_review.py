import logging
from typing import Optional

from sqlalchemy.orm import Session

from orilla.core.authorization import Actor
from orilla.core.errors import ConflictError, InvalidStateTransitionError, PermissionDeniedError
from orilla.core.permissions import (
    EntryPermissions,
    can_approve_entry,
    can_question_entry,
    can_resolve_question,
    entry_permissions,
)
from orilla.core.statuses import EntryStatus, SheetStatus
from orilla.database import session_scope
from orilla.models.entry_message import EntryMessage
from orilla.models.time_entry import TimeEntry
from orilla.repositories.entry_message import EntryMessageRepository
from orilla.repositories.time_entry import TimeEntryRepository
from orilla.repositories.time_sheet import TimeSheetRepository
from orilla.services.permission_context import entry_context

logger = logging.getLogger(__name__)

# action -> (statuses it may start from, status it leads to)
ENTRY_TRANSITIONS = {
    "approve": (frozenset({EntryStatus.PENDING}), EntryStatus.APPROVED),
    "question": (frozenset({EntryStatus.PENDING, EntryStatus.APPROVED}), EntryStatus.QUESTIONED),
    "resolve": (frozenset({EntryStatus.QUESTIONED}), EntryStatus.PENDING),
}

_CHECKS = {
    "approve": can_approve_entry,
    "question": can_question_entry,
    "resolve": can_resolve_question,
}


def apply_transition(
    db: Session,
    actor: Optional[Actor],
    entry_id: str,
    action: str,
    message: Optional[str],
) -> tuple[TimeEntry, Optional[EntryMessage]]:
    """
    Runs inside the caller's session. Returns the entry and the rationale
    message, if one was given.
    """
    entries = TimeEntryRepository(db)
    entry = entries.get(entry_id)

    decision = _CHECKS[action](actor, entry_context(db, actor, entry))
    if not decision.allowed:
        raise PermissionDeniedError(decision.reason)

    sheet = TimeSheetRepository(db).find_sheet_for_entry(entry.id)
    if sheet is None or SheetStatus(sheet.status) != SheetStatus.SUBMITTED:
        raise InvalidStateTransitionError(
            "Entries can only be reviewed while their time sheet is submitted",
            current_status=None if sheet is None else sheet.status,
            action=action,
        )

    sources, target = ENTRY_TRANSITIONS[action]
    current = EntryStatus(entry.status)
    if current not in sources:
        raise ConflictError(
            "TimeEntry",
            entry.id,
            f"Cannot {action} time entry {entry.id}: status is {current.value}",
        )

    try:
        entry = entries.update_status(entry.id, target, actor.id, expected_status=current)
    except ConflictError:
        logger.warning(
            "Time entry status changed concurrently",
            extra={"time_entry_id": entry.id, "action": action, "actor_id": actor.id},
        )
        raise

    note = None
    if message and message.strip():
        note = EntryMessageRepository(db).create(
            time_entry_id=entry.id,
            author_id=actor.id,
            content=message.strip(),
            status_change=target,
        )

    logger.info(
        "Time entry status changed",
        extra={
            "time_entry_id": entry.id,
            "time_sheet_id": sheet.id,
            "actor_id": actor.id,
            "from_status": current.value,
            "to_status": target.value,
        },
    )
    return entry, note


def approve_entry(
    entry_id: str,
    actor: Optional[Actor],
    *,
    message: Optional[str] = None,
    db: Optional[Session] = None,
) -> TimeEntry:
    """
    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    with session_scope(db) as session:
        entry, _ = apply_transition(session, actor, entry_id, "approve", message)
        return entry


def question_entry(
    entry_id: str,
    actor: Optional[Actor],
    *,
    message: Optional[str] = None,
    db: Optional[Session] = None,
) -> TimeEntry:
    with session_scope(db) as session:
        entry, _ = apply_transition(session, actor, entry_id, "question", message)
        return entry


def resolve_question(
    entry_id: str,
    actor: Optional[Actor],
    *,
    message: Optional[str] = None,
    db: Optional[Session] = None,
) -> TimeEntry:
    with session_scope(db) as session:
        entry, _ = apply_transition(session, actor, entry_id, "resolve", message)
        return entry


def transition_for_status(status: EntryStatus) -> str:
    for action, (_, target) in ENTRY_TRANSITIONS.items():
        if target == status:
            return action
    raise ValueError(f"No entry transition leads to {status}")


def get_entry_permissions(
    entry_id: str,
    actor: Optional[Actor],
    *,
    project_id: Optional[str] = None,
    db: Optional[Session] = None,
) -> EntryPermissions:
    with session_scope(db) as session:
        entry = TimeEntryRepository(session).get(entry_id)
        ctx = entry_context(session, actor, entry, project_id=project_id)
        return entry_permissions(actor, ctx, entry_created_by=entry.created_by)
