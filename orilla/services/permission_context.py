"""
Resolves the persisted state the permission evaluator needs.

The evaluator in ``orilla.core.permissions`` is pure; everything it is told
about memberships, sheet status and client interaction is loaded here, once
per request, from the repositories.
"""

from typing import Optional

from sqlalchemy.orm import Session

from orilla.core.authorization import Actor, is_system_admin
from orilla.core.permissions import (
    INTERACTION_ROLES,
    PermissionContext,
    ProjectRole,
    ReadScope,
    has_client_interaction,
)
from orilla.core.statuses import SheetStatus
from orilla.models.time_entry import TimeEntry
from orilla.models.time_sheet import TimeSheet
from orilla.repositories.entry_message import EntryMessageRepository
from orilla.repositories.project_member import ProjectMemberRepository
from orilla.repositories.time_sheet import TimeSheetRepository


def project_role_for(db: Session, project_id: Optional[str], actor: Optional[Actor]) -> Optional[ProjectRole]:
    if actor is None or project_id is None:
        return None
    member = ProjectMemberRepository(db).find_by_project_and_user(project_id, actor.id)
    if member is None:
        return None
    return ProjectRole(member.role)


def detect_client_interaction(db: Session, sheet: TimeSheet) -> bool:
    if not sheet.project_id:
        return False

    members = ProjectMemberRepository(db).find_by_project_id(sheet.project_id)
    interaction_user_ids = {
        m.user_id for m in members if ProjectRole(m.role) in INTERACTION_ROLES
    }
    if not interaction_user_ids:
        return False

    sheets = TimeSheetRepository(db)
    entries = sheets.get_entries_in_sheet(sheet.id)
    entry_ids = [e.id for e in entries]

    return has_client_interaction(
        interaction_user_ids,
        status_changed_by=[e.status_changed_by for e in entries],
        message_author_ids=EntryMessageRepository(db).author_ids_for_entries(entry_ids),
    )


def sheet_context(
    db: Session,
    actor: Optional[Actor],
    sheet: TimeSheet,
    *,
    with_interaction: bool = False,
) -> PermissionContext:
    return PermissionContext(
        project_id=sheet.project_id,
        membership=project_role_for(db, sheet.project_id, actor),
        sheet_status=SheetStatus(sheet.status),
        has_client_interaction=detect_client_interaction(db, sheet) if with_interaction else False,
    )


def entry_context(
    db: Session,
    actor: Optional[Actor],
    entry: TimeEntry,
    *,
    project_id: Optional[str] = None,
) -> PermissionContext:
    """
    Project scope is, in order: the explicit ``project_id``, the entry's own
    project, then the project of the sheet holding the entry.
    """
    sheet = TimeSheetRepository(db).find_sheet_for_entry(entry.id)
    scope = project_id or entry.project_id or (sheet.project_id if sheet is not None else None)
    return PermissionContext(
        project_id=scope,
        membership=project_role_for(db, scope, actor),
        sheet_status=SheetStatus(sheet.status) if sheet is not None else None,
    )


def read_scope(db: Session, actor: Actor) -> Optional[ReadScope]:
    """None for system admins, who read everything."""
    if is_system_admin(actor):
        return None
    return ReadScope(
        user_id=str(actor.id),
        project_ids=frozenset(ProjectMemberRepository(db).project_ids_for_user(actor.id)),
    )
