"""
Permission evaluator for the approval workflow.

Pure functions: every input (actor, project membership, sheet status,
interaction history) is resolved by the caller from persisted state and
passed in. Nothing here touches the database or the request.

Decisions never raise; unauthenticated callers simply get ``allowed=False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from orilla.core.authorization import Actor, is_system_admin
from orilla.core.statuses import SheetStatus

REASON_NOT_AUTHENTICATED = "Not authenticated"
REASON_NO_PROJECT_SCOPE = "no project scope"
REASON_NOT_A_MEMBER = "not a project member"
REASON_CLIENT_INTERACTION = "sheet has client/reviewer interaction, cannot silently revert"
REASON_APPROVED_NEEDS_OVERRIDE = "only a project owner or admin can revert an approved sheet"
REASON_NOT_SUBMITTED = "sheet is not submitted"
REASON_ALREADY_DRAFT = "sheet is already a draft"


class ProjectRole(str, Enum):
    OWNER = "owner"
    EXPERT = "expert"
    REVIEWER = "reviewer"
    CLIENT = "client"
    VIEWER = "viewer"


# Capabilities used by the approval core.
ENTRIES_APPROVE = "entries:approve"
ENTRIES_QUESTION = "entries:question"
MESSAGES_CREATE = "messages:create"
SHEETS_SUBMIT = "time-sheets:submit"
SHEETS_EDIT = "time-sheets:edit"
SHEETS_APPROVE = "time-sheets:approve"

PROJECT_ROLE_PERMISSIONS: dict[ProjectRole, frozenset[str]] = {
    ProjectRole.OWNER: frozenset(
        {
            ENTRIES_APPROVE,
            ENTRIES_QUESTION,
            MESSAGES_CREATE,
            SHEETS_SUBMIT,
            SHEETS_EDIT,
            SHEETS_APPROVE,
        }
    ),
    ProjectRole.EXPERT: frozenset({MESSAGES_CREATE, SHEETS_SUBMIT, SHEETS_EDIT}),
    ProjectRole.REVIEWER: frozenset(
        {ENTRIES_APPROVE, ENTRIES_QUESTION, MESSAGES_CREATE, SHEETS_APPROVE}
    ),
    ProjectRole.CLIENT: frozenset({ENTRIES_APPROVE, ENTRIES_QUESTION, MESSAGES_CREATE}),
    ProjectRole.VIEWER: frozenset({MESSAGES_CREATE}),
}

# Roles whose activity on a sheet counts as client/reviewer interaction.
INTERACTION_ROLES = frozenset({ProjectRole.CLIENT, ProjectRole.REVIEWER, ProjectRole.OWNER})

# Roles that may revert past interaction, or out of approved.
REVERT_OVERRIDE_ROLES = frozenset({ProjectRole.OWNER})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(allowed=True)


def deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


@dataclass(frozen=True)
class PermissionContext:
    project_id: Optional[str] = None
    membership: Optional[ProjectRole] = None
    sheet_status: Optional[SheetStatus] = None
    has_client_interaction: bool = False


def role_has(role: Optional[ProjectRole], capability: str) -> bool:
    if role is None:
        return False
    return capability in PROJECT_ROLE_PERMISSIONS.get(role, frozenset())


def _scoped(actor: Optional[Actor], ctx: PermissionContext, capability: str) -> Decision:
    if actor is None:
        return deny(REASON_NOT_AUTHENTICATED)
    if is_system_admin(actor):
        return ALLOW
    if ctx.project_id is None:
        return deny(REASON_NO_PROJECT_SCOPE)
    if ctx.membership is None:
        return deny(REASON_NOT_A_MEMBER)
    if not role_has(ctx.membership, capability):
        return deny(f"project role '{ctx.membership.value}' lacks {capability}")
    return ALLOW


def can_approve_entry(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    return _scoped(actor, ctx, ENTRIES_APPROVE)


def can_question_entry(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    return _scoped(actor, ctx, ENTRIES_QUESTION)


def can_resolve_question(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    # status changes stay with reviewers; authors answer through comments
    return _scoped(actor, ctx, ENTRIES_QUESTION)


def can_comment(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    return _scoped(actor, ctx, MESSAGES_CREATE)


def can_approve_sheet(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    """User-level check only; ``approval_readiness`` covers the entries."""
    if ctx.sheet_status is not None and ctx.sheet_status != SheetStatus.SUBMITTED:
        return deny(REASON_NOT_SUBMITTED)
    return _scoped(actor, ctx, SHEETS_APPROVE)


def can_reject_sheet(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    if ctx.sheet_status is not None and ctx.sheet_status != SheetStatus.SUBMITTED:
        return deny(REASON_NOT_SUBMITTED)
    return _scoped(actor, ctx, SHEETS_APPROVE)


def can_submit_sheet(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    if actor is None:
        return deny(REASON_NOT_AUTHENTICATED)
    if ctx.project_id is None or is_system_admin(actor):
        return ALLOW
    if ctx.membership is None:
        return deny(REASON_NOT_A_MEMBER)
    if not role_has(ctx.membership, SHEETS_SUBMIT):
        return deny(f"project role '{ctx.membership.value}' lacks {SHEETS_SUBMIT}")
    return ALLOW


def can_revert_to_draft(actor: Optional[Actor], ctx: PermissionContext) -> Decision:
    if actor is None:
        return deny(REASON_NOT_AUTHENTICATED)
    if ctx.sheet_status == SheetStatus.DRAFT:
        return deny(REASON_ALREADY_DRAFT)
    if is_system_admin(actor):
        return ALLOW
    if ctx.project_id is None:
        return deny(REASON_NO_PROJECT_SCOPE)
    if ctx.membership is None:
        return deny(REASON_NOT_A_MEMBER)
    if not (role_has(ctx.membership, SHEETS_EDIT) or role_has(ctx.membership, SHEETS_APPROVE)):
        return deny(f"project role '{ctx.membership.value}' cannot revert time sheets")

    is_override = ctx.membership in REVERT_OVERRIDE_ROLES
    if ctx.sheet_status == SheetStatus.APPROVED and not is_override:
        return deny(REASON_APPROVED_NEEDS_OVERRIDE)
    if ctx.has_client_interaction and not is_override:
        return deny(REASON_CLIENT_INTERACTION)
    return ALLOW


@dataclass(frozen=True)
class EntryPermissions:
    can_approve: bool
    can_question: bool
    can_comment: bool
    is_owner: bool


def entry_permissions(
    actor: Optional[Actor],
    ctx: PermissionContext,
    *,
    entry_created_by: Optional[str],
) -> EntryPermissions:
    return EntryPermissions(
        can_approve=can_approve_entry(actor, ctx).allowed,
        can_question=can_question_entry(actor, ctx).allowed,
        can_comment=can_comment(actor, ctx).allowed,
        is_owner=actor is not None
        and entry_created_by is not None
        and str(entry_created_by) == str(actor.id),
    )


def has_client_interaction(
    interaction_user_ids: set[str],
    *,
    status_changed_by: list[Optional[str]],
    message_author_ids: set[str],
) -> bool:
    """
    True when any entry was status-changed by, or carries a message from, a
    project member holding one of INTERACTION_ROLES.
    """
    if not interaction_user_ids:
        return False
    for changed_by in status_changed_by:
        if changed_by is not None and changed_by in interaction_user_ids:
            return True
    return bool(message_author_ids & interaction_user_ids)


@dataclass(frozen=True)
class ReadScope:
    """Rows a non-admin may read: their own, or anything scoped to a project they belong to."""

    user_id: str
    project_ids: frozenset[str]

    def allows(self, *, created_by: Optional[str], project_ids: Iterable[Optional[str]]) -> bool:
        if created_by is not None and str(created_by) == self.user_id:
            return True
        return any(p is not None and str(p) in self.project_ids for p in project_ids)
