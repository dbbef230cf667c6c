import pytest

from orilla.core.authorization import Actor, SystemRole
from orilla.core.permissions import (
    REASON_CLIENT_INTERACTION,
    REASON_NO_PROJECT_SCOPE,
    REASON_NOT_A_MEMBER,
    REASON_NOT_AUTHENTICATED,
    REASON_NOT_SUBMITTED,
    PermissionContext,
    ProjectRole,
    ReadScope,
    can_approve_entry,
    can_approve_sheet,
    can_comment,
    can_question_entry,
    can_reject_sheet,
    can_revert_to_draft,
    can_submit_sheet,
    entry_permissions,
    has_client_interaction,
)
from orilla.core.statuses import SheetStatus

USER = Actor(id="u-1", system_role=SystemRole.USER)
ADMIN = Actor(id="u-admin", system_role=SystemRole.ADMIN)
SUPER = Actor(id="u-super", system_role=SystemRole.SUPER_ADMIN)


def _ctx(role=None, status=SheetStatus.SUBMITTED, project_id="p-1", interaction=False):
    return PermissionContext(
        project_id=project_id,
        membership=role,
        sheet_status=status,
        has_client_interaction=interaction,
    )


@pytest.mark.parametrize(
    "check",
    [can_approve_entry, can_question_entry, can_comment, can_approve_sheet, can_reject_sheet, can_revert_to_draft],
)
def test_unauthenticated_actor_is_denied_without_raising(check):
    decision = check(None, _ctx(ProjectRole.OWNER))
    assert decision.allowed is False
    assert decision.reason == REASON_NOT_AUTHENTICATED


@pytest.mark.parametrize(
    "role,approve,question,comment",
    [
        (ProjectRole.OWNER, True, True, True),
        (ProjectRole.REVIEWER, True, True, True),
        (ProjectRole.CLIENT, True, True, True),
        (ProjectRole.EXPERT, False, False, True),
        (ProjectRole.VIEWER, False, False, True),
    ],
)
def test_entry_actions_follow_role_table(role, approve, question, comment):
    ctx = _ctx(role)
    assert can_approve_entry(USER, ctx).allowed is approve
    assert can_question_entry(USER, ctx).allowed is question
    assert can_comment(USER, ctx).allowed is comment


def test_non_member_is_denied_everything_on_project_sheet():
    ctx = _ctx(None)
    for check in (can_approve_entry, can_question_entry, can_comment, can_approve_sheet, can_reject_sheet):
        decision = check(USER, ctx)
        assert decision.allowed is False
        assert decision.reason == REASON_NOT_A_MEMBER


def test_sheet_without_project_only_admits_system_admins():
    ctx = _ctx(None, project_id=None)
    denied = can_approve_sheet(USER, ctx)
    assert denied.allowed is False
    assert denied.reason == REASON_NO_PROJECT_SCOPE
    assert can_comment(USER, ctx).reason == REASON_NO_PROJECT_SCOPE

    assert can_approve_sheet(ADMIN, ctx).allowed is True
    assert can_approve_sheet(SUPER, ctx).allowed is True
    assert can_question_entry(ADMIN, ctx).allowed is True


def test_reject_requires_submitted_sheet():
    decision = can_reject_sheet(ADMIN, _ctx(status=SheetStatus.DRAFT))
    assert decision.allowed is False
    assert decision.reason == REASON_NOT_SUBMITTED

    assert can_reject_sheet(USER, _ctx(ProjectRole.REVIEWER)).allowed is True
    assert can_reject_sheet(USER, _ctx(ProjectRole.CLIENT)).allowed is False


def test_revert_blocked_by_client_interaction_unless_override_role():
    blocked = can_revert_to_draft(USER, _ctx(ProjectRole.EXPERT, interaction=True))
    assert blocked.allowed is False
    assert blocked.reason == REASON_CLIENT_INTERACTION

    assert can_revert_to_draft(USER, _ctx(ProjectRole.EXPERT)).allowed is True
    assert can_revert_to_draft(USER, _ctx(ProjectRole.OWNER, interaction=True)).allowed is True
    assert can_revert_to_draft(ADMIN, _ctx(None, interaction=True)).allowed is True


def test_revert_from_approved_needs_override_role():
    assert can_revert_to_draft(USER, _ctx(ProjectRole.REVIEWER, status=SheetStatus.APPROVED)).allowed is False
    assert can_revert_to_draft(USER, _ctx(ProjectRole.OWNER, status=SheetStatus.APPROVED)).allowed is True
    assert can_revert_to_draft(USER, _ctx(ProjectRole.VIEWER, status=SheetStatus.REJECTED)).allowed is False


def test_submit_open_to_any_user_without_project_scope():
    assert can_submit_sheet(USER, _ctx(None, project_id=None, status=SheetStatus.DRAFT)).allowed is True
    assert can_submit_sheet(USER, _ctx(ProjectRole.EXPERT, status=SheetStatus.DRAFT)).allowed is True
    assert can_submit_sheet(USER, _ctx(ProjectRole.CLIENT, status=SheetStatus.DRAFT)).allowed is False


def test_entry_ownership_grants_nothing():
    perms = entry_permissions(USER, _ctx(ProjectRole.EXPERT), entry_created_by=USER.id)
    assert perms.is_owner is True
    assert perms.can_approve is False
    assert perms.can_question is False
    assert perms.can_comment is True

    anonymous = entry_permissions(None, _ctx(ProjectRole.OWNER), entry_created_by=USER.id)
    assert anonymous == type(anonymous)(False, False, False, False)


def test_client_interaction_detection():
    interacting = {"client-1", "owner-1"}
    assert has_client_interaction(interacting, status_changed_by=[None, "client-1"], message_author_ids=set())
    assert has_client_interaction(interacting, status_changed_by=[None], message_author_ids={"owner-1"})
    assert not has_client_interaction(interacting, status_changed_by=["expert-1"], message_author_ids={"expert-1"})
    assert not has_client_interaction(set(), status_changed_by=["client-1"], message_author_ids={"client-1"})


def test_read_scope_allows_own_rows_and_member_projects():
    scope = ReadScope(user_id="u1", project_ids=frozenset({"p1"}))
    assert scope.allows(created_by="u1", project_ids=[None])
    assert scope.allows(created_by="u2", project_ids=[None, "p1"])
    assert not scope.allows(created_by="u2", project_ids=["p2", None])
    assert not scope.allows(created_by=None, project_ids=[])
