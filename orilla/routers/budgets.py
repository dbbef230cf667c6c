from fastapi import APIRouter, Depends

from orilla.core.authorization import (
    Actor,
    SystemRole,
    get_current_actor,
    is_system_admin,
    require_system_role,
)
from orilla.core.errors import PermissionDeniedError
from orilla.core.permissions import REASON_NOT_A_MEMBER
from orilla.database import session_scope
from orilla.schemas.summary import OrganisationBudgetResponse, ProjectBudgetResponse
from orilla.services import summary_service
from orilla.services.permission_context import project_role_for

router = APIRouter(prefix="/budgets", tags=["Budgets"])


@router.get("/projects/{project_id}", response_model=ProjectBudgetResponse)
def get_project_budget(project_id: str, actor: Actor = Depends(get_current_actor)):
    with session_scope() as db:
        budget = summary_service.project_budget(project_id, db=db)
        if not is_system_admin(actor) and project_role_for(db, project_id, actor) is None:
            raise PermissionDeniedError(REASON_NOT_A_MEMBER)
        return ProjectBudgetResponse.model_validate(budget)


@router.get("/organisations/{organisation_id}", response_model=OrganisationBudgetResponse)
def get_organisation_budget(
    organisation_id: str,
    _actor: Actor = Depends(require_system_role(SystemRole.ADMIN)),
):
    return OrganisationBudgetResponse.model_validate(
        summary_service.organisation_budget(organisation_id)
    )
