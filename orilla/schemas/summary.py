from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StatusCountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    pending: int
    approved: int
    questioned: int


class HourTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: Decimal
    approved: Decimal
    pending: Decimal
    questioned: Decimal
    billed: Decimal


class ApprovalReadinessResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_approve: bool
    reason: Optional[str] = None


class SheetSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    counts: StatusCountsResponse
    hours: HourTotalsResponse
    progress_message: str
    readiness: ApprovalReadinessResponse
    budget_hours: Optional[Decimal]
    percent_of_budget: Optional[Decimal]


class ProjectBudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    name: str
    budget_hours: Optional[Decimal]
    hours: HourTotalsResponse
    remaining_hours: Optional[Decimal]
    percent_used: Optional[Decimal]


class OrganisationBudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organisation_id: str
    name: str
    total_budget_hours: Decimal
    hours: HourTotalsResponse
    remaining_hours: Decimal
    percent_used: Optional[Decimal]
    projects: list[ProjectBudgetResponse]
