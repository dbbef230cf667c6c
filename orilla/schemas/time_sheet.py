from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from orilla.core.statuses import sheet_presentation
from orilla.schemas.summary import ApprovalReadinessResponse, SheetSummaryResponse
from orilla.schemas.time_entry import TimeEntryResponse


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValueError("start_date must be on or before end_date")


class TimeSheetCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    organisation_id: Optional[str] = None
    project_id: Optional[str] = None
    account_id: Optional[str] = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        _check_range(self.start_date, self.end_date)
        return self


class TimeSheetUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    organisation_id: Optional[str] = None
    project_id: Optional[str] = None
    account_id: Optional[str] = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        _check_range(self.start_date, self.end_date)
        return self


class AddEntriesRequest(BaseModel):
    entry_ids: list[str] = Field(min_length=1)


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class TimeSheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    start_date: Optional[date]
    end_date: Optional[date]
    status: str
    organisation_id: Optional[str]
    project_id: Optional[str]
    account_id: Optional[str]
    rejection_reason: Optional[str]
    submitted_at: Optional[datetime]
    approved_at: Optional[datetime]
    approved_by: Optional[str]
    rejected_at: Optional[datetime]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def status_label(self) -> str:
        return sheet_presentation(self.status).label

    @computed_field
    @property
    def status_category(self) -> str:
        return sheet_presentation(self.status).category


class ActionGate(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class SheetActions(BaseModel):
    submit: ActionGate
    approve: ActionGate
    reject: ActionGate
    revert: ActionGate


class ScopeRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class TimeSheetDetailResponse(BaseModel):
    time_sheet: TimeSheetResponse
    entries: list[TimeEntryResponse]
    total_hours: Decimal
    organisation: Optional[ScopeRef] = None
    project: Optional[ScopeRef] = None
    account: Optional[ScopeRef] = None
    summary: Optional[SheetSummaryResponse] = None
    can_approve: Optional[ApprovalReadinessResponse] = None
    actions: Optional[SheetActions] = None
