from datetime import date as Date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from orilla.core.statuses import entry_presentation


class TimeEntryCreate(BaseModel):
    title: str = Field(min_length=1)
    hours: Decimal = Field(gt=0, max_digits=6, decimal_places=2)
    date: Date
    description: str = ""
    organisation_id: Optional[str] = None
    project_id: Optional[str] = None
    billed: bool = False


class TimeEntryUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    hours: Optional[Decimal] = Field(default=None, gt=0, max_digits=6, decimal_places=2)
    date: Optional[Date] = None
    description: Optional[str] = None
    organisation_id: Optional[str] = None
    project_id: Optional[str] = None
    billed: Optional[bool] = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: Optional[str]
    project_id: Optional[str]
    title: str
    description: str
    date: Date
    hours: Decimal
    billed: bool
    status: str
    status_changed_at: Optional[datetime]
    status_changed_by: Optional[str]
    approved_at: Optional[datetime]
    created_by: Optional[str]
    created_at: datetime
    last_edited_at: Optional[datetime]

    @computed_field
    @property
    def status_label(self) -> str:
        return entry_presentation(self.status).label

    @computed_field
    @property
    def status_category(self) -> str:
        return entry_presentation(self.status).category


class EntryPermissionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_approve: bool
    can_question: bool
    can_comment: bool
    is_owner: bool


class ReviewRequest(BaseModel):
    message: Optional[str] = None
