from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from orilla.core.statuses import EntryStatus


class EntryMessageCreate(BaseModel):
    content: str = Field(min_length=1)
    status_change: Optional[EntryStatus] = None


class EntryMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    time_entry_id: str
    author_id: str
    content: str
    status_change: Optional[str]
    created_at: datetime
