from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from orilla.core.authorization import Actor, get_current_actor, get_optional_actor
from orilla.core.statuses import EntryStatus
from orilla.database import session_scope
from orilla.schemas.entry_message import EntryMessageCreate, EntryMessageResponse
from orilla.schemas.time_entry import (
    EntryPermissionsResponse,
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryUpdate,
)
from orilla.services import entry_messages, entry_review, time_entries
from orilla.services.permission_context import read_scope

router = APIRouter(
    prefix="/time_entries",
    tags=["Time Entries"],
)


@router.post("", response_model=TimeEntryResponse)
def create_time_entry(
    payload: TimeEntryCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    entry = time_entries.create_entry(actor, **payload.model_dump())
    return TimeEntryResponse.model_validate(entry)


@router.get("", response_model=list[TimeEntryResponse])
def list_time_entries(
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    created_by: Optional[str] = None,
    status: Optional[EntryStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_current_actor),
):
    with session_scope() as db:
        rows = time_entries.list_entries(
            organisation_id=organisation_id,
            project_id=project_id,
            created_by=created_by,
            status=status,
            date_from=date_from,
            date_to=date_to,
            scope=read_scope(db, actor),
            limit=limit,
            offset=offset,
            db=db,
        )
        return [TimeEntryResponse.model_validate(r) for r in rows]


@router.get("/{entry_id}", response_model=TimeEntryResponse)
def get_time_entry(entry_id: str, actor: Actor = Depends(get_current_actor)):
    with session_scope() as db:
        entry = time_entries.get_entry(entry_id, scope=read_scope(db, actor), db=db)
        return TimeEntryResponse.model_validate(entry)


@router.patch("/{entry_id}", response_model=TimeEntryResponse)
def update_time_entry(
    entry_id: str,
    payload: TimeEntryUpdate,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    entry = time_entries.update_entry(entry_id, actor, payload.model_dump(exclude_unset=True))
    return TimeEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", status_code=204)
def delete_time_entry(entry_id: str, actor: Optional[Actor] = Depends(get_optional_actor)):
    time_entries.delete_entry(entry_id, actor)
    return Response(status_code=204)


@router.get("/{entry_id}/permissions", response_model=EntryPermissionsResponse)
def get_time_entry_permissions(
    entry_id: str,
    project_id: Optional[str] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    perms = entry_review.get_entry_permissions(entry_id, actor, project_id=project_id)
    return EntryPermissionsResponse.model_validate(perms)


@router.get("/{entry_id}/messages", response_model=list[EntryMessageResponse])
def list_entry_messages(entry_id: str, actor: Actor = Depends(get_current_actor)):
    with session_scope() as db:
        rows = entry_messages.list_messages(entry_id, scope=read_scope(db, actor), db=db)
        return [EntryMessageResponse.model_validate(m) for m in rows]


@router.post("/{entry_id}/messages", response_model=EntryMessageResponse)
def create_entry_message(
    entry_id: str,
    payload: EntryMessageCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    message = entry_messages.create_message(
        entry_id, actor, payload.content, status_change=payload.status_change
    )
    return EntryMessageResponse.model_validate(message)
