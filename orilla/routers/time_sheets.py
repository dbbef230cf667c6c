from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from orilla.core.authorization import Actor, get_current_actor, get_optional_actor
from orilla.core.errors import NotFoundError
from orilla.core.statuses import SheetStatus
from orilla.database import session_scope
from orilla.repositories.time_sheet import TimeSheetRepository, TimeSheetWithEntries
from orilla.schemas.summary import ApprovalReadinessResponse, SheetSummaryResponse
from orilla.schemas.time_entry import ReviewRequest, TimeEntryResponse
from orilla.schemas.time_sheet import (
    AddEntriesRequest,
    RejectRequest,
    ScopeRef,
    SheetActions,
    TimeSheetCreate,
    TimeSheetDetailResponse,
    TimeSheetResponse,
    TimeSheetUpdate,
)
from orilla.services import entry_review, summary_service, time_sheet_workflow
from orilla.services.permission_context import read_scope

router = APIRouter(prefix="/time_sheets", tags=["Time Sheets"])


def _ref(row) -> Optional[ScopeRef]:
    return None if row is None else ScopeRef.model_validate(row)


def _detail(db: Session, found: TimeSheetWithEntries, actor: Optional[Actor]) -> TimeSheetDetailResponse:
    summary = summary_service.summarize_entries(found.time_sheet.id, found.entries, found.project)
    actions = time_sheet_workflow.action_permissions(found.time_sheet.id, actor, db=db)
    return TimeSheetDetailResponse(
        time_sheet=TimeSheetResponse.model_validate(found.time_sheet),
        entries=[TimeEntryResponse.model_validate(e) for e in found.entries],
        total_hours=found.total_hours,
        organisation=_ref(found.organisation),
        project=_ref(found.project),
        account=_ref(found.account),
        summary=SheetSummaryResponse.model_validate(summary),
        can_approve=ApprovalReadinessResponse.model_validate(summary.readiness),
        actions=SheetActions.model_validate(actions),
    )


def _require_member_entry(db: Session, sheet_id: str, entry_id: str) -> None:
    sheets = TimeSheetRepository(db)
    sheets.get(sheet_id)
    if str(entry_id) not in set(sheets.entry_ids_in_sheet(sheet_id)):
        raise NotFoundError("TimeSheetEntry", str(entry_id))


@router.post("", response_model=TimeSheetResponse)
def create_time_sheet(
    payload: TimeSheetCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        sheet = time_sheet_workflow.create_sheet(actor, db=db, **payload.model_dump())
        return TimeSheetResponse.model_validate(sheet)


@router.get("", response_model=list[TimeSheetResponse])
def list_time_sheets(
    status: Optional[SheetStatus] = None,
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_current_actor),
):
    with session_scope() as db:
        rows = time_sheet_workflow.list_sheets(
            status=status,
            organisation_id=organisation_id,
            project_id=project_id,
            scope=read_scope(db, actor),
            limit=limit,
            offset=offset,
            db=db,
        )
        return [TimeSheetResponse.model_validate(r) for r in rows]


@router.get("/available_entries", response_model=list[TimeEntryResponse])
def list_available_entries(
    organisation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
):
    with session_scope() as db:
        rows = time_sheet_workflow.available_entries(
            organisation_id=organisation_id,
            project_id=project_id,
            scope=read_scope(db, actor),
            db=db,
        )
        return [TimeEntryResponse.model_validate(r) for r in rows]


@router.get("/{sheet_id}", response_model=TimeSheetDetailResponse)
def get_time_sheet(sheet_id: str, actor: Actor = Depends(get_current_actor)):
    with session_scope() as db:
        found = time_sheet_workflow.get_sheet(sheet_id, scope=read_scope(db, actor), db=db)
        return _detail(db, found, actor)


@router.patch("/{sheet_id}", response_model=TimeSheetResponse)
def update_time_sheet(
    sheet_id: str,
    payload: TimeSheetUpdate,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        sheet = time_sheet_workflow.update_sheet(
            sheet_id, actor, payload.model_dump(exclude_unset=True), db=db
        )
        return TimeSheetResponse.model_validate(sheet)


@router.delete("/{sheet_id}", status_code=204)
def delete_time_sheet(sheet_id: str, actor: Optional[Actor] = Depends(get_optional_actor)):
    time_sheet_workflow.delete_sheet(sheet_id, actor)
    return Response(status_code=204)


@router.post("/{sheet_id}/entries", response_model=TimeSheetDetailResponse)
def add_entries_to_sheet(
    sheet_id: str,
    payload: AddEntriesRequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        found = time_sheet_workflow.add_entries(sheet_id, payload.entry_ids, actor, db=db)
        return _detail(db, found, actor)


@router.delete("/{sheet_id}/entries/{entry_id}", response_model=TimeSheetDetailResponse)
def remove_entry_from_sheet(
    sheet_id: str,
    entry_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        found = time_sheet_workflow.remove_entry(sheet_id, entry_id, actor, db=db)
        return _detail(db, found, actor)


@router.post("/{sheet_id}/submit", response_model=TimeSheetResponse)
def submit_time_sheet(sheet_id: str, actor: Optional[Actor] = Depends(get_optional_actor)):
    return TimeSheetResponse.model_validate(time_sheet_workflow.submit(sheet_id, actor))


@router.post("/{sheet_id}/approve", response_model=TimeSheetResponse)
def approve_time_sheet(sheet_id: str, actor: Optional[Actor] = Depends(get_optional_actor)):
    return TimeSheetResponse.model_validate(time_sheet_workflow.approve(sheet_id, actor))


@router.post("/{sheet_id}/reject", response_model=TimeSheetResponse)
def reject_time_sheet(
    sheet_id: str,
    payload: Optional[RejectRequest] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    reason = payload.reason if payload is not None else None
    return TimeSheetResponse.model_validate(
        time_sheet_workflow.reject(sheet_id, actor, reason=reason)
    )


@router.post("/{sheet_id}/revert", response_model=TimeSheetResponse)
def revert_time_sheet(sheet_id: str, actor: Optional[Actor] = Depends(get_optional_actor)):
    return TimeSheetResponse.model_validate(time_sheet_workflow.revert_to_draft(sheet_id, actor))


@router.get("/{sheet_id}/can_approve", response_model=ApprovalReadinessResponse)
def can_approve_time_sheet(sheet_id: str, actor: Actor = Depends(get_current_actor)):
    with session_scope() as db:
        readiness = time_sheet_workflow.can_approve(sheet_id, scope=read_scope(db, actor), db=db)
        return ApprovalReadinessResponse.model_validate(readiness)


@router.post("/{sheet_id}/entries/{entry_id}/approve", response_model=TimeEntryResponse)
def approve_entry_in_sheet(
    sheet_id: str,
    entry_id: str,
    payload: Optional[ReviewRequest] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        _require_member_entry(db, sheet_id, entry_id)
        entry = entry_review.approve_entry(
            entry_id, actor, message=payload.message if payload else None, db=db
        )
        return TimeEntryResponse.model_validate(entry)


@router.post("/{sheet_id}/entries/{entry_id}/question", response_model=TimeEntryResponse)
def question_entry_in_sheet(
    sheet_id: str,
    entry_id: str,
    payload: Optional[ReviewRequest] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        _require_member_entry(db, sheet_id, entry_id)
        entry = entry_review.question_entry(
            entry_id, actor, message=payload.message if payload else None, db=db
        )
        return TimeEntryResponse.model_validate(entry)


@router.post("/{sheet_id}/entries/{entry_id}/resolve", response_model=TimeEntryResponse)
def resolve_entry_question(
    sheet_id: str,
    entry_id: str,
    payload: Optional[ReviewRequest] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    with session_scope() as db:
        _require_member_entry(db, sheet_id, entry_id)
        entry = entry_review.resolve_question(
            entry_id, actor, message=payload.message if payload else None, db=db
        )
        return TimeEntryResponse.model_validate(entry)
