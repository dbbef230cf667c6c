"""
Read-side rollups. Every call recomputes from the time entry rows; no
counter is stored anywhere.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from orilla.core.aggregation import (
    ApprovalReadiness,
    EntryStatusCounts,
    HourTotals,
    approval_progress_message,
    approval_readiness,
    count_by_status,
    hour_totals,
    percent_of_budget,
)
from orilla.core.errors import NotFoundError
from orilla.database import session_scope
from orilla.models.organisation import Organisation
from orilla.models.project import Project
from orilla.models.time_entry import TimeEntry
from orilla.repositories.time_sheet import TimeSheetRepository


@dataclass(frozen=True)
class SheetSummary:
    time_sheet_id: str
    counts: EntryStatusCounts
    hours: HourTotals
    progress_message: str
    readiness: ApprovalReadiness
    budget_hours: Optional[Decimal]
    percent_of_budget: Optional[Decimal]


@dataclass(frozen=True)
class ProjectBudget:
    project_id: str
    name: str
    budget_hours: Optional[Decimal]
    hours: HourTotals
    remaining_hours: Optional[Decimal]
    percent_used: Optional[Decimal]


@dataclass(frozen=True)
class OrganisationBudget:
    organisation_id: str
    name: str
    total_budget_hours: Decimal
    hours: HourTotals
    remaining_hours: Decimal
    percent_used: Optional[Decimal]
    projects: list[ProjectBudget]


def summarize_entries(sheet_id: str, entries, project: Optional[Project] = None) -> SheetSummary:
    counts = count_by_status(entries)
    hours = hour_totals(entries)
    budget = project.budget_hours if project is not None else None
    return SheetSummary(
        time_sheet_id=sheet_id,
        counts=counts,
        hours=hours,
        progress_message=approval_progress_message(counts),
        readiness=approval_readiness(entries),
        budget_hours=budget,
        percent_of_budget=percent_of_budget(hours.total, budget),
    )


def sheet_summary(sheet_id: str, *, db: Optional[Session] = None) -> SheetSummary:
    with session_scope(db) as session:
        found = TimeSheetRepository(session).find_with_entries(sheet_id)
        if found is None:
            raise NotFoundError("TimeSheet", str(sheet_id))
        return summarize_entries(found.time_sheet.id, found.entries, found.project)


def _project_budget(db: Session, project: Project) -> ProjectBudget:
    entries = db.query(TimeEntry).filter(TimeEntry.project_id == project.id).all()
    hours = hour_totals(entries)
    budget = project.budget_hours
    return ProjectBudget(
        project_id=project.id,
        name=project.name,
        budget_hours=budget,
        hours=hours,
        remaining_hours=None if budget is None else budget - hours.total,
        percent_used=percent_of_budget(hours.total, budget),
    )


def project_budget(project_id: str, *, db: Optional[Session] = None) -> ProjectBudget:
    with session_scope(db) as session:
        project = session.get(Project, str(project_id))
        if project is None:
            raise NotFoundError("Project", str(project_id))
        return _project_budget(session, project)


def organisation_budget(organisation_id: str, *, db: Optional[Session] = None) -> OrganisationBudget:
    with session_scope(db) as session:
        organisation = session.get(Organisation, str(organisation_id))
        if organisation is None:
            raise NotFoundError("Organisation", str(organisation_id))

        projects = (
            session.query(Project)
            .filter(Project.organisation_id == organisation.id)
            .order_by(Project.name.asc(), Project.id.asc())
            .all()
        )
        project_ids = [p.id for p in projects]

        # entries booked against the organisation directly or through one of its projects
        q = session.query(TimeEntry)
        if project_ids:
            q = q.filter(
                (TimeEntry.organisation_id == organisation.id) | (TimeEntry.project_id.in_(project_ids))
            )
        else:
            q = q.filter(TimeEntry.organisation_id == organisation.id)
        hours = hour_totals(q.all())

        return OrganisationBudget(
            organisation_id=organisation.id,
            name=organisation.name,
            total_budget_hours=organisation.total_budget_hours,
            hours=hours,
            remaining_hours=organisation.total_budget_hours - hours.total,
            percent_used=percent_of_budget(hours.total, organisation.total_budget_hours),
            projects=[_project_budget(session, p) for p in projects],
        )
