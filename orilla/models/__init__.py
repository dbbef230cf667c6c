from orilla.models.entry_message import EntryMessage
from orilla.models.organisation import Account, Organisation
from orilla.models.project import Project, ProjectMember
from orilla.models.time_entry import TimeEntry
from orilla.models.time_sheet import TimeSheet, TimeSheetEntry
from orilla.models.user import User

__all__ = [
    "Account",
    "EntryMessage",
    "Organisation",
    "Project",
    "ProjectMember",
    "TimeEntry",
    "TimeSheet",
    "TimeSheetEntry",
    "User",
]
