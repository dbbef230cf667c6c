from dataclasses import dataclass
from enum import Enum


class EntryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    QUESTIONED = "questioned"


class SheetStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class StatusPresentation:
    label: str
    # neutral | attention | positive | negative
    category: str


STATUS_PRESENTATION = {
    EntryStatus.PENDING: StatusPresentation("Pending", "neutral"),
    EntryStatus.QUESTIONED: StatusPresentation("Questioned", "attention"),
    EntryStatus.APPROVED: StatusPresentation("Approved", "positive"),
    SheetStatus.DRAFT: StatusPresentation("Draft", "neutral"),
    SheetStatus.SUBMITTED: StatusPresentation("Submitted", "attention"),
    SheetStatus.APPROVED: StatusPresentation("Approved", "positive"),
    SheetStatus.REJECTED: StatusPresentation("Rejected", "negative"),
}


def entry_presentation(value: str) -> StatusPresentation:
    return STATUS_PRESENTATION[EntryStatus(value)]


def sheet_presentation(value: str) -> StatusPresentation:
    return STATUS_PRESENTATION[SheetStatus(value)]
