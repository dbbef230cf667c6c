"""
Pure rollups over time entry records.

Everything here takes the member entries as loaded for the current request
and recomputes from them; nothing is cached or stored back.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from orilla.core.statuses import EntryStatus

REASON_ENTRIES_PENDING = "entries pending"
REASON_ENTRIES_QUESTIONED = "entries questioned"
REASON_NO_ENTRIES = "no entries"

_ZERO = Decimal("0")


@dataclass(frozen=True)
class EntryStatusCounts:
    total: int
    pending: int
    approved: int
    questioned: int


@dataclass(frozen=True)
class HourTotals:
    total: Decimal
    approved: Decimal
    pending: Decimal
    questioned: Decimal
    billed: Decimal


@dataclass(frozen=True)
class ApprovalReadiness:
    can_approve: bool
    reason: Optional[str] = None


def _hours(entry) -> Decimal:
    value = entry.hours
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def count_by_status(entries: Iterable) -> EntryStatusCounts:
    pending = approved = questioned = total = 0
    for entry in entries:
        total += 1
        status = EntryStatus(entry.status)
        if status == EntryStatus.PENDING:
            pending += 1
        elif status == EntryStatus.APPROVED:
            approved += 1
        else:
            questioned += 1
    return EntryStatusCounts(total=total, pending=pending, approved=approved, questioned=questioned)


def total_hours(entries: Iterable) -> Decimal:
    return sum((_hours(e) for e in entries), _ZERO)


def hour_totals(entries: Sequence) -> HourTotals:
    by_status = {s: _ZERO for s in EntryStatus}
    billed = _ZERO
    for entry in entries:
        hours = _hours(entry)
        by_status[EntryStatus(entry.status)] += hours
        if entry.billed:
            billed += hours
    return HourTotals(
        total=sum(by_status.values(), _ZERO),
        approved=by_status[EntryStatus.APPROVED],
        pending=by_status[EntryStatus.PENDING],
        questioned=by_status[EntryStatus.QUESTIONED],
        billed=billed,
    )


def approval_readiness(entries: Sequence) -> ApprovalReadiness:
    """
    A sheet is approvable iff it has entries and every one is approved.
    Questioned entries take precedence over pending ones in the reason.
    """
    counts = count_by_status(entries)
    if counts.total == 0:
        return ApprovalReadiness(can_approve=False, reason=REASON_NO_ENTRIES)
    if counts.questioned > 0:
        return ApprovalReadiness(can_approve=False, reason=REASON_ENTRIES_QUESTIONED)
    if counts.pending > 0:
        return ApprovalReadiness(can_approve=False, reason=REASON_ENTRIES_PENDING)
    return ApprovalReadiness(can_approve=True)


def approval_progress_message(counts: EntryStatusCounts) -> str:
    if counts.total == 0:
        return "No entries in this time sheet"
    if counts.approved == counts.total:
        return "All entries approved"
    if counts.questioned > 0:
        noun = "entry has" if counts.questioned == 1 else "entries have"
        return f"{counts.questioned} {noun} open questions"
    return f"{counts.approved} of {counts.total} entries approved"


def percent_of_budget(hours: Decimal, budget_hours) -> Optional[Decimal]:
    if budget_hours is None:
        return None
    budget = budget_hours if isinstance(budget_hours, Decimal) else Decimal(str(budget_hours))
    if budget <= 0:
        return None
    return (hours / budget * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
