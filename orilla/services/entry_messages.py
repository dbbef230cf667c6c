import logging
from typing import Optional

from sqlalchemy.orm import Session

from orilla.core.authorization import Actor
from orilla.core.errors import PermissionDeniedError, ValidationError
from orilla.core.permissions import REASON_NOT_AUTHENTICATED, ReadScope, can_comment
from orilla.core.statuses import EntryStatus
from orilla.database import session_scope
from orilla.models.entry_message import EntryMessage
from orilla.repositories.entry_message import EntryMessageRepository
from orilla.repositories.time_entry import TimeEntryRepository
from orilla.services import entry_review, time_entries
from orilla.services.permission_context import entry_context

logger = logging.getLogger(__name__)


def create_message(
    entry_id: str,
    actor: Optional[Actor],
    content: str,
    *,
    status_change: Optional[EntryStatus] = None,
    db: Optional[Session] = None,
) -> EntryMessage:
    """
    Append a message to an entry's thread.

    With ``status_change`` the matching entry transition runs in the same
    transaction as the insert: either both land or neither does.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    """
    if actor is None:
        raise PermissionDeniedError(REASON_NOT_AUTHENTICATED)
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content must not be empty")

    with session_scope(db) as session:
        entry = TimeEntryRepository(session).get(entry_id)

        decision = can_comment(actor, entry_context(session, actor, entry))
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        messages = EntryMessageRepository(session)
        if status_change is None:
            message = messages.create(time_entry_id=entry.id, author_id=actor.id, content=content)
        else:
            action = entry_review.transition_for_status(status_change)
            _, message = entry_review.apply_transition(session, actor, entry.id, action, content)

        logger.info(
            "Entry message created",
            extra={
                "time_entry_id": entry.id,
                "actor_id": actor.id,
                "message_id": message.id,
                "status_change": None if status_change is None else status_change.value,
            },
        )
        return message


def list_messages(
    entry_id: str,
    *,
    scope: Optional[ReadScope] = None,
    db: Optional[Session] = None,
) -> list[EntryMessage]:
    """Oldest first. A reader who cannot see the entry cannot see its thread."""
    with session_scope(db) as session:
        entry = TimeEntryRepository(session).get(entry_id)
        time_entries.require_visible(session, scope, entry)
        return EntryMessageRepository(session).find_by_entry_id(entry_id)


def count_messages(entry_id: str, *, db: Optional[Session] = None) -> int:
    with session_scope(db) as session:
        return EntryMessageRepository(session).count_by_entry_id(entry_id)


def latest_message(entry_id: str, *, db: Optional[Session] = None) -> Optional[EntryMessage]:
    with session_scope(db) as session:
        return EntryMessageRepository(session).find_latest_by_entry_id(entry_id)
