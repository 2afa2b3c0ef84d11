"""
RevisionLedger — append-only history of a pending change.

One RevisionEntry is appended per recorded transition (create, approve,
reject, request revision, resubmit). Entries are never edited or removed;
they disappear only together with their change when it is withdrawn.

The ledger answers "who did what and when", which status alone cannot:
a change that is ``pending`` may be a fresh submission or the third
resubmission after two rejections.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sitio_review.core.state_machine import RevisionAction
from sitio_review.data.models import PendingChange, RevisionEntry, utcnow_str


class RevisionLedger:
    """Appends and reads RevisionEntry rows on a PendingChange."""

    def append(
        self,
        change: PendingChange,
        action: RevisionAction | str,
        user_id: int,
        user_name: str = "",
        comment: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> RevisionEntry:
        """
        Append an entry to *change*'s history.

        Raises:
            ValueError: if the first entry is not 'submitted', or if the
                timestamp precedes the last recorded entry.
        """
        action = RevisionAction(action)
        history = change.revision_history
        timestamp = timestamp or utcnow_str()

        if not history and action is not RevisionAction.SUBMITTED:
            raise ValueError(
                f"First ledger entry must be 'submitted', got {action.value!r}"
            )
        if history and _parse(timestamp) < _parse(history[-1].timestamp):
            raise ValueError(
                f"Ledger timestamp {timestamp} precedes last entry {history[-1].timestamp}"
            )

        entry = RevisionEntry(
            sequence=history[-1].sequence + 1 if history else 1,
            action=action.value,
            user_id=user_id,
            user_name=user_name,
            timestamp=timestamp,
            comment=comment,
        )
        history.append(entry)
        return entry

    def entries(self, change: PendingChange) -> tuple[RevisionEntry, ...]:
        return tuple(change.revision_history)

    def last_action(self, change: PendingChange) -> Optional[RevisionAction]:
        history = change.revision_history
        return RevisionAction(history[-1].action) if history else None

    def count(self, change: PendingChange, action: RevisionAction | str) -> int:
        action = RevisionAction(action)
        return sum(1 for entry in change.revision_history if entry.action == action.value)


def _parse(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp)
