"""
NotificationTracker — the "unseen status change" flag on pending changes.

A reviewer decision (approved, rejected, needs revision) or a detected
conflict clears ``status_change_seen_by_submitter``. The submitter's UI
sets it again when the change detail is opened, or in bulk on page load.
The UI uses the unread set to show one aggregated notice, e.g.
"3 approved, 1 needs revision".
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from sitio_review.core.state_machine import NOTIFYING_STATUSES, Status
from sitio_review.data.models import PendingChange
from sitio_review.data.repositories import PendingChangeFilters, PendingChangeRepository

# Statuses reported to the submitter, in display order
_UNREAD_STATUSES = (Status.APPROVED, Status.REJECTED, Status.NEEDS_REVISION, Status.CONFLICT)

_LABELS = {
    Status.APPROVED: "approved",
    Status.REJECTED: "rejected",
    Status.NEEDS_REVISION: "needs revision",
    Status.CONFLICT: "in conflict",
}


@dataclass
class UnreadSummary:
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def message(self) -> str:
        """One-line notice, e.g. '3 approved, 1 needs revision'; empty when nothing is unread."""
        parts = [
            f"{self.counts[status.value]} {_LABELS[status]}"
            for status in _UNREAD_STATUSES
            if self.counts.get(status.value)
        ]
        return ", ".join(parts)


class NotificationTracker:
    """Reads and flips the seen flag. Stateless; works on the caller's session."""

    def notify(self, change: PendingChange) -> None:
        """Flag *change* as unseen if its status is one the submitter must hear about."""
        if Status(change.status) in NOTIFYING_STATUSES | {Status.CONFLICT}:
            change.status_change_seen_by_submitter = 0

    def acknowledge(self, change: PendingChange) -> None:
        change.status_change_seen_by_submitter = 1

    def acknowledge_all(self, session: Session, user_id: int) -> int:
        return PendingChangeRepository(session).mark_all_seen(user_id)

    def unread(self, session: Session, user_id: int) -> list[PendingChange]:
        return PendingChangeRepository(session).get_pending_changes(
            PendingChangeFilters(
                submitted_by_user_id=user_id,
                status=[s.value for s in _UNREAD_STATUSES],
                unseen_only=True,
            )
        )

    def summarize(self, session: Session, user_id: int) -> UnreadSummary:
        counts: dict[str, int] = {}
        for change in self.unread(session, user_id):
            counts[change.status] = counts.get(change.status, 0) + 1
        return UnreadSummary(counts=counts)
