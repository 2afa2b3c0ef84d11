"""
Tests for NotificationTracker and UnreadSummary.
"""

from sitio_review.core.notifications import NotificationTracker, UnreadSummary
from sitio_review.data.models import PendingChange


def _change(status: str) -> PendingChange:
    return PendingChange(status=status, status_change_seen_by_submitter=1)


class TestUnreadSummary:

    def test_empty(self):
        summary = UnreadSummary()
        assert summary.total == 0
        assert summary.message == ""

    def test_message_in_display_order(self):
        summary = UnreadSummary(counts={"needs_revision": 1, "approved": 3})
        assert summary.message == "3 approved, 1 needs revision"
        assert summary.total == 4

    def test_conflict_label(self):
        assert UnreadSummary(counts={"conflict": 2}).message == "2 in conflict"


class TestNotify:

    def test_reviewer_decisions_clear_seen_flag(self):
        tracker = NotificationTracker()
        for status in ("approved", "rejected", "needs_revision", "conflict"):
            change = _change(status)
            tracker.notify(change)
            assert change.seen_by_submitter is False

    def test_pending_does_not_notify(self):
        change = _change("pending")
        NotificationTracker().notify(change)
        assert change.seen_by_submitter is True

    def test_acknowledge(self):
        change = _change("approved")
        change.status_change_seen_by_submitter = 0
        NotificationTracker().acknowledge(change)
        assert change.seen_by_submitter is True
