"""
Tests for RevisionLedger.
Uses transient PendingChange objects; no session is needed to append.
"""

import pytest

from sitio_review.core.ledger import RevisionLedger
from sitio_review.core.state_machine import RevisionAction
from sitio_review.data.models import PendingChange


def _change() -> PendingChange:
    change = PendingChange(
        resource_type="sitio",
        resource_id=7,
        resource_name="Sitio Malipayon",
        status="pending",
        submitted_by_user_id=11,
    )
    change.proposed_data = {"population": 450}
    return change


class TestAppend:

    def test_first_entry_is_submitted(self):
        ledger = RevisionLedger()
        change = _change()
        entry = ledger.append(change, RevisionAction.SUBMITTED, 11, "Ana", "initial")
        assert entry.sequence == 1
        assert entry.action == "submitted"
        assert entry.comment == "initial"
        assert ledger.entries(change) == (entry,)

    def test_first_entry_must_be_submitted(self):
        with pytest.raises(ValueError, match="submitted"):
            RevisionLedger().append(_change(), RevisionAction.APPROVED, 42)

    def test_sequence_increments(self):
        ledger = RevisionLedger()
        change = _change()
        ledger.append(change, "submitted", 11, timestamp="2024-06-01T08:00:00.000000+00:00")
        ledger.append(change, "rejected", 42, timestamp="2024-06-02T08:00:00.000000+00:00")
        third = ledger.append(change, "resubmitted", 11, timestamp="2024-06-03T08:00:00.000000+00:00")
        assert third.sequence == 3
        assert [e.action for e in change.revision_history] == ["submitted", "rejected", "resubmitted"]

    def test_equal_timestamps_are_allowed(self):
        ledger = RevisionLedger()
        change = _change()
        ts = "2024-06-01T08:00:00.000000+00:00"
        ledger.append(change, "submitted", 11, timestamp=ts)
        ledger.append(change, "approved", 42, timestamp=ts)
        assert len(change.revision_history) == 2

    def test_timestamp_must_not_go_backwards(self):
        ledger = RevisionLedger()
        change = _change()
        ledger.append(change, "submitted", 11, timestamp="2024-06-02T08:00:00.000000+00:00")
        with pytest.raises(ValueError, match="precedes"):
            ledger.append(change, "approved", 42, timestamp="2024-06-01T08:00:00.000000+00:00")

    def test_unknown_action_raises(self):
        with pytest.raises(ValueError):
            RevisionLedger().append(_change(), "withdrawn", 11)


class TestQueries:

    def test_last_action_and_count(self):
        ledger = RevisionLedger()
        change = _change()
        assert ledger.last_action(change) is None

        ledger.append(change, "submitted", 11, timestamp="2024-06-01T08:00:00.000000+00:00")
        ledger.append(change, "revision_requested", 42, timestamp="2024-06-02T08:00:00.000000+00:00")
        ledger.append(change, "resubmitted", 11, timestamp="2024-06-03T08:00:00.000000+00:00")
        ledger.append(change, "revision_requested", 42, timestamp="2024-06-04T08:00:00.000000+00:00")

        assert ledger.last_action(change) is RevisionAction.REVISION_REQUESTED
        assert ledger.count(change, RevisionAction.REVISION_REQUESTED) == 2
        assert ledger.count(change, "approved") == 0
