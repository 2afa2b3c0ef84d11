"""
Tests for the review state machine.
No database needed — tests are pure Python.
"""

import pytest

from sitio_review.core.errors import InvalidTransitionError
from sitio_review.core.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    Action,
    Actor,
    ReviewDecision,
    RevisionAction,
    Status,
    allowed_actions,
    can_edit,
    can_review,
    can_withdraw,
    get_transition,
    is_terminal,
)


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

class TestGuards:

    @pytest.mark.parametrize("status, expected", [
        (Status.PENDING, True),
        (Status.NEEDS_REVISION, True),
        (Status.REJECTED, True),
        (Status.APPROVED, False),
        (Status.CONFLICT, False),
        (Status.SUPERSEDED, False),
    ])
    def test_can_edit(self, status, expected):
        assert can_edit(status) is expected

    @pytest.mark.parametrize("status", list(Status))
    def test_can_withdraw_only_pending(self, status):
        assert can_withdraw(status) is (status is Status.PENDING)

    @pytest.mark.parametrize("status, expected", [
        (Status.PENDING, True),
        (Status.NEEDS_REVISION, True),
        (Status.CONFLICT, True),
        (Status.REJECTED, False),
        (Status.APPROVED, False),
        (Status.SUPERSEDED, False),
    ])
    def test_can_review(self, status, expected):
        assert can_review(status) is expected

    def test_guards_accept_plain_strings(self):
        assert can_edit("needs_revision")
        assert not can_withdraw("approved")

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            can_edit("archived")


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

class TestTransitions:

    def test_create_starts_pending_with_submitted_entry(self):
        t = get_transition(None, Action.CREATE)
        assert t.target is Status.PENDING
        assert t.actor is Actor.SUBMITTER
        assert t.ledger_action is RevisionAction.SUBMITTED

    @pytest.mark.parametrize("source", [Status.PENDING, Status.NEEDS_REVISION, Status.CONFLICT])
    @pytest.mark.parametrize("decision, target", [
        (ReviewDecision.APPROVE, Status.APPROVED),
        (ReviewDecision.REJECT, Status.REJECTED),
        (ReviewDecision.REQUEST_REVISION, Status.NEEDS_REVISION),
    ])
    def test_review_decisions(self, source, decision, target):
        t = get_transition(source, decision.action)
        assert t.target is target
        assert t.actor is Actor.REVIEWER

    def test_editing_pending_is_not_recorded(self):
        t = get_transition(Status.PENDING, Action.EDIT)
        assert t.target is Status.PENDING
        assert t.ledger_action is None

    @pytest.mark.parametrize("source", [Status.NEEDS_REVISION, Status.REJECTED])
    def test_editing_after_review_is_a_resubmission(self, source):
        t = get_transition(source, Action.EDIT)
        assert t.target is Status.PENDING
        assert t.ledger_action is RevisionAction.RESUBMITTED

    def test_withdraw_removes_record(self):
        t = get_transition(Status.PENDING, Action.WITHDRAW)
        assert t.removes_record

    @pytest.mark.parametrize("status, action", [
        (Status.APPROVED, Action.EDIT),
        (Status.APPROVED, Action.WITHDRAW),
        (Status.APPROVED, Action.APPROVE),
        (Status.REJECTED, Action.APPROVE),
        (Status.REJECTED, Action.WITHDRAW),
        (Status.CONFLICT, Action.EDIT),
        (Status.SUPERSEDED, Action.REJECT),
        (Status.PENDING, Action.CREATE),
    ])
    def test_illegal_transitions_raise(self, status, action):
        with pytest.raises(InvalidTransitionError) as exc_info:
            get_transition(status, action)
        assert exc_info.value.status == status.value
        assert exc_info.value.action == action.value

    def test_illegal_from_nothing(self):
        with pytest.raises(InvalidTransitionError, match="'none'"):
            get_transition(None, Action.APPROVE)

    def test_table_keys_match_rows(self):
        for (source, action), transition in TRANSITIONS.items():
            assert transition.source == source
            assert transition.action == action

    def test_guards_agree_with_table(self):
        for status in Status:
            actions = allowed_actions(status)
            assert can_edit(status) is (Action.EDIT in actions)
            assert can_withdraw(status) is (Action.WITHDRAW in actions)
            assert can_review(status) is (Action.APPROVE in actions)


class TestTerminal:

    @pytest.mark.parametrize("status", list(Status))
    def test_terminal_set_matches_table(self, status):
        assert is_terminal(status) is (status in TERMINAL_STATUSES)

    def test_approved_and_superseded_have_no_actions(self):
        assert allowed_actions(Status.APPROVED) == []
        assert allowed_actions(Status.SUPERSEDED) == []
