"""
Review state machine — the full lifecycle of a pending change as a table.

    (none)          --create-->            pending
    pending         --approve/reject/request_revision--> approved/rejected/needs_revision
    needs_revision  --approve/reject/request_revision--> ...
    conflict        --approve/reject/request_revision--> ...
    pending         --edit-->              pending          (no ledger entry)
    needs_revision  --edit-->              pending          (resubmitted)
    rejected        --edit-->              pending          (resubmitted)
    pending         --withdraw-->          (removed)

``approved`` and ``superseded`` are terminal. ``superseded`` is only set by
the optional supersede policy in ReviewController; ``conflict`` is only
entered through conflict detection. Neither is a user action, so neither
appears in the table.

Every (status, action) pair missing from TRANSITIONS is illegal and
get_transition() raises InvalidTransitionError for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sitio_review.core.errors import InvalidTransitionError


class Status(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"
    CONFLICT = "conflict"
    SUPERSEDED = "superseded"


class Action(str, Enum):
    CREATE = "create"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    EDIT = "edit"
    WITHDRAW = "withdraw"


class Actor(str, Enum):
    SUBMITTER = "submitter"
    REVIEWER = "reviewer"


class RevisionAction(str, Enum):
    """Ledger entry kinds, one per recorded transition."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"
    RESUBMITTED = "resubmitted"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"

    @property
    def action(self) -> Action:
        return Action(self.value)


@dataclass(frozen=True)
class Transition:
    source: Optional[Status]            # None: the change does not exist yet
    action: Action
    actor: Actor
    target: Optional[Status]            # None: the change is removed
    ledger_action: Optional[RevisionAction] = None

    @property
    def removes_record(self) -> bool:
        return self.target is None


REVIEWABLE_STATUSES = frozenset({Status.PENDING, Status.NEEDS_REVISION, Status.CONFLICT})
EDITABLE_STATUSES = frozenset({Status.PENDING, Status.NEEDS_REVISION, Status.REJECTED})
WITHDRAWABLE_STATUSES = frozenset({Status.PENDING})
TERMINAL_STATUSES = frozenset({Status.APPROVED, Status.SUPERSEDED})
# Statuses a reviewer decision moves a change into; the submitter is notified.
NOTIFYING_STATUSES = frozenset({Status.APPROVED, Status.REJECTED, Status.NEEDS_REVISION})


def _build_table() -> dict[tuple[Optional[Status], Action], Transition]:
    rows = [Transition(None, Action.CREATE, Actor.SUBMITTER, Status.PENDING, RevisionAction.SUBMITTED)]
    for source in (Status.PENDING, Status.NEEDS_REVISION, Status.CONFLICT):
        rows += [
            Transition(source, Action.APPROVE, Actor.REVIEWER, Status.APPROVED, RevisionAction.APPROVED),
            Transition(source, Action.REJECT, Actor.REVIEWER, Status.REJECTED, RevisionAction.REJECTED),
            Transition(
                source, Action.REQUEST_REVISION, Actor.REVIEWER,
                Status.NEEDS_REVISION, RevisionAction.REVISION_REQUESTED,
            ),
        ]
    rows += [
        Transition(Status.PENDING, Action.EDIT, Actor.SUBMITTER, Status.PENDING),
        Transition(Status.NEEDS_REVISION, Action.EDIT, Actor.SUBMITTER, Status.PENDING, RevisionAction.RESUBMITTED),
        Transition(Status.REJECTED, Action.EDIT, Actor.SUBMITTER, Status.PENDING, RevisionAction.RESUBMITTED),
        Transition(Status.PENDING, Action.WITHDRAW, Actor.SUBMITTER, None),
    ]
    return {(t.source, t.action): t for t in rows}


TRANSITIONS: dict[tuple[Optional[Status], Action], Transition] = _build_table()


def get_transition(status: Optional[Status | str], action: Action | str) -> Transition:
    """
    Look up the transition for *action* taken from *status*.

    Raises:
        InvalidTransitionError: if the table has no such transition.
    """
    source = Status(status) if status is not None else None
    action = Action(action)
    transition = TRANSITIONS.get((source, action))
    if transition is None:
        raise InvalidTransitionError(source.value if source else "none", action.value)
    return transition


def allowed_actions(status: Optional[Status | str]) -> list[Action]:
    source = Status(status) if status is not None else None
    return [action for (src, action) in TRANSITIONS if src == source]


def can_edit(status: Status | str) -> bool:
    return Status(status) in EDITABLE_STATUSES


def can_withdraw(status: Status | str) -> bool:
    return Status(status) in WITHDRAWABLE_STATUSES


def can_review(status: Status | str) -> bool:
    return Status(status) in REVIEWABLE_STATUSES


def is_terminal(status: Status | str) -> bool:
    return not allowed_actions(status)
