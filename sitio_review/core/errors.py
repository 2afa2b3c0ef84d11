"""
Exception hierarchy for the review engine.

Every failure raised by the engine derives from ReviewError so callers can
catch the whole family in one place. All of them are local and recoverable:
the controller raises them before touching the store, or inside a session
that is rolled back.

Note that a conflict is NOT an error: it is a workflow status
(``conflict``) that a reviewer resolves through a normal transition.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for all review engine errors."""


class NotFoundError(ReviewError, LookupError):
    """No pending change exists with the requested id."""

    def __init__(self, change_id: str) -> None:
        super().__init__(f"Pending change {change_id!r} not found")
        self.change_id = change_id


class InvalidTransitionError(ReviewError):
    """The requested action is not allowed from the change's current status."""

    def __init__(self, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} a change with status {status!r}")
        self.status = status
        self.action = action


class PermissionDeniedError(ReviewError):
    """The acting user may not perform this action on this change."""


class MalformedProposedDataError(ReviewError, ValueError):
    """The proposed payload is not valid structured data."""


class YearResolutionError(ReviewError, ValueError):
    """A year-keyed record does not resolve to exactly one year."""

    def __init__(self, candidates: list[str]) -> None:
        if candidates:
            msg = f"Expected exactly one year key, found {len(candidates)}: {candidates}"
        else:
            msg = "Expected exactly one year key, found none"
        super().__init__(msg)
        self.candidates = candidates
