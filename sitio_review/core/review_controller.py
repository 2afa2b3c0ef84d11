"""
ReviewController — Application layer facade for the submission workflow.

Coordinates between:
  - Data layer (repositories)
  - Diff engine and conflict detector
  - Review state machine
  - Revision ledger and notification tracker
  - Audit logger

Callers (web handlers, CLI, tests) use only ReviewController, never the
repositories directly. Every mutating operation runs in one session: all
guards are checked before the first write, and any exception rolls the
session back, so a failed call never leaves a partially updated record.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.orm import Session

from sitio_review.config.settings import settings
from sitio_review.core import conflict_detector, diff_engine
from sitio_review.core.audit import AuditAction, IAuditLogger, SqlAuditLogger
from sitio_review.core.conflict_detector import ConflictDetail
from sitio_review.core.diff_engine import FieldDiff
from sitio_review.core.errors import (
    MalformedProposedDataError,
    NotFoundError,
    PermissionDeniedError,
)
from sitio_review.core.ledger import RevisionLedger
from sitio_review.core.notifications import NotificationTracker, UnreadSummary
from sitio_review.core.resources import IResourceRepository
from sitio_review.core.state_machine import (
    Action,
    ReviewDecision,
    RevisionAction,
    Status,
    can_review,
    get_transition,
)
from sitio_review.core.values import dumps, parse_structured, to_jsonable
from sitio_review.data.database import get_session
from sitio_review.data.models import PendingChange, utcnow_str
from sitio_review.data.repositories import (
    PendingChangeFilters,
    PendingChangeRepository,
    ResourceRepository,
)

_log = structlog.get_logger(component="core.review_controller")

RESOURCE_TYPES = ("sitio", "project")

_DECISION_AUDIT = {
    ReviewDecision.APPROVE: AuditAction.APPROVE,
    ReviewDecision.REJECT: AuditAction.REJECT,
    ReviewDecision.REQUEST_REVISION: AuditAction.REQUEST_REVISION,
}

SessionFactory = Callable[[], AbstractContextManager[Session]]


class ReviewController:
    """
    Facade for all pending-change operations.
    Instantiate once and reuse; it is stateless between calls.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        resources: Optional[IResourceRepository] = None,
        audit_logger: Optional[IAuditLogger] = None,
    ) -> None:
        self._session_factory = session_factory or get_session
        self._resources = resources
        self._audit = audit_logger or SqlAuditLogger()
        self._ledger = RevisionLedger()
        self._notifications = NotificationTracker()

    # ------------------------------------------------------------------
    # Submitter operations
    # ------------------------------------------------------------------

    def create_submission(
        self,
        resource_type: str,
        resource_id: int,
        resource_name: str,
        submitter_id: int,
        proposed_data: Any,
        original_data_snapshot: Any,
        comment: Optional[str] = None,
        submitter_name: str = "",
    ) -> PendingChange:
        """
        Record a new proposal in status 'pending' with a 'submitted' ledger entry.

        Raises:
            ValueError: unknown resource_type.
            MalformedProposedDataError: proposal or snapshot is not structured data.
            YearResolutionError: the proposal's year map is ambiguous.
        """
        if resource_type not in RESOURCE_TYPES:
            raise ValueError(f"resource_type must be one of {RESOURCE_TYPES}, got {resource_type!r}")

        proposed = self._parse_proposal(proposed_data)
        original = parse_structured(original_data_snapshot) if original_data_snapshot is not None else {}
        diff_engine.validate_year_map(proposed)

        with self._session_factory() as session:
            repo = PendingChangeRepository(session)
            if settings.supersede_pending_on_submit:
                self._supersede_pending(session, resource_type, resource_id, submitter_id, submitter_name)

            change = repo.create(
                resource_type=resource_type,
                resource_id=resource_id,
                resource_name=resource_name,
                submitted_by_user_id=submitter_id,
                submitted_by_user_name=submitter_name,
                original_data=original,
                proposed_data=proposed,
                submitter_comment=comment,
            )
            self._ledger.append(
                change,
                RevisionAction.SUBMITTED,
                user_id=submitter_id,
                user_name=submitter_name,
                comment=comment,
                timestamp=change.submitted_at,
            )
            self._audit.log_audit_action(
                session,
                AuditAction.SUBMIT_FOR_REVIEW,
                resource_type,
                resource_id,
                resource_name,
                comment or "Submitted change for review",
                user_id=submitter_id,
                user_name=submitter_name,
            )
            session.commit()
            _log.info(
                "submission_created",
                change_id=change.id,
                resource_type=resource_type,
                resource_id=resource_id,
                submitter_id=submitter_id,
            )
            return self._detach(session, change)

    def update_pending_submission(
        self,
        change_id: str,
        proposed_data: Any,
        submitter_comment: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> bool:
        """
        Overwrite the proposal of an editable change.

        A 'pending' change stays pending with no ledger entry; a change in
        'needs_revision' or 'rejected' returns to 'pending' and gets a
        'resubmitted' entry.

        Raises:
            NotFoundError, InvalidTransitionError, PermissionDeniedError,
            MalformedProposedDataError, YearResolutionError
        """
        proposed = self._parse_proposal(proposed_data)

        with self._session_factory() as session:
            change = self._get_or_raise(session, change_id)
            self._check_submitter(change, user_id, Action.EDIT)
            transition = get_transition(change.status, Action.EDIT)
            diff_engine.validate_year_map(proposed)

            changes = [
                {"field": d.field, "oldValue": to_jsonable(d.original), "newValue": to_jsonable(d.proposed)}
                for d in diff_engine.deep_compare_values(change.proposed_data, proposed)
            ]
            actor_id = change.submitted_by_user_id if user_id is None else user_id
            previous_status = change.status

            change.proposed_data = proposed
            change.submitter_comment = submitter_comment

            if transition.ledger_action is RevisionAction.RESUBMITTED:
                change.status = transition.target.value
                change.reviewed_by_user_id = None
                change.reviewed_by_user_name = None
                change.reviewed_at = None
                change.reviewer_comment = None
                change.resubmit_count += 1
                self._notifications.acknowledge(change)
                self._ledger.append(
                    change,
                    RevisionAction.RESUBMITTED,
                    user_id=actor_id,
                    user_name=change.submitted_by_user_name,
                    comment=submitter_comment,
                )
                audit_action = AuditAction.RESUBMIT
                description = submitter_comment or f"Resubmitted after status {previous_status!r}"
            else:
                audit_action = AuditAction.UPDATE
                description = submitter_comment or "Updated pending submission"

            self._audit.log_audit_action(
                session,
                audit_action,
                change.resource_type,
                change.resource_id,
                change.resource_name,
                description,
                changes=changes,
                user_id=actor_id,
                user_name=change.submitted_by_user_name,
            )
            session.commit()
            _log.info(
                "submission_updated",
                change_id=change_id,
                previous_status=previous_status,
                status=change.status,
                changed_fields=len(changes),
            )
            return True

    def withdraw_submission(
        self,
        change_id: str,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> bool:
        """
        Delete a change that is still 'pending'.

        Raises:
            NotFoundError, InvalidTransitionError, PermissionDeniedError
        """
        with self._session_factory() as session:
            change = self._get_or_raise(session, change_id)
            self._check_submitter(change, user_id, Action.WITHDRAW)
            get_transition(change.status, Action.WITHDRAW)

            self._audit.log_audit_action(
                session,
                AuditAction.WITHDRAW,
                change.resource_type,
                change.resource_id,
                change.resource_name,
                reason or "Withdrew pending submission",
                user_id=change.submitted_by_user_id if user_id is None else user_id,
                user_name=change.submitted_by_user_name,
            )
            PendingChangeRepository(session).delete(change_id)
            session.commit()
            _log.info("submission_withdrawn", change_id=change_id, reason=reason)
            return True

    # ------------------------------------------------------------------
    # Reviewer operations
    # ------------------------------------------------------------------

    def review_submission(
        self,
        change_id: str,
        decision: ReviewDecision | str,
        reviewer_id: int,
        comment: Optional[str] = None,
        reviewer_name: str = "",
    ) -> bool:
        """
        Apply a reviewer decision.

        Approving a 'pending' or 'needs_revision' change first checks the
        live record. If it drifted in a conflicting way the change moves to
        'conflict' and False is returned; the reviewer must then approve,
        reject or request revision on the conflicted change explicitly.

        Returns:
            True if the decision was applied, False if approval was
            blocked by a newly detected conflict.

        Raises:
            ValueError: unknown decision, or revision requested without comment.
            NotFoundError, InvalidTransitionError, PermissionDeniedError
        """
        decision = ReviewDecision(decision)

        with self._session_factory() as session:
            change = self._get_or_raise(session, change_id)
            transition = get_transition(change.status, decision.action)

            if settings.forbid_self_review and reviewer_id == change.submitted_by_user_id:
                raise PermissionDeniedError("Cannot review your own change submission")
            if decision is ReviewDecision.REQUEST_REVISION and not (comment or "").strip():
                raise ValueError("Comment is required when requesting revision")

            if decision is ReviewDecision.APPROVE and change.status != Status.CONFLICT.value:
                conflicts = self._find_conflicts(session, change)
                if conflicts:
                    self._enter_conflict(session, change, conflicts)
                    session.commit()
                    _log.warning(
                        "approval_blocked_by_conflict",
                        change_id=change_id,
                        reviewer_id=reviewer_id,
                        fields=[c.field for c in conflicts],
                    )
                    return False

            previous_status = change.status
            now = utcnow_str()
            change.status = transition.target.value
            change.reviewed_by_user_id = reviewer_id
            change.reviewed_by_user_name = reviewer_name
            change.reviewed_at = now
            change.reviewer_comment = comment
            change.conflict_details = None
            self._ledger.append(
                change,
                transition.ledger_action,
                user_id=reviewer_id,
                user_name=reviewer_name,
                comment=comment,
                timestamp=now,
            )
            self._notifications.notify(change)
            self._audit.log_audit_action(
                session,
                _DECISION_AUDIT[decision],
                change.resource_type,
                change.resource_id,
                change.resource_name,
                comment or f"Review decision: {decision.value}",
                user_id=reviewer_id,
                user_name=reviewer_name,
            )
            session.commit()
            _log.info(
                "submission_reviewed",
                change_id=change_id,
                decision=decision.value,
                previous_status=previous_status,
                status=change.status,
                reviewer_id=reviewer_id,
            )
            return True

    def detect_conflicts(self, change_id: str) -> list[ConflictDetail]:
        """
        Compare the live resource with the change's baseline and proposal.

        A non-empty result on a reviewable change forces status 'conflict'
        and stores the details. An empty result changes nothing. Changes in
        other statuses are only inspected.
        """
        with self._session_factory() as session:
            change = self._get_or_raise(session, change_id)
            conflicts = self._find_conflicts(session, change)
            if conflicts and can_review(change.status):
                self._enter_conflict(session, change, conflicts)
                session.commit()
            return conflicts

    # ------------------------------------------------------------------
    # Diffs
    # ------------------------------------------------------------------

    def get_field_differences(self, original: Any, proposed: Any) -> list[FieldDiff]:
        return diff_engine.get_field_differences(original, proposed)

    def get_change_differences(self, change_id: str) -> list[FieldDiff]:
        """Field differences between a stored change's baseline and proposal."""
        change = self.get_pending_change(change_id)
        return diff_engine.get_field_differences(change.original_data, change.proposed_data)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def mark_status_change_as_seen(self, change_id: str) -> bool:
        with self._session_factory() as session:
            change = self._get_or_raise(session, change_id)
            self._notifications.acknowledge(change)
            session.commit()
            return True

    def mark_all_status_changes_as_seen(self, user_id: int) -> int:
        """Acknowledge every unseen status change of *user_id*. Returns how many were flipped."""
        with self._session_factory() as session:
            count = self._notifications.acknowledge_all(session, user_id)
            session.commit()
            return count

    def get_unread_status_changes(self, user_id: int) -> list[PendingChange]:
        with self._session_factory() as session:
            changes = self._notifications.unread(session, user_id)
            return [self._detach(session, c) for c in changes]

    def get_unread_status_change_count(self, user_id: int) -> int:
        return len(self.get_unread_status_changes(user_id))

    def summarize_unread(self, user_id: int) -> UnreadSummary:
        with self._session_factory() as session:
            return self._notifications.summarize(session, user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_pending_change(self, change_id: str) -> PendingChange:
        with self._session_factory() as session:
            return self._detach(session, self._get_or_raise(session, change_id))

    def get_pending_changes(
        self, filters: Optional[PendingChangeFilters] = None
    ) -> list[PendingChange]:
        with self._session_factory() as session:
            changes = PendingChangeRepository(session).get_pending_changes(filters)
            return [self._detach(session, c) for c in changes]

    def get_summary(self) -> dict[str, int]:
        """Number of changes per status (every status present, zero if none)."""
        with self._session_factory() as session:
            counts = PendingChangeRepository(session).count_by_status()
        return {status.value: counts.get(status.value, 0) for status in Status}

    def has_pending_changes_for_resource(self, resource_type: str, resource_id: int) -> bool:
        """True while any change for the resource still awaits a decision."""
        with self._session_factory() as session:
            open_changes = PendingChangeRepository(session).get_for_resource(
                resource_type, resource_id, [s.value for s in (Status.PENDING, Status.CONFLICT, Status.NEEDS_REVISION)]
            )
            return bool(open_changes)

    def get_editable_pending_change(
        self, resource_type: str, resource_id: int
    ) -> Optional[PendingChange]:
        """The newest change for the resource the submitter is expected to rework, if any."""
        with self._session_factory() as session:
            candidates = PendingChangeRepository(session).get_for_resource(
                resource_type, resource_id, [Status.NEEDS_REVISION.value, Status.REJECTED.value]
            )
            return self._detach(session, candidates[0]) if candidates else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse_proposal(self, proposed_data: Any) -> dict:
        proposed = parse_structured(proposed_data)
        size = len(dumps(proposed).encode("utf-8"))
        if size > settings.max_payload_bytes:
            raise MalformedProposedDataError(
                f"Proposed data is {size} bytes, limit is {settings.max_payload_bytes}"
            )
        return proposed

    @staticmethod
    def _get_or_raise(session: Session, change_id: str) -> PendingChange:
        change = PendingChangeRepository(session).get_by_id(change_id)
        if change is None:
            _log.warning("pending_change_not_found", change_id=change_id)
            raise NotFoundError(change_id)
        return change

    @staticmethod
    def _check_submitter(change: PendingChange, user_id: Optional[int], action: Action) -> None:
        if user_id is not None and user_id != change.submitted_by_user_id:
            raise PermissionDeniedError(
                f"Only the original submitter can {action.value} this change"
            )

    @staticmethod
    def _detach(session: Session, change: PendingChange) -> PendingChange:
        # Load the ledger before expunging so it stays readable
        change.revision_history
        session.expunge(change)
        return change

    def _live_record(self, session: Session, change: PendingChange) -> Optional[Any]:
        if self._resources is not None:
            return self._resources.get_current(change.resource_type, change.resource_id)
        record = ResourceRepository(session).get(change.resource_type, change.resource_id)
        return record.data if record is not None else None

    def _find_conflicts(self, session: Session, change: PendingChange) -> list[ConflictDetail]:
        current = self._live_record(session, change)
        if current is None:
            return []
        return conflict_detector.detect_conflicts(
            change.original_data, change.proposed_data, current
        )

    def _enter_conflict(
        self,
        session: Session,
        change: PendingChange,
        conflicts: list[ConflictDetail],
    ) -> None:
        previous_status = change.status
        change.status = Status.CONFLICT.value
        change.conflict_details = [c.to_dict() for c in conflicts]
        if previous_status != Status.CONFLICT.value:
            self._notifications.notify(change)
            self._audit.log_audit_action(
                session,
                AuditAction.CONFLICT_DETECTED,
                change.resource_type,
                change.resource_id,
                change.resource_name,
                "Conflict detected - resource modified since submission",
                changes=[
                    {"field": c.field, "oldValue": to_jsonable(c.current_value),
                     "newValue": to_jsonable(c.proposed_value)}
                    for c in conflicts
                ],
            )
        _log.warning(
            "conflicts_detected",
            change_id=change.id,
            previous_status=previous_status,
            fields=[c.field for c in conflicts],
        )

    def _supersede_pending(
        self,
        session: Session,
        resource_type: str,
        resource_id: int,
        user_id: int,
        user_name: str,
    ) -> None:
        older = PendingChangeRepository(session).get_for_resource(
            resource_type, resource_id, [Status.PENDING.value]
        )
        for change in older:
            change.status = Status.SUPERSEDED.value
            self._audit.log_audit_action(
                session,
                AuditAction.SUPERSEDE,
                resource_type,
                resource_id,
                change.resource_name,
                f"Superseded by a newer submission (was {change.id})",
                user_id=user_id,
                user_name=user_name,
            )
            _log.info("submission_superseded", change_id=change.id)
