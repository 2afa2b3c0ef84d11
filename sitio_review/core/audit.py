"""
Audit logger interface and its SQL implementation.

ReviewController calls log_audit_action() once per accepted transition,
inside the same session as the transition itself, so an audit row exists
exactly when the transition was committed.
"""

from __future__ import annotations

import abc
from typing import Optional, Union

from sqlalchemy.orm import Session

from sitio_review.data.repositories import AuditLogRepository


class AuditAction:
    SUBMIT_FOR_REVIEW = "submit_for_review"
    UPDATE = "update"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    RESUBMIT = "resubmit"
    WITHDRAW = "withdraw"
    CONFLICT_DETECTED = "conflict_detected"
    SUPERSEDE = "supersede"


class IAuditLogger(abc.ABC):
    """Interface for audit sinks."""

    @abc.abstractmethod
    def log_audit_action(
        self,
        session: Session,
        action: str,
        resource_type: str,
        resource_id: Optional[Union[int, str]],
        resource_name: str,
        description: str,
        changes: Optional[list[dict]] = None,
        user_id: int = 0,
        user_name: str = "System",
    ) -> None:
        """Record one accepted action. *session* is the transition's session."""
        ...


class SqlAuditLogger(IAuditLogger):
    """Writes AuditLog rows in the caller's transaction."""

    def log_audit_action(
        self,
        session: Session,
        action: str,
        resource_type: str,
        resource_id: Optional[Union[int, str]],
        resource_name: str,
        description: str,
        changes: Optional[list[dict]] = None,
        user_id: int = 0,
        user_name: str = "System",
    ) -> None:
        AuditLogRepository(session).create(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            details=description,
            changes=changes,
            user_id=user_id,
            user_name=user_name,
        )
