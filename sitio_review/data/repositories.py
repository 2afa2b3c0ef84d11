"""
Repository classes for data access.

Each repository operates on a single aggregate root.
All methods accept an explicit Session argument — the caller (typically
ReviewController in core/) is responsible for session lifecycle.

Example:
    with get_session() as session:
        repo = PendingChangeRepository(session)
        change = repo.get_by_id("3f2a...")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from sitio_review.core.values import dumps
from sitio_review.data.models import AuditLog, PendingChange, ResourceRecord, utcnow_str


@dataclass
class PendingChangeFilters:
    """Query filters for pending changes; unset fields do not filter."""
    status: Union[str, Iterable[str], None] = None
    resource_type: Optional[str] = None
    submitted_by_user_id: Optional[int] = None
    start_date: Optional[str] = None      # ISO-8601, inclusive
    end_date: Optional[str] = None        # ISO-8601, inclusive
    unseen_only: bool = False


class PendingChangeRepository:
    """CRUD operations for PendingChange entities."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, change_id: str) -> Optional[PendingChange]:
        return self._session.get(PendingChange, change_id)

    def get_pending_changes(
        self, filters: Optional[PendingChangeFilters] = None
    ) -> list[PendingChange]:
        """Return matching changes, newest submission first."""
        query = self._session.query(PendingChange)
        if filters is not None:
            if filters.status is not None:
                if isinstance(filters.status, str):
                    query = query.filter(PendingChange.status == filters.status)
                else:
                    query = query.filter(PendingChange.status.in_(list(filters.status)))
            if filters.resource_type is not None:
                query = query.filter(PendingChange.resource_type == filters.resource_type)
            if filters.submitted_by_user_id is not None:
                query = query.filter(
                    PendingChange.submitted_by_user_id == filters.submitted_by_user_id
                )
            # ISO-8601 UTC strings sort chronologically
            if filters.start_date is not None:
                query = query.filter(PendingChange.submitted_at >= filters.start_date)
            if filters.end_date is not None:
                query = query.filter(PendingChange.submitted_at <= filters.end_date)
            if filters.unseen_only:
                query = query.filter(PendingChange.status_change_seen_by_submitter == 0)
        return query.order_by(PendingChange.submitted_at.desc()).all()

    def get_for_resource(
        self,
        resource_type: str,
        resource_id: int,
        statuses: Iterable[str],
    ) -> list[PendingChange]:
        return (
            self._session.query(PendingChange)
            .filter(
                PendingChange.resource_type == resource_type,
                PendingChange.resource_id == resource_id,
                PendingChange.status.in_(list(statuses)),
            )
            .order_by(PendingChange.submitted_at.desc())
            .all()
        )

    def count_by_status(self) -> dict[str, int]:
        rows = (
            self._session.query(PendingChange.status, func.count(PendingChange.id))
            .group_by(PendingChange.status)
            .all()
        )
        return {status: count for status, count in rows}

    def create(
        self,
        resource_type: str,
        resource_id: int,
        resource_name: str,
        submitted_by_user_id: int,
        original_data: Any,
        proposed_data: Any,
        submitted_by_user_name: str = "",
        submitter_comment: Optional[str] = None,
        submitted_at: Optional[str] = None,
    ) -> PendingChange:
        change = PendingChange(
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            status="pending",
            submitted_by_user_id=submitted_by_user_id,
            submitted_by_user_name=submitted_by_user_name,
            submitted_at=submitted_at or utcnow_str(),
            submitter_comment=submitter_comment,
            status_change_seen_by_submitter=1,
            resubmit_count=0,
        )
        change.original_data = original_data
        change.proposed_data = proposed_data
        self._session.add(change)
        self._session.flush()  # populate id without committing
        return change

    def mark_all_seen(self, user_id: int) -> int:
        """Set the seen flag on every unseen change submitted by *user_id*. Returns the count."""
        return (
            self._session.query(PendingChange)
            .filter(
                PendingChange.submitted_by_user_id == user_id,
                PendingChange.status_change_seen_by_submitter == 0,
            )
            .update({PendingChange.status_change_seen_by_submitter: 1}, synchronize_session="fetch")
        )

    def delete(self, change_id: str) -> bool:
        change = self.get_by_id(change_id)
        if change:
            self._session.delete(change)
            return True
        return False


class ResourceRepository:
    """Access to the live sitio/project records."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, resource_type: str, resource_id: int) -> Optional[ResourceRecord]:
        return (
            self._session.query(ResourceRecord)
            .filter(
                ResourceRecord.resource_type == resource_type,
                ResourceRecord.resource_id == resource_id,
            )
            .first()
        )

    def save(
        self,
        resource_type: str,
        resource_id: int,
        data: Any,
        name: str = "",
    ) -> ResourceRecord:
        """Insert or replace the live record for (resource_type, resource_id)."""
        record = self.get(resource_type, resource_id)
        if record is None:
            record = ResourceRecord(resource_type=resource_type, resource_id=resource_id)
            self._session.add(record)
        record.name = name or record.name or ""
        record.data = data
        record.updated_at = utcnow_str()
        self._session.flush()
        return record


class AuditLogRepository:
    """Append-only access to audit log rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[Union[int, str]] = None,
        resource_name: Optional[str] = None,
        details: Optional[str] = None,
        changes: Optional[list[dict]] = None,
        user_id: int = 0,
        user_name: str = "System",
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=resource_name,
            details=details,
            changes_json=dumps(changes) if changes else None,
            user_id=user_id,
            user_name=user_name,
            timestamp=utcnow_str(),
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def get_by_resource(self, resource_type: str, resource_id: Union[int, str]) -> list[AuditLog]:
        return (
            self._session.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == str(resource_id),
            )
            .order_by(AuditLog.id.asc())
            .all()
        )

    def get_by_action(self, action: str) -> list[AuditLog]:
        return (
            self._session.query(AuditLog)
            .filter(AuditLog.action == action)
            .order_by(AuditLog.id.asc())
            .all()
        )
