"""
SQLAlchemy ORM models for sitio-review.

Uses SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
All timestamps are stored as UTC strings in ISO-8601 format.
Structured record data is serialized to JSON text columns.

Relationships:
    pending_changes (1) ──< revision_entries

resources and audit_logs are standalone tables backing the default
resource repository and audit logger.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from sitio_review.core.values import dumps


def utcnow_str() -> str:
    """Return current UTC time as ISO-8601 string (fixed microsecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _new_change_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


class PendingChange(Base):
    """
    A proposed edit to a sitio or project, awaiting or past review.

    Never deleted except by withdrawal while pending; in every other status
    the row is kept as an audit record.
    """
    __tablename__ = "pending_changes"
    __table_args__ = (
        CheckConstraint(
            "resource_type IN ('sitio', 'project')",
            name="ck_pending_changes_resource_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', "
            "'needs_revision', 'conflict', 'superseded')",
            name="ck_pending_changes_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_change_id)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False)
    resource_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    original_data_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    proposed_data_json: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_by_user_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    submitted_at: Mapped[str] = mapped_column(String(32), nullable=False, default=utcnow_str)
    submitter_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Review fields
    reviewed_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reviewed_by_user_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reviewer_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Conflict snapshot; non-null only while status == 'conflict'
    conflict_details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Notification flag consumed by the UI
    status_change_seen_by_submitter: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    resubmit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    revision_history: Mapped[list[RevisionEntry]] = relationship(
        "RevisionEntry",
        back_populates="pending_change",
        order_by="RevisionEntry.sequence",
        cascade="all, delete-orphan",
    )

    @property
    def original_data(self) -> Any:
        return json.loads(self.original_data_json)

    @original_data.setter
    def original_data(self, value: Any) -> None:
        self.original_data_json = dumps(value)

    @property
    def proposed_data(self) -> Any:
        return json.loads(self.proposed_data_json)

    @proposed_data.setter
    def proposed_data(self, value: Any) -> None:
        self.proposed_data_json = dumps(value)

    @property
    def conflict_details(self) -> list[dict]:
        """Deserialize conflict details to a list of {field, currentValue, proposedValue}."""
        if not self.conflict_details_json:
            return []
        return json.loads(self.conflict_details_json)

    @conflict_details.setter
    def conflict_details(self, value: Optional[list[dict]]) -> None:
        self.conflict_details_json = dumps(value) if value else None

    @property
    def seen_by_submitter(self) -> bool:
        return bool(self.status_change_seen_by_submitter)

    def __repr__(self) -> str:
        return (
            f"<PendingChange id={self.id!r} {self.resource_type}:{self.resource_id} "
            f"status={self.status!r}>"
        )


class RevisionEntry(Base):
    """
    One immutable ledger line per state transition of a PendingChange.
    Created only through RevisionLedger.append(); never updated.
    """
    __tablename__ = "revision_entries"
    __table_args__ = (
        UniqueConstraint("pending_change_id", "sequence", name="uq_revision_entries_sequence"),
        CheckConstraint(
            "action IN ('submitted', 'approved', 'rejected', "
            "'revision_requested', 'resubmitted')",
            name="ck_revision_entries_action",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pending_change_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("pending_changes.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(24), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    timestamp: Mapped[str] = mapped_column(String(32), nullable=False, default=utcnow_str)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pending_change: Mapped[PendingChange] = relationship(
        "PendingChange", back_populates="revision_history"
    )

    def __repr__(self) -> str:
        return (
            f"<RevisionEntry change={self.pending_change_id!r} "
            f"seq={self.sequence} action={self.action!r}>"
        )


class ResourceRecord(Base):
    """
    Live state of a sitio or project, as read by the conflict detector.
    The record body is the same JSON shape the submissions carry.
    """
    __tablename__ = "resources"
    __table_args__ = (
        UniqueConstraint("resource_type", "resource_id", name="uq_resources_type_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    data_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    updated_at: Mapped[str] = mapped_column(String(32), nullable=False, default=utcnow_str)

    @property
    def data(self) -> Any:
        return json.loads(self.data_json)

    @data.setter
    def data(self, value: Any) -> None:
        self.data_json = dumps(value)

    def __repr__(self) -> str:
        return f"<ResourceRecord {self.resource_type}:{self.resource_id} name={self.name!r}>"


class AuditLog(Base):
    """An accepted workflow action, as recorded by SqlAuditLogger."""
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_name: Mapped[str] = mapped_column(String(128), nullable=False, default="System")
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resource_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changes_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[str] = mapped_column(String(32), nullable=False, default=utcnow_str)

    @property
    def changes(self) -> list[dict]:
        if not self.changes_json:
            return []
        return json.loads(self.changes_json)

    def __repr__(self) -> str:
        return (
            f"<AuditLog id={self.id} action={self.action!r} "
            f"{self.resource_type}:{self.resource_id}>"
        )


# Explicit index definitions (SQLAlchemy emits CREATE INDEX on create_all)
Index("idx_pending_changes_status", PendingChange.status)
Index("idx_pending_changes_resource", PendingChange.resource_type, PendingChange.resource_id)
Index("idx_pending_changes_submitter", PendingChange.submitted_by_user_id)
Index("idx_revision_entries_change_id", RevisionEntry.pending_change_id)
Index("idx_audit_logs_resource", AuditLog.resource_type, AuditLog.resource_id)
