"""
SQLAlchemy database models for the resume extraction service.

This module defines the ORM models for accounts (credit balances),
extraction jobs, the append-only audit trail and stored resume results.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobStatus(enum.Enum):
    """Lifecycle state of an extraction job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditAction(enum.Enum):
    """Pipeline stage recorded in the audit trail."""

    UPLOAD = "upload"
    EXTRACT = "extract"


class AuditStatus(enum.Enum):
    """Outcome of an audited pipeline stage."""

    SUCCESS = "success"
    FAILED = "failed"


class Account(Base):
    """
    A principal that can submit documents.

    Owns the credit balance that is debited once per successful job.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
    )
    credits: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    plan_type: Mapped[str] = mapped_column(
        String(32),
        default="FREE",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    # Relationships
    jobs: Mapped[list["Job"]] = relationship(
        "Job",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, credits={self.credits}, plan='{self.plan_type}')>"


class Job(Base):
    """
    One end-to-end processing attempt for a single uploaded document.

    Created in PROCESSING and moved exactly once to COMPLETED or FAILED.
    """

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    file_size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    file_type: Mapped[str] = mapped_column(
        String(128),
        default="application/pdf",
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus),
        default=JobStatus.PROCESSING,
        nullable=False,
        index=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    # Relationships
    account: Mapped[Account] = relationship(
        "Account",
        back_populates="jobs",
    )
    audit_entries: Mapped[list["AuditEntry"]] = relationship(
        "AuditEntry",
        back_populates="job",
        order_by="AuditEntry.id",
        cascade="all, delete-orphan",
    )
    resume: Mapped[Optional["ResumeRecord"]] = relationship(
        "ResumeRecord",
        back_populates="job",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, file_name='{self.file_name}', status={self.status.value})>"


class AuditEntry(Base):
    """
    Append-only record of a pipeline stage transition.

    Rows are never updated or deleted by the application.
    """

    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
    )
    status: Mapped[AuditStatus] = mapped_column(
        Enum(AuditStatus),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    job: Mapped[Job] = relationship(
        "Job",
        back_populates="audit_entries",
    )

    def __repr__(self) -> str:
        return f"<AuditEntry(job_id={self.job_id}, action={self.action.value}, status={self.status.value})>"


class ResumeRecord(Base):
    """
    Normalized resume data extracted for a job.

    Keyed by job id: reprocessing the same job replaces the stored data.
    """

    __tablename__ = "resume_data"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Normalized resume data as JSON",
    )
    mode: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Extraction mode used (text_only, image_only, hybrid)",
    )
    model: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    job: Mapped[Job] = relationship(
        "Job",
        back_populates="resume",
    )

    def __repr__(self) -> str:
        return f"<ResumeRecord(job_id={self.job_id}, mode='{self.mode}')>"
