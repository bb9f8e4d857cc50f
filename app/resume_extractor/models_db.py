"""
SQLAlchemy database models for the resume extraction service.

This module defines the ORM models for users and their credit balance,
uploaded resume files, extracted resume data, history entries and
processed billing events.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
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
from .models import ExtractionStatus, PlanType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileStatus(enum.Enum):
    """Status of an uploaded resume in the extraction pipeline."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class HistoryAction(enum.Enum):
    UPLOAD = "upload"
    EXTRACT = "extract"


class HistoryStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class User(Base):
    """
    Account owning uploaded files and a credit balance.

    Sessions are handled upstream; requests authenticate with ``api_token``.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    api_token: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
        index=True,
    )
    credits: Mapped[int] = mapped_column(
        Integer,
        default=1000,
        nullable=False,
    )
    plan_type: Mapped[PlanType] = mapped_column(
        Enum(PlanType),
        default=PlanType.FREE,
        nullable=False,
    )
    subscription_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    stripe_customer_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    # Relationships
    files: Mapped[list["ResumeFile"]] = relationship(
        "ResumeFile",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', credits={self.credits})>"


class ResumeFile(Base):
    """
    A single uploaded PDF resume.

    Tracks the status and metadata of the upload; the extracted JSON lives
    in ResumeRecord.
    """

    __tablename__ = "resume_files"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
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
        String(100),
        default="application/pdf",
        nullable=False,
    )
    file_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="SHA-256 hash of the uploaded bytes",
    )
    page_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    is_image_based: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    status: Mapped[FileStatus] = mapped_column(
        Enum(FileStatus),
        default=FileStatus.UPLOADED,
        nullable=False,
        index=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    # Relationships
    user: Mapped[User] = relationship(
        "User",
        back_populates="files",
    )
    record: Mapped["ResumeRecord | None"] = relationship(
        "ResumeRecord",
        back_populates="file",
        cascade="all, delete-orphan",
        uselist=False,
    )
    history: Mapped[list["ResumeHistory"]] = relationship(
        "ResumeHistory",
        back_populates="file",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ResumeFile(id={self.id}, file_name='{self.file_name}', status={self.status.value})>"


class ResumeRecord(Base):
    """
    Normalized ResumeData extracted from one file.

    ``data`` is stored verbatim in canonical field order.
    """

    __tablename__ = "resume_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("resume_files.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Normalized ResumeData as JSON",
    )
    model: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    extraction_status: Mapped[ExtractionStatus] = mapped_column(
        Enum(ExtractionStatus),
        default=ExtractionStatus.SUCCESS,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    # Relationships
    file: Mapped[ResumeFile] = relationship(
        "ResumeFile",
        back_populates="record",
    )

    def __repr__(self) -> str:
        return f"<ResumeRecord(id={self.id}, file_id={self.file_id}, status={self.extraction_status.value})>"


class ResumeHistory(Base):
    """Audit trail of uploads and extractions, including failures."""

    __tablename__ = "resume_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("resume_files.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    action: Mapped[HistoryAction] = mapped_column(
        Enum(HistoryAction),
        nullable=False,
    )
    status: Mapped[HistoryStatus] = mapped_column(
        Enum(HistoryStatus),
        nullable=False,
    )
    message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    credits_used: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    # Relationships
    file: Mapped[ResumeFile | None] = relationship(
        "ResumeFile",
        back_populates="history",
    )

    def __repr__(self) -> str:
        return f"<ResumeHistory(id={self.id}, action={self.action.value}, status={self.status.value})>"


class BillingEvent(Base):
    """
    A Stripe webhook event that has been applied.

    The unique event id lets replayed deliveries be skipped.
    """

    __tablename__ = "billing_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    stripe_event_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BillingEvent(stripe_event_id='{self.stripe_event_id}', type='{self.event_type}')>"
