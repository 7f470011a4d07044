"""SQLAlchemy models for certification requests."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Mapped, mapped_column

from transcript_engine.common.models import Base, TimestampMixin, generate_uuid, utcnow

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"

REQUEST_STATUSES: frozenset[str] = frozenset({
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_REJECTED,
})

ONE_PENDING_INDEX = "uq_requests_one_pending_per_student"


class CertificationRequestModel(Base, TimestampMixin):
    __tablename__ = "certification_requests"
    __table_args__ = (
        Index("ix_requests_status_requested_at", "status", "requested_at"),
        # Partial index: at most one Pending request per student
        Index(
            ONE_PENDING_INDEX,
            "student_usn",
            unique=True,
            sqlite_where=text("status = 'Pending'"),
            postgresql_where=text("status = 'Pending'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    student_usn: Mapped[str] = mapped_column(
        String(32), ForeignKey("students.usn"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default=STATUS_PENDING, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    decided_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    verification_code: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True, index=True
    )
    document_ref: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


def apply_pending_policy(conn: Connection, allow_duplicates: bool) -> None:
    """Drop the one-Pending-per-student index when duplicates are allowed.

    Runs after ``create_all``; also creates the index on databases that
    predate it.
    """
    index = next(
        i for i in CertificationRequestModel.__table__.indexes
        if i.name == ONE_PENDING_INDEX
    )
    if allow_duplicates:
        index.drop(conn, checkfirst=True)
    else:
        index.create(conn, checkfirst=True)
