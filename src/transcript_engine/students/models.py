"""SQLAlchemy models for students and their academic records."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, JSON, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transcript_engine.common.models import Base, TimestampMixin, generate_uuid

MAX_SUBJECTS = 5
MIN_SEMESTER = 1
MAX_SEMESTER = 8


class StudentModel(Base, TimestampMixin):
    __tablename__ = "students"

    usn: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    major: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    records: Mapped[list["AcademicRecordModel"]] = relationship(
        back_populates="student", order_by="AcademicRecordModel.semester"
    )


class AcademicRecordModel(Base, TimestampMixin):
    __tablename__ = "academic_records"
    __table_args__ = (
        UniqueConstraint("student_usn", "semester", name="uq_record_student_semester"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    student_usn: Mapped[str] = mapped_column(
        String(32), ForeignKey("students.usn"), nullable=False, index=True
    )
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    sgpa: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    cgpa: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    # Ordered [{"name": str, "mark": int}, ...], at most MAX_SUBJECTS entries.
    subjects: Mapped[list] = mapped_column(JSON, default=list)

    student: Mapped["StudentModel"] = relationship(back_populates="records")
