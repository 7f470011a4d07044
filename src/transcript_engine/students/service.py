"""Student and academic record service (the academic records provider)."""

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from transcript_engine.audit.service import ENTITY_ACADEMIC_RECORD, ENTITY_STUDENT
from transcript_engine.common.exceptions import StudentNotFoundError
from transcript_engine.students.models import (
    MAX_SEMESTER,
    MAX_SUBJECTS,
    MIN_SEMESTER,
    AcademicRecordModel,
    StudentModel,
)


def _subject_pairs(subjects: list[Any] | None) -> list[dict[str, Any]]:
    """Normalize (name, mark) input into stored dicts, dropping empty pairs."""
    pairs = []
    for subject in subjects or []:
        if isinstance(subject, dict):
            name, mark = subject.get("name"), subject.get("mark")
        elif hasattr(subject, "name"):
            name, mark = subject.name, subject.mark
        else:
            name, mark = subject
        if not name or mark is None:
            continue
        mark = int(mark)
        if not 0 <= mark <= 100:
            raise ValueError(f"Mark for '{name}' must be within 0..100, got {mark}")
        pairs.append({"name": str(name), "mark": mark})
    if len(pairs) > MAX_SUBJECTS:
        raise ValueError(f"At most {MAX_SUBJECTS} subjects per semester")
    return pairs


def _check_gpa(label: str, value: Decimal) -> Decimal:
    value = Decimal(str(value)).quantize(Decimal("0.01"))
    if not Decimal("0") <= value <= Decimal("10"):
        raise ValueError(f"{label} must be within 0.00..10.00, got {value}")
    return value


class StudentService:
    """Students and their per-semester academic records."""

    def __init__(self, audit_service=None):
        self.audit_service = audit_service

    # ── Students ──

    async def create_student(
        self,
        session: AsyncSession,
        usn: str,
        name: str,
        email: str,
        major: str,
        user_id: str | None = None,
        actor_ref: str = "system",
    ) -> StudentModel:
        student = StudentModel(
            usn=usn.strip().upper(),
            name=name,
            email=email,
            major=major,
            user_id=user_id,
        )
        session.add(student)
        await session.flush()

        if self.audit_service:
            await self.audit_service.record(
                session, "Registered student", ENTITY_STUDENT, student.usn,
                actor_ref=actor_ref, metadata={"major": major},
            )
        return student

    async def get_student(
        self, session: AsyncSession, usn: str,
    ) -> StudentModel | None:
        return await session.get(StudentModel, usn.strip().upper())

    async def require_student(
        self, session: AsyncSession, usn: str,
    ) -> StudentModel:
        student = await self.get_student(session, usn)
        if student is None:
            raise StudentNotFoundError(f"Student '{usn}' not found")
        return student

    # ── Academic records ──

    async def upsert_record(
        self,
        session: AsyncSession,
        usn: str,
        semester: int,
        sgpa: Decimal,
        cgpa: Decimal,
        subjects: list[Any] | None = None,
        actor_ref: str = "system",
    ) -> AcademicRecordModel:
        """Create or replace the record for (usn, semester)."""
        if not MIN_SEMESTER <= semester <= MAX_SEMESTER:
            raise ValueError(
                f"Semester must be within {MIN_SEMESTER}..{MAX_SEMESTER}, got {semester}"
            )
        student = await self.require_student(session, usn)
        sgpa = _check_gpa("SGPA", sgpa)
        cgpa = _check_gpa("CGPA", cgpa)
        pairs = _subject_pairs(subjects)

        result = await session.execute(
            select(AcademicRecordModel).where(
                AcademicRecordModel.student_usn == student.usn,
                AcademicRecordModel.semester == semester,
            )
        )
        record = result.scalar_one_or_none()
        created = record is None
        if created:
            record = AcademicRecordModel(student_usn=student.usn, semester=semester)
            session.add(record)
        record.sgpa = sgpa
        record.cgpa = cgpa
        record.subjects = pairs
        await session.flush()

        if self.audit_service:
            await self.audit_service.record(
                session,
                "Created academic record" if created else "Updated academic record",
                ENTITY_ACADEMIC_RECORD, record.id,
                actor_ref=actor_ref,
                metadata={"student_usn": student.usn, "semester": semester},
            )
        return record

    async def list_records(
        self, session: AsyncSession, usn: str,
    ) -> list[AcademicRecordModel]:
        """All records for a student, ascending by semester."""
        result = await session.execute(
            select(AcademicRecordModel)
            .where(AcademicRecordModel.student_usn == usn.strip().upper())
            .order_by(AcademicRecordModel.semester.asc())
        )
        return list(result.scalars().all())

    async def get_current_cgpa(
        self, session: AsyncSession, usn: str,
    ) -> Decimal | None:
        """CGPA of the highest semester on file, or None without records."""
        result = await session.execute(
            select(AcademicRecordModel.cgpa)
            .where(AcademicRecordModel.student_usn == usn.strip().upper())
            .order_by(AcademicRecordModel.semester.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
