"""Public verification lookup."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from transcript_engine.certification.models import STATUS_APPROVED, CertificationRequestModel
from transcript_engine.codes.generator import is_well_formed, normalize_code
from transcript_engine.common.exceptions import VerificationNotFoundError
from transcript_engine.common.models import as_utc
from transcript_engine.students.models import StudentModel
from transcript_engine.students.service import StudentService
from transcript_engine.verification.schemas import VerificationResult

logger = logging.getLogger(__name__)


class VerificationService:
    """Answers "is this code a genuinely approved certificate?".

    Malformed, unknown and non-Approved codes all produce the same
    ``valid: false`` answer. The request id, the approving officer and audit
    data are never part of a result. Lookups have no side effects.
    """

    def __init__(self, student_service: StudentService):
        self.student_service = student_service

    async def verify(self, session: AsyncSession, raw_code: str | None) -> VerificationResult:
        try:
            request, student = await self._lookup(session, normalize_code(raw_code))
        except VerificationNotFoundError:
            return VerificationResult.invalid()

        cgpa = await self.student_service.get_current_cgpa(session, student.usn)
        return VerificationResult(
            valid=True,
            student_name=student.name,
            usn=student.usn,
            major=student.major,
            cgpa=float(cgpa) if cgpa is not None else None,
            approval_date=as_utc(request.decided_at),
        )

    async def _lookup(
        self, session: AsyncSession, code: str,
    ) -> tuple[CertificationRequestModel, StudentModel]:
        if not is_well_formed(code):
            raise VerificationNotFoundError()
        result = await session.execute(
            select(CertificationRequestModel, StudentModel)
            .join(StudentModel, StudentModel.usn == CertificationRequestModel.student_usn)
            .where(
                CertificationRequestModel.verification_code == code,
                CertificationRequestModel.status == STATUS_APPROVED,
            )
        )
        row = result.first()
        if row is None:
            raise VerificationNotFoundError()
        request, student = row
        # Status is filtered in SQL already; this guards against a
        # hand-edited row carrying a code without an approval.
        if request.status != STATUS_APPROVED or request.verification_code != code:
            raise VerificationNotFoundError()
        return request, student
