"""Tests for the public verification lookup."""

from datetime import timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from transcript_engine.certification.models import CertificationRequestModel
from transcript_engine.codes.generator import generate_verification_code

OFFICER = "coe-officer-1"


async def _verify(db, verification_svc, code):
    async with db.get_session() as session:
        return await verification_svc.verify(session, code)


class TestInvalidCodes:
    @pytest.mark.parametrize("code", ["", "   ", None, "not-a-real-code", "x" * 500])
    async def test_malformed_or_unknown(self, db, verification_svc, code):
        result = await _verify(db, verification_svc, code)
        assert result.valid is False
        assert result.model_dump(exclude_none=True) == {"valid": False}

    async def test_well_formed_but_unissued(self, db, verification_svc):
        result = await _verify(db, verification_svc, generate_verification_code())
        assert result.valid is False

    async def test_code_on_pending_request(self, db, cert_svc, verification_svc, student):
        request = await cert_svc.submit(db, student)
        code = generate_verification_code()
        async with db.get_session() as session:
            await session.execute(
                update(CertificationRequestModel)
                .where(CertificationRequestModel.id == request.id)
                .values(verification_code=code)
            )
        result = await _verify(db, verification_svc, code)
        assert result.valid is False

    async def test_rejected_request_has_nothing_to_verify(
        self, db, cert_svc, verification_svc, student,
    ):
        request = await cert_svc.submit(db, student)
        rejected = await cert_svc.reject(db, request.id, OFFICER, "pending fees")
        assert rejected.verification_code is None


class TestValidCodes:
    async def test_approved_code(self, db, cert_svc, verification_svc, student):
        request = await cert_svc.submit(db, student)
        approval = await cert_svc.approve(db, request.id, OFFICER)

        result = await _verify(db, verification_svc, approval.verification_code)
        assert result.valid is True
        assert result.student_name == "Asha Rao"
        assert result.usn == student
        assert result.major == "B.Tech Computer Science"
        # student fixture has three semesters; CGPA of the highest is 8.30
        assert result.cgpa == pytest.approx(8.30)
        assert result.approval_date.tzinfo is not None
        assert result.approval_date.astimezone(timezone.utc).replace(microsecond=0) == \
            approval.decided_at.replace(microsecond=0)

    async def test_result_carries_no_internal_fields(
        self, db, cert_svc, verification_svc, student,
    ):
        request = await cert_svc.submit(db, student)
        approval = await cert_svc.approve(db, request.id, OFFICER)
        result = await _verify(db, verification_svc, approval.verification_code)
        dumped = result.model_dump()
        assert set(dumped) == {"valid", "student_name", "usn", "major", "cgpa", "approval_date"}
        assert request.id not in str(dumped)
        assert OFFICER not in str(dumped)

    async def test_surrounding_whitespace_ignored(
        self, db, cert_svc, verification_svc, student,
    ):
        request = await cert_svc.submit(db, student)
        approval = await cert_svc.approve(db, request.id, OFFICER)
        result = await _verify(db, verification_svc, f"  {approval.verification_code}\n")
        assert result.valid is True

    async def test_cgpa_reflects_latest_record(
        self, db, cert_svc, student_svc, verification_svc, student,
    ):
        request = await cert_svc.submit(db, student)
        approval = await cert_svc.approve(db, request.id, OFFICER)
        async with db.get_session() as session:
            await student_svc.upsert_record(
                session, student, 4, Decimal("9.10"), Decimal("8.55"),
            )
        result = await _verify(db, verification_svc, approval.verification_code)
        assert result.cgpa == pytest.approx(8.55)

    async def test_lookup_has_no_side_effects(
        self, db, cert_svc, audit_svc, verification_svc, student,
    ):
        request = await cert_svc.submit(db, student)
        approval = await cert_svc.approve(db, request.id, OFFICER)
        async with db.get_session() as session:
            before = len(await audit_svc.list_latest(session, limit=200))
        for _ in range(3):
            await _verify(db, verification_svc, approval.verification_code)
        async with db.get_session() as session:
            assert len(await audit_svc.list_latest(session, limit=200)) == before
            stored = await cert_svc.get_request(session, request.id)
            assert stored.verification_code == approval.verification_code
