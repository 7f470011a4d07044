"""Tests for batch approve/reject with per-item isolation."""

import pytest

from transcript_engine.certification.models import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from transcript_engine.certification.service import (
    ACTION_BULK_APPROVED,
    ACTION_BULK_REJECTED,
)

OFFICER = "coe-officer-1"


@pytest.fixture
async def three_pending(db, cert_svc, seed):
    ids = []
    for usn in ("1GU21CS101", "1GU21CS102", "1GU21CS103"):
        await seed(db, usn=usn, semesters=2)
        ids.append((await cert_svc.submit(db, usn)).id)
    return ids


async def _get(db, cert_svc, request_id):
    async with db.get_session() as session:
        return await cert_svc.get_request(session, request_id)


class TestRejectAll:
    async def test_mixed_outcome_after_out_of_band_approval(
        self, db, cert_svc, batch, three_pending,
    ):
        first, second, third = three_pending
        await cert_svc.approve(db, second, OFFICER)

        result = await batch.reject_all(db, three_pending, OFFICER, "pending fees")

        assert result.succeeded == 2
        assert result.failed == 1
        outcomes = result.by_id()
        assert outcomes[second].success is False
        assert outcomes[second].code == "INVALID_TRANSITION"
        for request_id in (first, third):
            assert outcomes[request_id].success is True
            stored = await _get(db, cert_svc, request_id)
            assert stored.status == STATUS_REJECTED
            assert stored.rejection_reason == "pending fees"
        assert (await _get(db, cert_svc, second)).status == STATUS_APPROVED

    async def test_short_reason_fails_every_item(self, db, cert_svc, batch, three_pending):
        result = await batch.reject_all(db, three_pending, OFFICER, "no")
        assert result.succeeded == 0
        assert result.failed == 3
        assert {o.code for o in result.outcomes} == {"REASON_TOO_SHORT"}
        for request_id in three_pending:
            assert (await _get(db, cert_svc, request_id)).status == STATUS_PENDING

    async def test_bulk_action_audited(self, db, batch, audit_svc, three_pending):
        await batch.reject_all(db, three_pending[:1], OFFICER, "pending fees")
        async with db.get_session() as session:
            entries = await audit_svc.get_entries(session, three_pending[0])
            assert entries[0].action == ACTION_BULK_REJECTED


class TestApproveAll:
    async def test_unknown_id_isolated(self, db, cert_svc, batch, three_pending):
        ids = [three_pending[0], "no-such-request", three_pending[1]]
        result = await batch.approve_all(db, ids, OFFICER)

        assert [o.request_id for o in result.outcomes] == ids
        assert result.succeeded == 2
        assert result.by_id()["no-such-request"].code == "NOT_FOUND"
        assert (await _get(db, cert_svc, three_pending[2])).status == STATUS_PENDING

    async def test_each_approval_gets_own_code(self, db, cert_svc, batch, three_pending):
        await batch.approve_all(db, three_pending, OFFICER)
        codes = set()
        for request_id in three_pending:
            stored = await _get(db, cert_svc, request_id)
            assert stored.status == STATUS_APPROVED
            codes.add(stored.verification_code)
        assert len(codes) == 3

    async def test_duplicate_ids_decided_once(self, db, batch, three_pending):
        request_id = three_pending[0]
        result = await batch.approve_all(db, [request_id, request_id], OFFICER)
        assert len(result.outcomes) == 1
        assert result.succeeded == 1

    async def test_bulk_action_audited(self, db, batch, audit_svc, three_pending):
        await batch.approve_all(db, three_pending[:1], OFFICER)
        async with db.get_session() as session:
            entries = await audit_svc.get_entries(session, three_pending[0])
            assert entries[0].action == ACTION_BULK_APPROVED

    async def test_unexpected_error_isolated(
        self, db, cert_svc, batch, renderer, three_pending, monkeypatch,
    ):
        real_issue = renderer.issue
        calls = {"n": 0}

        def _sometimes_broken(student, records, generated_at=None):
            calls["n"] += 1
            if calls["n"] == 1:
                raise KeyError("unexpected")
            return real_issue(student, records, generated_at=generated_at)

        monkeypatch.setattr(renderer, "issue", _sometimes_broken)
        result = await batch.approve_all(db, three_pending, OFFICER)

        assert result.outcomes[0].success is False
        assert result.outcomes[0].code == "INTERNAL_ERROR"
        assert result.succeeded == 2
        assert (await _get(db, cert_svc, three_pending[0])).status == STATUS_PENDING
