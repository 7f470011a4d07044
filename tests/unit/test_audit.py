"""Tests for the hash-chained audit log."""

from unittest.mock import MagicMock

from sqlalchemy import update

from transcript_engine.audit.models import AuditLogModel
from transcript_engine.audit.service import (
    ENTITY_CERTIFICATION_REQUEST,
    AuditService,
)

ENTITY = ENTITY_CERTIFICATION_REQUEST


class TestRecord:
    async def test_record_first_entry(self, db, audit_svc):
        async with db.get_session() as session:
            entry = await audit_svc.record(
                session, "Submitted certification request", ENTITY, "req-1",
                actor_ref="1GU21CS001", metadata={"student_usn": "1GU21CS001"},
            )
            assert entry.id is not None
            assert entry.entity_id == "req-1"
            assert entry.actor_ref == "1GU21CS001"
            assert entry.metadata_ == {"student_usn": "1GU21CS001"}
            assert entry.prev_hash is None
            assert len(entry.event_hash) == 64
            assert len(entry.signature) == 64

    async def test_record_chained_entry(self, db, audit_svc):
        async with db.get_session() as session:
            first = await audit_svc.record(session, "Submitted", ENTITY, "req-1")
            second = await audit_svc.record(session, "Approved", ENTITY, "req-1")
            assert second.prev_hash == first.event_hash
            assert second.event_hash != first.event_hash

    async def test_chains_are_per_entity(self, db, audit_svc):
        async with db.get_session() as session:
            await audit_svc.record(session, "Submitted", ENTITY, "req-1")
            other = await audit_svc.record(session, "Submitted", ENTITY, "req-2")
            assert other.prev_hash is None

    def test_event_hash_deterministic(self):
        args = ("Approved", ENTITY, "req-1", "officer", {"a": 1, "b": 2}, None)
        assert AuditService._compute_event_hash(*args) == AuditService._compute_event_hash(*args)

    def test_event_hash_covers_metadata(self):
        h1 = AuditService._compute_event_hash("A", ENTITY, "r", "o", {"reason": "x"}, None)
        h2 = AuditService._compute_event_hash("A", ENTITY, "r", "o", {"reason": "y"}, None)
        assert h1 != h2


class TestRecordAfterCommit:
    async def test_writes_in_own_transaction(self, db, audit_svc):
        entry = await audit_svc.record_after_commit(db, "Approved", ENTITY, "req-1", actor_ref="o")
        assert entry is not None
        async with db.get_session() as session:
            entries = await audit_svc.get_entries(session, "req-1")
            assert len(entries) == 1

    async def test_failure_is_swallowed(self, audit_svc):
        broken_db = MagicMock()
        broken_db.get_session.side_effect = RuntimeError("database unavailable")
        result = await audit_svc.record_after_commit(broken_db, "Approved", ENTITY, "req-1")
        assert result is None


class TestQueries:
    async def test_list_latest_newest_first(self, db, audit_svc):
        async with db.get_session() as session:
            await audit_svc.record(session, "Submitted", ENTITY, "req-1")
            await audit_svc.record(session, "Approved", ENTITY, "req-1")
            await audit_svc.record(session, "Submitted", ENTITY, "req-2")
        async with db.get_session() as session:
            entries = await audit_svc.list_latest(session, limit=2)
            assert [e.entity_id for e in entries] == ["req-2", "req-1"]
            assert entries[1].action == "Approved"

    async def test_list_latest_filter_by_action(self, db, audit_svc):
        async with db.get_session() as session:
            await audit_svc.record(session, "Submitted", ENTITY, "req-1")
            await audit_svc.record(session, "Approved", ENTITY, "req-1")
        async with db.get_session() as session:
            entries = await audit_svc.list_latest(session, action="Approved")
            assert len(entries) == 1

    async def test_get_entries_filters_entity_type(self, db, audit_svc):
        async with db.get_session() as session:
            await audit_svc.record(session, "Submitted", ENTITY, "x-1")
            await audit_svc.record(session, "Registered student", "student", "x-1")
        async with db.get_session() as session:
            assert len(await audit_svc.get_entries(session, "x-1")) == 2
            only = await audit_svc.get_entries(session, "x-1", entity_type="student")
            assert [e.action for e in only] == ["Registered student"]


class TestVerifyChain:
    async def test_intact_chain(self, db, audit_svc):
        async with db.get_session() as session:
            for action in ("Submitted", "Approved"):
                await audit_svc.record(session, action, ENTITY, "req-1")
        async with db.get_session() as session:
            result = await audit_svc.verify_chain(session, ENTITY, "req-1")
            assert result == {"valid": True, "entries_checked": 2, "break_at": None}

    async def test_empty_chain_is_valid(self, db, audit_svc):
        async with db.get_session() as session:
            result = await audit_svc.verify_chain(session, ENTITY, "missing")
            assert result["valid"] is True
            assert result["entries_checked"] == 0

    async def test_tampered_metadata_detected(self, db, audit_svc):
        async with db.get_session() as session:
            first = await audit_svc.record(
                session, "Rejected", ENTITY, "req-1", metadata={"reason": "pending fees"},
            )
        async with db.get_session() as session:
            await session.execute(
                update(AuditLogModel)
                .where(AuditLogModel.id == first.id)
                .values(metadata_={"reason": "edited later"})
            )
        async with db.get_session() as session:
            result = await audit_svc.verify_chain(session, ENTITY, "req-1")
            assert result["valid"] is False
            assert result["break_at"] == first.id

    async def test_rotated_key_still_verifies(self, db, make_settings):
        old = AuditService(make_settings(hmac_key="old-key"))
        async with db.get_session() as session:
            await old.record(session, "Submitted", ENTITY, "req-1")

        rotated = AuditService(make_settings(hmac_keys='{"0": "old-key", "1": "new-key"}'))
        async with db.get_session() as session:
            await rotated.record(session, "Approved", ENTITY, "req-1")
        async with db.get_session() as session:
            result = await rotated.verify_chain(session, ENTITY, "req-1")
            assert result["valid"] is True

    async def test_unknown_key_fails(self, db, make_settings):
        signer = AuditService(make_settings(hmac_key="signer-key"))
        async with db.get_session() as session:
            await signer.record(session, "Submitted", ENTITY, "req-1")

        stranger = AuditService(make_settings(hmac_key="other-key"))
        async with db.get_session() as session:
            result = await stranger.verify_chain(session, ENTITY, "req-1")
            assert result["valid"] is False
