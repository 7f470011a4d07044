"""Audit service: append, query, and verify the per-entity audit chain."""

import hashlib
import hmac as hmac_mod
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from transcript_engine.audit.models import AuditLogModel
from transcript_engine.common.config import TranscriptSettings

logger = logging.getLogger(__name__)

ENTITY_CERTIFICATION_REQUEST = "certification_request"
ENTITY_ACADEMIC_RECORD = "academic_record"
ENTITY_STUDENT = "student"


class AuditService:
    """Append-only audit log, hash-chained per entity."""

    def __init__(self, settings: TranscriptSettings):
        self.settings = settings

    # ── Write ──

    async def record(
        self,
        session: AsyncSession,
        action: str,
        entity_type: str,
        entity_id: str,
        actor_ref: str = "system",
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLogModel:
        """Append a new entry to the entity's chain within ``session``."""
        metadata = metadata or {}

        head = await self.get_chain_head(session, entity_type, entity_id)
        prev_hash = head.event_hash if head else None

        event_hash = self._compute_event_hash(
            action, entity_type, entity_id, actor_ref, metadata, prev_hash,
        )

        entry = AuditLogModel(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_ref=actor_ref,
            metadata_=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
            prev_hash=prev_hash,
            event_hash=event_hash,
            signature=self._sign(event_hash),
        )
        session.add(entry)
        await session.flush()
        return entry

    async def record_after_commit(
        self,
        db,
        action: str,
        entity_type: str,
        entity_id: str,
        **kwargs: Any,
    ) -> AuditLogModel | None:
        """Write an entry in its own transaction once the change it describes is durable.

        Failures are logged and swallowed: the transition has already
        committed and must not be rolled back or blocked by the audit write.
        """
        try:
            async with db.get_session() as session:
                return await self.record(session, action, entity_type, entity_id, **kwargs)
        except Exception:
            logger.exception(
                "Failed to write audit entry %r for %s %s", action, entity_type, entity_id,
            )
            return None

    # ── Read ──

    async def get_chain_head(
        self, session: AsyncSession, entity_type: str, entity_id: str,
    ) -> AuditLogModel | None:
        """Return the most recent entry for an entity."""
        result = await session.execute(
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(AuditLogModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_latest(
        self,
        session: AsyncSession,
        action: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLogModel]:
        """Latest entries across all entities, newest first."""
        query = select(AuditLogModel)
        if action:
            query = query.where(AuditLogModel.action == action)
        query = (
            query.order_by(AuditLogModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    async def get_entries(
        self,
        session: AsyncSession,
        entity_id: str,
        entity_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLogModel]:
        """Paginated entries for one entity, newest first."""
        query = select(AuditLogModel).where(AuditLogModel.entity_id == entity_id)
        if entity_type:
            query = query.where(AuditLogModel.entity_type == entity_type)
        query = (
            query.order_by(AuditLogModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    # ── Verify ──

    async def verify_chain(
        self, session: AsyncSession, entity_type: str, entity_id: str,
    ) -> dict[str, Any]:
        """Walk the chain oldest to newest, verify hashes and signatures."""
        result = await session.execute(
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(AuditLogModel.created_at.asc())
        )
        entries = list(result.scalars().all())

        prev_hash = None
        for index, entry in enumerate(entries):
            expected_hash = self._compute_event_hash(
                entry.action, entry.entity_type, entry.entity_id,
                entry.actor_ref, entry.metadata_ or {}, entry.prev_hash,
            )
            if (
                entry.prev_hash != prev_hash
                or entry.event_hash != expected_hash
                or not self._verify_signature(entry.event_hash, entry.signature)
            ):
                return {"valid": False, "entries_checked": index, "break_at": entry.id}
            prev_hash = entry.event_hash

        return {"valid": True, "entries_checked": len(entries), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    def _compute_event_hash(
        action: str,
        entity_type: str,
        entity_id: str,
        actor_ref: str,
        metadata: dict[str, Any],
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "actor_ref": actor_ref,
                "metadata": metadata,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, event_hash: str) -> str:
        return hmac_mod.new(
            self.settings.current_hmac_key.encode(),
            event_hash.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _verify_signature(self, event_hash: str, signature: str) -> bool:
        """Verify against every key in the keyring (supports rotation)."""
        for _version, key in self.settings.hmac_keyring.items():
            expected = hmac_mod.new(
                key.encode(), event_hash.encode(), hashlib.sha256,
            ).hexdigest()
            if hmac_mod.compare_digest(expected, signature):
                return True
        return False
