"""Audit log API router."""

from fastapi import APIRouter, Depends, Query

from transcript_engine.audit.models import AuditLogModel
from transcript_engine.audit.schemas import (
    AuditChainVerification,
    AuditEntryResponse,
    AuditPage,
)
from transcript_engine.audit.service import ENTITY_CERTIFICATION_REQUEST
from transcript_engine.common.security import require_api_key

router = APIRouter()


def _get_service():
    from transcript_engine.deps import get_audit_service
    return get_audit_service()


def _get_db():
    from transcript_engine.deps import get_db
    return get_db()


def _cap(limit: int) -> int:
    from transcript_engine.common.config import get_settings
    return min(limit, get_settings().audit_max_page_size)


def _to_response(e: AuditLogModel) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=e.id,
        action=e.action,
        entity_type=e.entity_type,
        entity_id=e.entity_id,
        actor_ref=e.actor_ref,
        metadata=e.metadata_ or {},
        prev_hash=e.prev_hash,
        event_hash=e.event_hash,
        signature=e.signature,
        created_at=e.created_at,
    )


@router.get("/audit", response_model=AuditPage)
async def list_audit_entries(
    action: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    limit = _cap(limit)
    async with db.get_session() as session:
        entries = await svc.list_latest(session, action=action, limit=limit, offset=offset)
        return AuditPage(
            items=[_to_response(e) for e in entries],
            limit=limit,
            offset=offset,
        )


@router.get("/audit/{entity_id}", response_model=list[AuditEntryResponse])
async def get_entity_entries(
    entity_id: str,
    entity_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        entries = await svc.get_entries(
            session, entity_id, entity_type=entity_type,
            limit=_cap(limit), offset=offset,
        )
        return [_to_response(e) for e in entries]


@router.get("/audit/{entity_id}/verify", response_model=AuditChainVerification)
async def verify_audit_chain(
    entity_id: str,
    entity_type: str = Query(ENTITY_CERTIFICATION_REQUEST),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.verify_chain(session, entity_type, entity_id)
        return AuditChainVerification(**result)
