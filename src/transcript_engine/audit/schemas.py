"""Pydantic schemas for audit API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    id: str
    action: str
    entity_type: str
    entity_id: str
    actor_ref: str
    metadata: dict[str, Any] = {}
    prev_hash: Optional[str] = None
    event_hash: str
    signature: str
    created_at: datetime


class AuditPage(BaseModel):
    items: list[AuditEntryResponse]
    limit: int
    offset: int


class AuditChainVerification(BaseModel):
    valid: bool
    entries_checked: int
    break_at: Optional[str] = None
