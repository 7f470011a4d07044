"""Pydantic schemas for certification request endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RequestSubmit(BaseModel):
    student_usn: str = Field(..., min_length=1, max_length=32)


class RequestResponse(BaseModel):
    id: str
    student_usn: str
    status: str
    requested_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    verification_code: Optional[str] = None
    document_ref: Optional[str] = None
    rejection_reason: Optional[str] = None


class StudentRequestSummary(BaseModel):
    """A request as shown to its owning student (no officer identity)."""
    id: str
    status: str
    requested_at: datetime
    decided_at: Optional[datetime] = None
    verification_code: Optional[str] = None
    document_ref: Optional[str] = None
    rejection_reason: Optional[str] = None


class PendingRequestResponse(BaseModel):
    id: str
    student_usn: str
    requested_at: datetime
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class RejectBody(BaseModel):
    # Length is enforced by the service after trimming.
    reason: str = Field(..., max_length=2000)


class ApprovalResponse(BaseModel):
    request_id: str
    status: str
    verification_code: str
    document_ref: str
    decided_at: datetime


class BatchApproveBody(BaseModel):
    request_ids: list[str] = Field(..., min_length=1, max_length=200)


class BatchRejectBody(BaseModel):
    request_ids: list[str] = Field(..., min_length=1, max_length=200)
    reason: str = Field(..., max_length=2000)


class BatchOutcomeResponse(BaseModel):
    request_id: str
    success: bool
    code: str = "OK"
    message: str = ""


class BatchResponse(BaseModel):
    succeeded: int
    failed: int
    outcomes: list[BatchOutcomeResponse] = Field(default_factory=list)
