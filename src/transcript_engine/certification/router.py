"""Certification request API router."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from transcript_engine.certification.batch import BatchResult
from transcript_engine.certification.models import CertificationRequestModel
from transcript_engine.certification.schemas import (
    ApprovalResponse,
    BatchApproveBody,
    BatchOutcomeResponse,
    BatchRejectBody,
    BatchResponse,
    PendingRequestResponse,
    RejectBody,
    RequestResponse,
    RequestSubmit,
    StudentRequestSummary,
)
from transcript_engine.common.exceptions import TranscriptError
from transcript_engine.common.security import require_actor, require_api_key

router = APIRouter()

_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "STUDENT_NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "DUPLICATE_PENDING": 409,
    "REASON_TOO_SHORT": 422,
    "RENDER_FAILURE": 502,
    "STORAGE_FAILURE": 503,
}


def _get_service():
    from transcript_engine.deps import get_certification_service
    return get_certification_service()


def _get_batch():
    from transcript_engine.deps import get_batch_coordinator
    return get_batch_coordinator()


def _get_db():
    from transcript_engine.deps import get_db
    return get_db()


def _http_error(e: TranscriptError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(e.code, 400),
        detail={"error": e.message, "code": e.code},
    )


def _request_response(r: CertificationRequestModel) -> RequestResponse:
    return RequestResponse(
        id=r.id,
        student_usn=r.student_usn,
        status=r.status,
        requested_at=r.requested_at,
        decided_at=r.decided_at,
        decided_by=r.decided_by,
        verification_code=r.verification_code,
        document_ref=r.document_ref,
        rejection_reason=r.rejection_reason,
    )


def _batch_response(result: BatchResult) -> BatchResponse:
    return BatchResponse(
        succeeded=result.succeeded,
        failed=result.failed,
        outcomes=[
            BatchOutcomeResponse(
                request_id=o.request_id, success=o.success,
                code=o.code, message=o.message,
            )
            for o in result.outcomes
        ],
    )


# ── Submission ──

@router.post("/requests", response_model=RequestResponse, status_code=201)
async def submit_request(body: RequestSubmit, _=Depends(require_api_key)):
    svc = _get_service()
    try:
        request = await svc.submit(_get_db(), body.student_usn)
    except TranscriptError as e:
        raise _http_error(e)
    return _request_response(request)


@router.get("/requests/pending", response_model=list[PendingRequestResponse])
async def list_pending(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    _=Depends(require_api_key),
):
    from transcript_engine.common.config import get_settings

    settings = get_settings()
    page_size = min(page_size or settings.default_page_size, settings.max_page_size)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        rows = await svc.list_pending(
            session, limit=page_size, offset=(page - 1) * page_size,
        )
        return [
            PendingRequestResponse(
                id=req.id,
                student_usn=req.student_usn,
                requested_at=req.requested_at,
                student_name=student.name,
                student_email=student.email,
            )
            for req, student in rows
        ]


@router.get("/students/{usn}/requests", response_model=list[StudentRequestSummary])
async def list_student_requests(usn: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        requests = await svc.list_for_student(session, usn)
        return [
            StudentRequestSummary(
                id=r.id,
                status=r.status,
                requested_at=r.requested_at,
                decided_at=r.decided_at,
                verification_code=r.verification_code,
                document_ref=r.document_ref,
                rejection_reason=r.rejection_reason,
            )
            for r in requests
        ]


# ── Batch (registered before /requests/{request_id} routes) ──

@router.post("/requests/batch/approve", response_model=BatchResponse)
async def batch_approve(
    body: BatchApproveBody,
    actor: str = Depends(require_actor),
    _=Depends(require_api_key),
):
    result = await _get_batch().approve_all(_get_db(), body.request_ids, actor)
    return _batch_response(result)


@router.post("/requests/batch/reject", response_model=BatchResponse)
async def batch_reject(
    body: BatchRejectBody,
    actor: str = Depends(require_actor),
    _=Depends(require_api_key),
):
    result = await _get_batch().reject_all(
        _get_db(), body.request_ids, actor, body.reason,
    )
    return _batch_response(result)


# ── Single request ──

@router.get("/requests/{request_id}", response_model=RequestResponse)
async def get_request(request_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            request = await svc.get_request(session, request_id)
            return _request_response(request)
    except TranscriptError as e:
        raise _http_error(e)


@router.post("/requests/{request_id}/approve", response_model=ApprovalResponse)
async def approve_request(
    request_id: str,
    actor: str = Depends(require_actor),
    _=Depends(require_api_key),
):
    svc = _get_service()
    try:
        result = await svc.approve(_get_db(), request_id, actor)
    except TranscriptError as e:
        raise _http_error(e)
    return ApprovalResponse(
        request_id=result.request_id,
        status=result.status,
        verification_code=result.verification_code,
        document_ref=result.document_ref,
        decided_at=result.decided_at,
    )


@router.post("/requests/{request_id}/reject", response_model=RequestResponse)
async def reject_request(
    request_id: str,
    body: RejectBody,
    actor: str = Depends(require_actor),
    _=Depends(require_api_key),
):
    svc = _get_service()
    try:
        request = await svc.reject(_get_db(), request_id, actor, body.reason)
    except TranscriptError as e:
        raise _http_error(e)
    return _request_response(request)


@router.get("/requests/{request_id}/document")
async def download_document(request_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            content, content_type = await svc.get_document(session, request_id)
    except TranscriptError as e:
        raise _http_error(e)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="certificate_{request_id}.pdf"'},
    )
