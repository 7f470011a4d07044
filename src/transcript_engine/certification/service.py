"""Certification request lifecycle: submit, approve, reject.

A request starts Pending and is decided exactly once. The decision is a
conditional UPDATE keyed on ``status = 'Pending'``, so when two decisions race,
in one process or across workers, only one of them can change a row; the
other sees zero affected rows and fails with InvalidTransitionError.

Approval renders and stores the certificate *before* the status flip. The
object name carries the attempt's verification code, so a losing or failed
attempt never touches the winner's document and removes its own. A render or
storage failure leaves the request Pending with nothing committed, and the
approval can simply be retried. Audit entries are written after the
transition commits, in their own transaction.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from transcript_engine.audit.service import ENTITY_CERTIFICATION_REQUEST
from transcript_engine.certification.models import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    CertificationRequestModel,
)
from transcript_engine.common.config import TranscriptSettings
from transcript_engine.common.exceptions import (
    DuplicatePendingRequestError,
    InvalidTransitionError,
    ReasonTooShortError,
    RenderFailureError,
    RequestNotFoundError,
    StorageFailureError,
)
from transcript_engine.common.models import utcnow
from transcript_engine.rendering.renderer import CertificateRenderer, RenderedCertificate
from transcript_engine.rendering.storage import ObjectStore, certificate_object_name
from transcript_engine.students.models import StudentModel
from transcript_engine.students.service import StudentService

logger = logging.getLogger(__name__)

ACTION_SUBMITTED = "Submitted certification request"
ACTION_APPROVED = "Approved certification request"
ACTION_REJECTED = "Rejected certification request"
ACTION_BULK_APPROVED = "Bulk approved certification request"
ACTION_BULK_REJECTED = "Bulk rejected certification request"


@dataclass
class ApprovalResult:
    request_id: str
    verification_code: str
    document_ref: str
    decided_at: datetime
    status: str = STATUS_APPROVED


class CertificationService:
    """State machine for certification requests."""

    def __init__(
        self,
        settings: TranscriptSettings,
        student_service: StudentService,
        renderer: CertificateRenderer,
        store: ObjectStore,
        audit_service=None,
    ):
        self.settings = settings
        self.student_service = student_service
        self.renderer = renderer
        self.store = store
        self.audit_service = audit_service

    # ── Submission ──

    async def submit(
        self, db, student_usn: str, actor_ref: str | None = None,
    ) -> CertificationRequestModel:
        """Create a Pending request for a student.

        Unless duplicates are allowed, a second Pending request for the same
        student is refused. The read below gives the friendly error; the
        partial unique index catches two workers inserting at once.
        """
        try:
            async with db.get_session() as session:
                student = await self.student_service.require_student(session, student_usn)
                if not self.settings.allow_duplicate_pending:
                    existing = await self._pending_for_student(session, student.usn)
                    if existing is not None:
                        raise DuplicatePendingRequestError(
                            f"Student '{student.usn}' already has pending request {existing.id}"
                        )
                request = CertificationRequestModel(
                    student_usn=student.usn,
                    status=STATUS_PENDING,
                    requested_at=utcnow(),
                )
                session.add(request)
                await session.flush()
        except IntegrityError as exc:
            raise DuplicatePendingRequestError(
                f"Student '{student_usn.strip().upper()}' already has a pending request"
            ) from exc

        logger.info(
            "Request %s submitted for %s", request.id, request.student_usn,
            extra={"request_id": request.id, "student_usn": request.student_usn},
        )
        await self._audit(
            db, ACTION_SUBMITTED, request.id, actor_ref or request.student_usn,
            {"student_usn": request.student_usn},
        )
        return request

    # ── Decisions ──

    async def approve(
        self,
        db,
        request_id: str,
        actor_ref: str,
        action: str = ACTION_APPROVED,
    ) -> ApprovalResult:
        """Render, store, then flip Pending -> Approved."""
        async with db.get_session() as session:
            request = await self._require_pending(session, request_id)
            student = await self.student_service.require_student(
                session, request.student_usn,
            )
            records = await self.student_service.list_records(session, student.usn)

        rendered = await self._render(student, records)
        name = certificate_object_name(student.usn, request_id, rendered.verification_code)
        try:
            document_ref = await self._store(name, rendered)
        except StorageFailureError:
            await self._discard(name, request_id)
            raise

        decided_at = utcnow()
        try:
            async with db.get_session() as session:
                changed = await self._transition(
                    session, request_id, STATUS_APPROVED,
                    decided_at=decided_at,
                    decided_by=actor_ref,
                    verification_code=rendered.verification_code,
                    document_ref=document_ref,
                )
        except Exception:
            await self._discard(document_ref, request_id)
            raise
        if not changed:
            await self._discard(document_ref, request_id)
            raise InvalidTransitionError(f"Request {request_id} was decided concurrently")

        logger.info(
            "Request %s approved by %s", request_id, actor_ref,
            extra={
                "request_id": request_id,
                "student_usn": student.usn,
                "actor_ref": actor_ref,
            },
        )
        await self._audit(
            db, action, request_id, actor_ref,
            {
                "student_usn": student.usn,
                "verification_code": rendered.verification_code,
            },
        )
        return ApprovalResult(
            request_id=request_id,
            verification_code=rendered.verification_code,
            document_ref=document_ref,
            decided_at=decided_at,
        )

    async def reject(
        self,
        db,
        request_id: str,
        actor_ref: str,
        reason: str,
        action: str = ACTION_REJECTED,
    ) -> CertificationRequestModel:
        """Flip Pending -> Rejected with a reason of at least the minimum length.

        The reason is validated before the request is looked up, the same
        order ``reject_all`` uses: a short reason fails with
        ReasonTooShortError even for an unknown id.
        """
        reason = self.check_reason(reason)

        async with db.get_session() as session:
            request = await self._require_pending(session, request_id)
            student_usn = request.student_usn
            changed = await self._transition(
                session, request_id, STATUS_REJECTED,
                decided_at=utcnow(),
                decided_by=actor_ref,
                rejection_reason=reason,
            )
            if not changed:
                raise InvalidTransitionError(
                    f"Request {request_id} was decided concurrently"
                )

        logger.info(
            "Request %s rejected by %s", request_id, actor_ref,
            extra={"request_id": request_id, "student_usn": student_usn, "actor_ref": actor_ref},
        )
        await self._audit(
            db, action, request_id, actor_ref,
            {"student_usn": student_usn, "reason": reason},
        )
        async with db.get_session() as session:
            return await self.get_request(session, request_id)

    def check_reason(self, reason: str | None) -> str:
        reason = (reason or "").strip()
        minimum = self.settings.min_rejection_reason_length
        if len(reason) < minimum:
            raise ReasonTooShortError(
                f"Rejection reason must be at least {minimum} characters"
            )
        return reason

    # ── Queries ──

    async def get_request(
        self, session: AsyncSession, request_id: str,
    ) -> CertificationRequestModel:
        request = await session.get(
            CertificationRequestModel, request_id, populate_existing=True,
        )
        if request is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return request

    async def list_pending(
        self, session: AsyncSession, limit: int = 50, offset: int = 0,
    ) -> list[tuple[CertificationRequestModel, StudentModel]]:
        """Pending requests, oldest first, with their students."""
        result = await session.execute(
            select(CertificationRequestModel, StudentModel)
            .join(StudentModel, StudentModel.usn == CertificationRequestModel.student_usn)
            .where(CertificationRequestModel.status == STATUS_PENDING)
            .order_by(
                CertificationRequestModel.requested_at.asc(),
                CertificationRequestModel.created_at.asc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def list_for_student(
        self, session: AsyncSession, student_usn: str,
    ) -> list[CertificationRequestModel]:
        """A student's request history, newest first."""
        result = await session.execute(
            select(CertificationRequestModel)
            .where(CertificationRequestModel.student_usn == student_usn.strip().upper())
            .order_by(CertificationRequestModel.requested_at.desc())
        )
        return list(result.scalars().all())

    async def get_document(
        self, session: AsyncSession, request_id: str,
    ) -> tuple[bytes, str]:
        """Stored certificate bytes for an Approved request."""
        request = await self.get_request(session, request_id)
        if request.status != STATUS_APPROVED or not request.document_ref:
            raise RequestNotFoundError(f"No certificate issued for request {request_id}")
        if not await self.store.exists(request.document_ref):
            logger.error(
                "Stored certificate %s for request %s is missing",
                request.document_ref, request_id,
                extra={"request_id": request_id, "document_ref": request.document_ref},
            )
            raise RequestNotFoundError(f"Certificate for request {request_id} is unavailable")
        content = await self.store.get(request.document_ref)
        return content, "application/pdf"

    # ── Internal helpers ──

    async def _pending_for_student(
        self, session: AsyncSession, student_usn: str,
    ) -> CertificationRequestModel | None:
        result = await session.execute(
            select(CertificationRequestModel)
            .where(
                CertificationRequestModel.student_usn == student_usn,
                CertificationRequestModel.status == STATUS_PENDING,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _require_pending(
        self, session: AsyncSession, request_id: str,
    ) -> CertificationRequestModel:
        request = await self.get_request(session, request_id)
        if request.status != STATUS_PENDING:
            raise InvalidTransitionError(
                f"Request {request_id} is already {request.status}"
            )
        return request

    async def _transition(
        self,
        session: AsyncSession,
        request_id: str,
        new_status: str,
        **fields: Any,
    ) -> bool:
        """Atomic Pending -> new_status; False when the row was not Pending."""
        result = await session.execute(
            update(CertificationRequestModel)
            .where(
                CertificationRequestModel.id == request_id,
                CertificationRequestModel.status == STATUS_PENDING,
            )
            .values(status=new_status, updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _render(
        self, student: StudentModel, records: list[Any],
    ) -> RenderedCertificate:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.renderer.issue, student, records),
                timeout=self.settings.render_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise RenderFailureError("Certificate rendering timed out") from exc

    async def _store(self, name: str, rendered: RenderedCertificate) -> str:
        try:
            return await asyncio.wait_for(
                self.store.put(name, rendered.content, rendered.content_type),
                timeout=self.settings.storage_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise StorageFailureError("Certificate upload timed out") from exc

    async def _discard(self, name: str, request_id: str) -> None:
        """Best-effort removal of an artifact this attempt will not commit."""
        try:
            await asyncio.wait_for(
                self.store.delete(name),
                timeout=self.settings.storage_timeout_seconds,
            )
        except (StorageFailureError, asyncio.TimeoutError):
            logger.warning(
                "Could not remove unused certificate %s", name,
                exc_info=True,
                extra={"request_id": request_id, "document_ref": name},
            )

    async def _audit(
        self,
        db,
        action: str,
        request_id: str,
        actor_ref: str,
        metadata: dict[str, Any],
    ) -> None:
        if self.audit_service:
            await self.audit_service.record_after_commit(
                db, action, ENTITY_CERTIFICATION_REQUEST, request_id,
                actor_ref=actor_ref, metadata=metadata,
            )
