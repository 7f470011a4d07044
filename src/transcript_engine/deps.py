"""Dependency injection singletons for Transcript-Engine."""

from transcript_engine.audit.service import AuditService
from transcript_engine.certification.batch import BatchCoordinator
from transcript_engine.certification.service import CertificationService
from transcript_engine.common.config import get_settings
from transcript_engine.common.database import DatabaseManager
from transcript_engine.rendering.renderer import CertificateRenderer
from transcript_engine.rendering.storage import ObjectStore, create_object_store
from transcript_engine.students.service import StudentService
from transcript_engine.verification.service import VerificationService

_db: DatabaseManager | None = None
_audit: AuditService | None = None
_students: StudentService | None = None
_store: ObjectStore | None = None
_renderer: CertificateRenderer | None = None
_certification: CertificationService | None = None
_batch: BatchCoordinator | None = None
_verification: VerificationService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_audit_service() -> AuditService:
    global _audit
    if _audit is None:
        _audit = AuditService(get_settings())
    return _audit


def get_student_service() -> StudentService:
    global _students
    if _students is None:
        _students = StudentService(audit_service=get_audit_service())
    return _students


def get_object_store() -> ObjectStore:
    global _store
    if _store is None:
        _store = create_object_store(get_settings())
    return _store


def get_renderer() -> CertificateRenderer:
    global _renderer
    if _renderer is None:
        _renderer = CertificateRenderer(get_settings())
    return _renderer


def get_certification_service() -> CertificationService:
    global _certification
    if _certification is None:
        _certification = CertificationService(
            get_settings(),
            get_student_service(),
            get_renderer(),
            get_object_store(),
            audit_service=get_audit_service(),
        )
    return _certification


def get_batch_coordinator() -> BatchCoordinator:
    global _batch
    if _batch is None:
        _batch = BatchCoordinator(get_settings(), get_certification_service())
    return _batch


def get_verification_service() -> VerificationService:
    global _verification
    if _verification is None:
        _verification = VerificationService(get_student_service())
    return _verification


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _audit, _students, _store, _renderer, _certification, _batch, _verification
    _db = None
    _audit = None
    _students = None
    _store = None
    _renderer = None
    _certification = None
    _batch = None
    _verification = None
