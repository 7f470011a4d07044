"""Shared test fixtures for Transcript-Engine."""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from transcript_engine.audit.service import AuditService
from transcript_engine.certification.batch import BatchCoordinator
from transcript_engine.certification.service import CertificationService
from transcript_engine.common.config import TranscriptSettings
from transcript_engine.common.database import DatabaseManager
from transcript_engine.rendering.renderer import CertificateRenderer
from transcript_engine.rendering.storage import LocalObjectStore
from transcript_engine.students.service import StudentService
from transcript_engine.verification.service import VerificationService


HMAC_KEY = "test-hmac-key-for-unit-tests"
API_KEY = "test-admin-api-key"
OFFICER = "coe-officer-1"
STUDENT_USN = "1GU21CS001"


# ── Service-level fixtures ──

@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> TranscriptSettings:
        defaults = {
            "hmac_key": HMAC_KEY,
            "api_key": API_KEY,
            "db_url": "sqlite+aiosqlite://",
            "storage_dir": str(tmp_path / "objects"),
            "public_base_url": "https://transcripts.example.edu",
        }
        defaults.update(overrides)
        return TranscriptSettings(**defaults)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def store(settings):
    return LocalObjectStore(settings.storage_dir)


@pytest.fixture
def audit_svc(settings):
    return AuditService(settings)


@pytest.fixture
def student_svc(audit_svc):
    return StudentService(audit_service=audit_svc)


@pytest.fixture
def renderer(settings):
    return CertificateRenderer(settings)


@pytest.fixture
def cert_svc(settings, student_svc, renderer, store, audit_svc):
    return CertificationService(
        settings, student_svc, renderer, store, audit_service=audit_svc,
    )


@pytest.fixture
def batch(settings, cert_svc):
    return BatchCoordinator(settings, cert_svc)


@pytest.fixture
def verification_svc(student_svc):
    return VerificationService(student_svc)


@pytest.fixture
def seed(student_svc):
    async def _seed(db, usn=STUDENT_USN, name="Asha Rao", semesters=3):
        """Create a student with ``semesters`` records; CGPA of semester n is 8.n0."""
        async with db.get_session() as session:
            await student_svc.create_student(
                session, usn, name, f"{usn.lower()}@example.edu", "B.Tech Computer Science",
            )
            for semester in range(1, semesters + 1):
                await student_svc.upsert_record(
                    session, usn, semester,
                    Decimal(f"8.{semester}5"), Decimal(f"8.{semester}0"),
                    [{"name": f"Subject {semester}.{i}", "mark": 70 + i} for i in range(1, 4)],
                )
        return usn
    return _seed


@pytest.fixture
async def student(db, seed):
    return await seed(db)


# ── HTTP fixtures ──

@pytest.fixture
def app(monkeypatch, tmp_path):
    """Create a test app with in-memory DB and a temp object store."""
    monkeypatch.setenv("TRANSCRIPT_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("TRANSCRIPT_HMAC_KEY", HMAC_KEY)
    monkeypatch.setenv("TRANSCRIPT_API_KEY", API_KEY)
    monkeypatch.setenv("TRANSCRIPT_STORAGE_DIR", str(tmp_path / "http-objects"))
    monkeypatch.setenv("TRANSCRIPT_PUBLIC_BASE_URL", "https://transcripts.example.edu")

    # Clear caches and singletons so new env vars take effect
    from transcript_engine.common.config import get_settings
    get_settings.cache_clear()

    from transcript_engine.deps import reset_singletons
    reset_singletons()

    from transcript_engine.app import create_app
    yield create_app()

    get_settings.cache_clear()
    reset_singletons()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from transcript_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Transcript-Api-Key": API_KEY}


@pytest.fixture
def officer_headers():
    return {"X-Transcript-Api-Key": API_KEY, "X-Actor-Ref": OFFICER}
