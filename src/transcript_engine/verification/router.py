"""Public verification API router (no authentication)."""

from fastapi import APIRouter

from transcript_engine.verification.schemas import VerificationResult, VerifyBody

router = APIRouter()


def _get_service():
    from transcript_engine.deps import get_verification_service
    return get_verification_service()


def _get_db():
    from transcript_engine.deps import get_db
    return get_db()


async def _verify(code: str) -> VerificationResult:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.verify(session, code)


@router.get("/verify/{code}", response_model=VerificationResult, response_model_exclude_none=True)
async def verify_code(code: str):
    return await _verify(code)


@router.post("/verify", response_model=VerificationResult, response_model_exclude_none=True)
async def verify_code_body(body: VerifyBody):
    return await _verify(body.code)
