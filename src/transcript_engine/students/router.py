"""Students and academic records API router."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.exc import IntegrityError

from transcript_engine.common.exceptions import StudentNotFoundError
from transcript_engine.common.security import require_api_key
from transcript_engine.students.models import MAX_SEMESTER, MIN_SEMESTER
from transcript_engine.students.schemas import (
    AcademicRecordResponse,
    AcademicRecordUpsert,
    StudentCreate,
    StudentResponse,
)

router = APIRouter()


def _get_service():
    from transcript_engine.deps import get_student_service
    return get_student_service()


def _get_db():
    from transcript_engine.deps import get_db
    return get_db()


def _record_response(r) -> AcademicRecordResponse:
    return AcademicRecordResponse(
        semester=r.semester,
        sgpa=float(r.sgpa),
        cgpa=float(r.cgpa),
        subjects=r.subjects or [],
    )


@router.post("/students", response_model=StudentResponse, status_code=201)
async def create_student(body: StudentCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            student = await svc.create_student(
                session, body.usn, body.name, body.email, body.major,
                user_id=body.user_id,
            )
            return StudentResponse(
                usn=student.usn, name=student.name, email=student.email,
                major=student.major, current_cgpa=None,
                created_at=student.created_at,
            )
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Student already exists")


@router.get("/students/{usn}", response_model=StudentResponse)
async def get_student(usn: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        student = await svc.get_student(session, usn)
        if student is None:
            raise HTTPException(status_code=404, detail="Student not found")
        cgpa = await svc.get_current_cgpa(session, student.usn)
        return StudentResponse(
            usn=student.usn, name=student.name, email=student.email,
            major=student.major,
            current_cgpa=float(cgpa) if cgpa is not None else None,
            created_at=student.created_at,
        )


@router.put(
    "/students/{usn}/records/{semester}",
    response_model=AcademicRecordResponse,
)
async def upsert_record(
    usn: str,
    body: AcademicRecordUpsert,
    semester: int = Path(..., ge=MIN_SEMESTER, le=MAX_SEMESTER),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            record = await svc.upsert_record(
                session, usn, semester, body.sgpa, body.cgpa, body.subjects,
            )
            return _record_response(record)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/students/{usn}/records", response_model=list[AcademicRecordResponse])
async def list_records(usn: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await _require(svc, session, usn)
        records = await svc.list_records(session, usn)
        return [_record_response(r) for r in records]


async def _require(svc, session, usn: str):
    try:
        return await svc.require_student(session, usn)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
