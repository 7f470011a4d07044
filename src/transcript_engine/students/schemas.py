"""Pydantic schemas for students and academic records."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from transcript_engine.students.models import MAX_SUBJECTS


# ── Students ──

class StudentCreate(BaseModel):
    usn: str = Field(..., min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    major: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[str] = None


class StudentResponse(BaseModel):
    usn: str
    name: str
    email: str
    major: str
    current_cgpa: Optional[float] = None
    created_at: datetime


# ── Academic records ──

class SubjectMark(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    mark: int = Field(..., ge=0, le=100)


class AcademicRecordUpsert(BaseModel):
    sgpa: Decimal = Field(..., ge=0, le=10, max_digits=4, decimal_places=2)
    cgpa: Decimal = Field(..., ge=0, le=10, max_digits=4, decimal_places=2)
    subjects: list[SubjectMark] = Field(default_factory=list, max_length=MAX_SUBJECTS)


class AcademicRecordResponse(BaseModel):
    semester: int
    sgpa: float
    cgpa: float
    subjects: list[SubjectMark] = Field(default_factory=list)
