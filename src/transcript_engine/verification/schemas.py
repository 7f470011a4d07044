"""Pydantic schemas for the public verification endpoint."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class VerifyBody(BaseModel):
    code: str = ""


class VerificationResult(BaseModel):
    """Public answer. Invalid results carry nothing but ``valid: false``."""

    valid: bool
    student_name: Optional[str] = None
    usn: Optional[str] = None
    major: Optional[str] = None
    cgpa: Optional[float] = None
    approval_date: Optional[datetime] = None

    @classmethod
    def invalid(cls) -> "VerificationResult":
        return cls(valid=False)
