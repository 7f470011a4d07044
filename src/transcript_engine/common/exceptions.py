"""Transcript-Engine exception hierarchy."""


class TranscriptError(Exception):
    """Base exception for all Transcript-Engine errors."""

    def __init__(self, message: str = "", code: str = "TRANSCRIPT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class RequestNotFoundError(TranscriptError):
    """Raised when a certification request does not exist."""

    def __init__(self, message: str = "Certification request not found"):
        super().__init__(message, code="NOT_FOUND")


class StudentNotFoundError(TranscriptError):
    """Raised when a student USN is unknown."""

    def __init__(self, message: str = "Student not found"):
        super().__init__(message, code="STUDENT_NOT_FOUND")


class InvalidTransitionError(TranscriptError):
    """Raised when a decision targets a request that is no longer Pending."""

    def __init__(self, message: str = "Request has already been decided"):
        super().__init__(message, code="INVALID_TRANSITION")


class ReasonTooShortError(TranscriptError):
    """Raised when a rejection reason is below the minimum length."""

    def __init__(self, message: str = "Rejection reason is too short"):
        super().__init__(message, code="REASON_TOO_SHORT")


class DuplicatePendingRequestError(TranscriptError):
    """Raised when a student already holds a Pending request."""

    def __init__(self, message: str = "A pending request already exists for this student"):
        super().__init__(message, code="DUPLICATE_PENDING")


class RenderFailureError(TranscriptError):
    """Raised when the certificate document cannot be assembled."""

    def __init__(self, message: str = "Certificate rendering failed"):
        super().__init__(message, code="RENDER_FAILURE")


class StorageFailureError(TranscriptError):
    """Raised when the certificate artifact cannot be persisted or read."""

    def __init__(self, message: str = "Certificate storage failed"):
        super().__init__(message, code="STORAGE_FAILURE")


class VerificationNotFoundError(TranscriptError):
    """Internal only; callers always see a generic invalid result."""

    def __init__(self, message: str = "Verification code not found"):
        super().__init__(message, code="VERIFICATION_NOT_FOUND")
