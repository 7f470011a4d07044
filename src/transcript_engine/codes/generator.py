"""
Verification code generator.

Codes are 128 bits drawn from the OS CSPRNG via ``secrets`` and encoded as
URL-safe base64 without padding (22 characters). They carry no structure:
nothing about the student, the request id, or the issuing time can be
recovered from a code, so codes cannot be guessed or enumerated.

Database primary keys use uuid4 (see ``common.models.generate_uuid``); codes
deliberately do not reuse that scheme.
"""

import re
import secrets

CODE_BYTES = 16
MIN_CODE_BYTES = 16
# ceil(16 * 4 / 3) characters for 16 bytes without padding
MIN_CODE_LEN = 22
MAX_CODE_LEN = 128

_CODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def generate_verification_code(nbytes: int = CODE_BYTES) -> str:
    """Return a fresh, unguessable verification code."""
    if nbytes < MIN_CODE_BYTES:
        raise ValueError(f"Verification codes need at least {MIN_CODE_BYTES} bytes of entropy")
    return secrets.token_urlsafe(nbytes)


def normalize_code(raw: str | None) -> str:
    """Trim user-supplied formatting around a pasted code."""
    if raw is None:
        return ""
    return raw.strip()


def is_well_formed(code: str) -> bool:
    """Cheap shape check so malformed input never reaches the database."""
    if not (MIN_CODE_LEN <= len(code) <= MAX_CODE_LEN):
        return False
    return _CODE_RE.match(code) is not None
