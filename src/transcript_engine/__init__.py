"""Transcript-Engine: certified academic transcript issuance and verification."""

from transcript_engine.client import VerificationClient
from transcript_engine.codes.generator import generate_verification_code, is_well_formed

__all__ = [
    "VerificationClient",
    "generate_verification_code",
    "is_well_formed",
]
__version__ = "0.1.0"
