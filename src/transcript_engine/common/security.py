"""Gateway trust dependencies.

Authentication and role assignment live in the identity provider in front of
this service. Here we only check the shared gateway key and read the acting
officer reference it forwards.
"""

import hmac

from fastapi import Header, HTTPException


async def require_api_key(
    x_transcript_api_key: str = Header(..., alias="X-Transcript-Api-Key"),
) -> str:
    """FastAPI dependency that validates the gateway API key from header."""
    from transcript_engine.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(
        x_transcript_api_key.encode(), settings.api_key.encode()
    ):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_transcript_api_key


async def require_actor(
    x_actor_ref: str = Header(..., alias="X-Actor-Ref", min_length=1, max_length=255),
) -> str:
    """Officer reference supplied by the identity provider for decisions."""
    return x_actor_ref.strip()
