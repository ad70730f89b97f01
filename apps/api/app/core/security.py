"""Operator tokens: HS256 JWTs whose ``sub`` claim is the owner id used to scope idempotency keys."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import jwt
from jose.exceptions import JWTClaimsError

from .config import get_settings

ALGORITHM = "HS256"


def create_operator_token(owner_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Sign a token that authenticates requests on behalf of ``owner_id``."""

    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    claims: dict[str, Any] = {
        "sub": str(owner_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_operator_token(token: str) -> UUID:
    """Verify ``token`` and return the owner id it was issued for.

    Raises ``jose.JWTError`` for bad signatures, expired tokens and a missing
    or malformed ``sub`` claim.
    """

    settings = get_settings()
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    subject = payload.get("sub")
    if not isinstance(subject, str):
        raise JWTClaimsError("Token has no subject")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise JWTClaimsError("Token subject is not an owner id") from exc
