from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import decode_operator_token
from ..db import get_session
from ..domain.errors import NewsletterError
from ..repositories.deliveries import (
    DeliveryQueueRepository,
    SqlAlchemyDeliveryQueueRepository,
)
from ..repositories.issues import IssuesRepository, SqlAlchemyIssuesRepository

_http_bearer = HTTPBearer(auto_error=False)


async def get_issues_repository(
    session: AsyncSession = Depends(get_session),
) -> IssuesRepository:
    return SqlAlchemyIssuesRepository(session)


async def get_delivery_queue_repository(
    session: AsyncSession = Depends(get_session),
) -> DeliveryQueueRepository:
    return SqlAlchemyDeliveryQueueRepository(session)


async def get_current_owner_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
) -> UUID:
    """Resolve the acting operator from the bearer token's ``sub`` claim."""

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        return decode_operator_token(credentials.credentials)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


async def get_idempotency_key(
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> str:
    if idempotency_key is None:
        raise NewsletterError.validation("The Idempotency-Key header is required")
    return idempotency_key
