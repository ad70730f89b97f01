from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from ...db import get_session
from ...domain.newsletters import NewsletterIssueCreate, NewsletterIssueResponse
from ...repositories.deliveries import DeliveryQueueRepository
from ...repositories.issues import IssuesRepository
from ...services.publishing import publish_newsletter_issue
from ..dependencies import (
    get_current_owner_id,
    get_delivery_queue_repository,
    get_idempotency_key,
    get_issues_repository,
)

router = APIRouter(prefix="/admin/newsletters", tags=["newsletters"])


@router.post(
    "",
    status_code=status.HTTP_303_SEE_OTHER,
    response_class=Response,
    responses={status.HTTP_303_SEE_OTHER: {"description": "Issue accepted for delivery"}},
)
async def publish_newsletter(
    payload: NewsletterIssueCreate,
    owner_id: UUID = Depends(get_current_owner_id),
    idempotency_key: str = Depends(get_idempotency_key),
    session: AsyncSession = Depends(get_session),
) -> Response:
    return await publish_newsletter_issue(session, owner_id, idempotency_key, payload)


@router.get("/{issue_id}", response_model=NewsletterIssueResponse)
async def get_newsletter_issue(
    issue_id: UUID,
    _owner_id: UUID = Depends(get_current_owner_id),
    issues_repo: IssuesRepository = Depends(get_issues_repository),
    deliveries_repo: DeliveryQueueRepository = Depends(get_delivery_queue_repository),
) -> NewsletterIssueResponse:
    issue = await issues_repo.get_issue(issue_id)
    if issue is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Newsletter issue not found",
        )
    pending = await deliveries_repo.count_pending(issue_id)
    return NewsletterIssueResponse(data=issue, pending_deliveries=pending)
