"""Idempotent publication of newsletter issues."""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from ..core.config import get_settings
from ..domain.errors import NewsletterError
from ..domain.idempotency import IdempotencyKey, ReplaySavedResponse
from ..domain.newsletters import NewsletterIssueCreate, PublishAccepted
from ..repositories.idempotency import begin_or_replay, commit_and_save
from ..repositories.issues import SqlAlchemyIssuesRepository
from ..telemetry import PUBLISH_COUNT

logger = structlog.get_logger(__name__)


def issue_location(issue_id: UUID) -> str:
    return f"{get_settings().api_v1_prefix}/admin/newsletters/{issue_id}"


async def publish_newsletter_issue(
    session: AsyncSession,
    owner_id: UUID,
    idempotency_key: str,
    payload: NewsletterIssueCreate,
) -> Response:
    """Record an issue and queue its deliveries once per ``(owner_id, idempotency_key)``.

    The first call answers ``303 See Other`` pointing at the new issue. Later
    calls with the same key get that exact response back without touching the
    issue or queue tables. Storage failures roll everything back, including
    the key claim, so the client can retry with the same key.
    """

    key = IdempotencyKey(idempotency_key)
    payload.ensure_complete()

    outcome = await begin_or_replay(session, owner_id, key)
    if isinstance(outcome, ReplaySavedResponse):
        PUBLISH_COUNT.labels(outcome="replayed").inc()
        return outcome.response

    transaction = outcome.session
    issues = SqlAlchemyIssuesRepository(transaction)
    try:
        issue_id = await issues.create_issue(
            title=payload.title,
            text_content=payload.text_content,
            html_content=payload.html_content,
        )
        enqueued = await issues.enqueue_obligations(issue_id)
    except SQLAlchemyError as exc:
        await transaction.rollback()
        logger.warning("publish.failed", owner_id=str(owner_id), key=str(key), error=str(exc))
        raise NewsletterError.transient_storage(
            "Could not store the newsletter issue", cause=exc
        ) from exc

    response = JSONResponse(
        status_code=status.HTTP_303_SEE_OTHER,
        content=PublishAccepted(issue_id=issue_id).model_dump(mode="json"),
        headers={"Location": issue_location(issue_id)},
    )
    response = await commit_and_save(transaction, owner_id, key, response)
    PUBLISH_COUNT.labels(outcome="accepted").inc()
    logger.info(
        "publish.accepted",
        owner_id=str(owner_id),
        key=str(key),
        issue_id=str(issue_id),
        deliveries=enqueued,
    )
    return response
