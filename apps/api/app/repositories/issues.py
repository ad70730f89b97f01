from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy import insert, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.newsletters import NewsletterIssue
from ..domain.subscriptions import SubscriptionStatus
from ..models.delivery import DeliveryObligationModel
from ..models.issue import NewsletterIssueModel
from ..models.subscription import SubscriptionModel


class IssuesRepository(Protocol):
    async def create_issue(self, title: str, text_content: str, html_content: str) -> UUID: ...

    async def enqueue_obligations(self, issue_id: UUID) -> int: ...

    async def get_issue(self, issue_id: UUID) -> NewsletterIssue | None: ...


class SqlAlchemyIssuesRepository:
    """Writes issues and their delivery obligations into the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_issue(self, title: str, text_content: str, html_content: str) -> UUID:
        issue_id = uuid4()
        await self._session.execute(
            insert(NewsletterIssueModel).values(
                issue_id=issue_id,
                title=title,
                text_content=text_content,
                html_content=html_content,
                published_at=datetime.now(timezone.utc),
            )
        )
        return issue_id

    async def enqueue_obligations(self, issue_id: UUID) -> int:
        """Queue one delivery per confirmed subscriber with a single INSERT ... SELECT."""

        confirmed = select(
            literal(issue_id, type_=DeliveryObligationModel.issue_id.type),
            SubscriptionModel.email,
        ).where(SubscriptionModel.status == SubscriptionStatus.CONFIRMED.value)
        result = await self._session.execute(
            insert(DeliveryObligationModel).from_select(
                ["issue_id", "subscriber_email"], confirmed
            )
        )
        return result.rowcount

    async def get_issue(self, issue_id: UUID) -> NewsletterIssue | None:
        model = await self._session.get(NewsletterIssueModel, issue_id)
        if model is None:
            return None
        return NewsletterIssue.model_validate(model)
