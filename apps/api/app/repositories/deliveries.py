from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.deliveries import DeliveryObligation
from ..models.delivery import DeliveryObligationModel


class DeliveryQueueRepository(Protocol):
    async def claim_one(self, now: datetime | None = None) -> DeliveryObligation | None: ...

    async def delete(self, obligation: DeliveryObligation) -> None: ...

    async def record_failure(self, obligation: DeliveryObligation, retry_at: datetime) -> int: ...

    async def count_pending(self, issue_id: UUID | None = None) -> int: ...

    async def list_pending(self, issue_id: UUID) -> list[DeliveryObligation]: ...


class SqlAlchemyDeliveryQueueRepository:
    """Delivery queue operations running inside the caller's transaction.

    ``claim_one`` locks the returned row until that transaction ends, and rows
    locked by other workers are skipped rather than waited on. Rows whose
    ``next_attempt_at`` lies in the future are backing off and are not claimed.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def claim_one(self, now: datetime | None = None) -> DeliveryObligation | None:
        now = now or datetime.now(timezone.utc)
        result = await self._session.execute(
            select(DeliveryObligationModel)
            .where(DeliveryObligationModel.next_attempt_at <= now)
            .order_by(
                DeliveryObligationModel.next_attempt_at.asc(),
                DeliveryObligationModel.enqueued_at.asc(),
            )
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return DeliveryObligation.model_validate(model)

    async def delete(self, obligation: DeliveryObligation) -> None:
        await self._session.execute(
            delete(DeliveryObligationModel).where(
                DeliveryObligationModel.issue_id == obligation.issue_id,
                DeliveryObligationModel.subscriber_email == obligation.subscriber_email,
            )
        )

    async def record_failure(self, obligation: DeliveryObligation, retry_at: datetime) -> int:
        """Bump the retry counter of a claimed row, defer it to ``retry_at`` and return the new count."""

        retry_count = obligation.retry_count + 1
        await self._session.execute(
            update(DeliveryObligationModel)
            .where(
                DeliveryObligationModel.issue_id == obligation.issue_id,
                DeliveryObligationModel.subscriber_email == obligation.subscriber_email,
            )
            .values(retry_count=retry_count, next_attempt_at=retry_at)
        )
        return retry_count

    async def count_pending(self, issue_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(DeliveryObligationModel)
        if issue_id is not None:
            stmt = stmt.where(DeliveryObligationModel.issue_id == issue_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def list_pending(self, issue_id: UUID) -> list[DeliveryObligation]:
        result = await self._session.execute(
            select(DeliveryObligationModel)
            .where(DeliveryObligationModel.issue_id == issue_id)
            .order_by(DeliveryObligationModel.subscriber_email)
        )
        return [DeliveryObligation.model_validate(model) for model in result.scalars()]
