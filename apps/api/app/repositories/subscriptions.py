from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.subscriptions import Subscription, SubscriptionStatus
from ..models.subscription import SubscriptionModel


class SqlAlchemySubscriptionsRepository:
    """Read access to subscribers plus an insert used to seed local and test data."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        email: str,
        name: str,
        status: SubscriptionStatus = SubscriptionStatus.CONFIRMED,
    ) -> Subscription:
        model = SubscriptionModel(email=email, name=name, status=status.value)
        self._session.add(model)
        await self._session.commit()
        await self._session.refresh(model)
        return Subscription.model_validate(model)

    async def list_confirmed(self) -> list[Subscription]:
        result = await self._session.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.status == SubscriptionStatus.CONFIRMED.value)
            .order_by(SubscriptionModel.email)
        )
        return [Subscription.model_validate(model) for model in result.scalars()]
