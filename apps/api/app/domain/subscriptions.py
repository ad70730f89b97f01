from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr


class SubscriptionStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


class Subscription(BaseModel):
    id: UUID
    email: EmailStr
    name: str
    status: SubscriptionStatus
    subscribed_at: datetime

    class Config:
        from_attributes = True
