from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field

from .errors import NewsletterError


class DeliveryObligation(BaseModel):
    """A pending "send issue X to recipient Y" entry of the delivery queue."""

    issue_id: UUID
    subscriber_email: str
    retry_count: int = Field(default=0, ge=0)
    next_attempt_at: datetime | None = None

    class Config:
        from_attributes = True


class ExecutionOutcome(str, Enum):
    TASK_COMPLETED = "task_completed"
    EMPTY_QUEUE = "empty_queue"


class DeliveryResult(str, Enum):
    """How a single claimed obligation was resolved."""

    DELIVERED = "delivered"
    RETRIED = "retried"
    ABANDONED = "abandoned"


class DrainReport(BaseModel):
    delivered: int = 0
    retried: int = 0
    abandoned: int = 0

    def record(self, result: DeliveryResult) -> None:
        if result is DeliveryResult.DELIVERED:
            self.delivered += 1
        elif result is DeliveryResult.RETRIED:
            self.retried += 1
        else:
            self.abandoned += 1


def parse_subscriber_email(raw: str) -> str:
    """Return the normalised address or raise a validation error."""

    try:
        validated = validate_email(raw, check_deliverability=False)
    except EmailNotValidError as exc:
        raise NewsletterError.validation(
            f"{raw!r} is not a valid subscriber email", cause=exc
        ) from exc
    return validated.normalized


def retry_backoff(attempt_no: int, base_seconds: float, max_seconds: float) -> timedelta:
    """Exponential delay before retry ``attempt_no`` (1-based), capped at ``max_seconds``."""

    exponent = min(max(0, attempt_no - 1), 32)
    return timedelta(seconds=min(max_seconds, base_seconds * (2**exponent)))
