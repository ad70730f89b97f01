"""SQLAlchemy ORM models used by the API layer."""

from .idempotency import IdempotencyResponseModel
from .issue import NewsletterIssueModel
from .delivery import DeliveryObligationModel
from .subscription import SubscriptionModel

__all__ = [
    "IdempotencyResponseModel",
    "NewsletterIssueModel",
    "DeliveryObligationModel",
    "SubscriptionModel",
]
