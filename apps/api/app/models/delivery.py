"""SQLAlchemy model for the newsletter delivery queue."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.session import Base


class DeliveryObligationModel(Base):
    """One pending delivery of an issue to a subscriber.

    Rows are removed once the email is sent or the retry budget runs out, so
    the table is both the work list and the completion ledger.
    """

    __tablename__ = "delivery_queue"
    __table_args__ = (
        Index("ix_delivery_queue_next_attempt_at", "next_attempt_at", "enqueued_at"),
    )

    issue_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("issues.issue_id", ondelete="CASCADE"),
        primary_key=True,
    )
    subscriber_email: Mapped[str] = mapped_column(String(320), primary_key=True)
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    next_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    issue = relationship("NewsletterIssueModel", back_populates="deliveries")
