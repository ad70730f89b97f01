from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .errors import NewsletterError

ACCEPTED_MESSAGE = "The newsletter issue has been accepted - emails will go out shortly."


class NewsletterIssueCreate(BaseModel):
    title: str = Field(..., max_length=255)
    text_content: str
    html_content: str

    def ensure_complete(self) -> None:
        """Reject blank fields; the body schema only guarantees they are present."""

        for field_name in ("title", "text_content", "html_content"):
            if not getattr(self, field_name).strip():
                raise NewsletterError.validation(f"The {field_name} field cannot be empty")


class NewsletterIssue(BaseModel):
    issue_id: UUID
    title: str
    text_content: str
    html_content: str
    published_at: datetime

    class Config:
        from_attributes = True


class PublishAccepted(BaseModel):
    issue_id: UUID
    message: str = ACCEPTED_MESSAGE


class NewsletterIssueResponse(BaseModel):
    data: NewsletterIssue
    pending_deliveries: int = Field(..., ge=0)
