from __future__ import annotations

import string
from dataclasses import dataclass
from datetime import datetime
from typing import Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from .errors import NewsletterError

IDEMPOTENCY_KEY_MAX_LENGTH = 50
_ALLOWED_KEY_CHARACTERS = frozenset(string.ascii_letters + string.digits)


class IdempotencyKey(str):
    """Client supplied token identifying one logical publish attempt."""

    def __new__(cls, value: str) -> "IdempotencyKey":
        if not value:
            raise NewsletterError.validation("The idempotency key cannot be empty")
        if len(value) > IDEMPOTENCY_KEY_MAX_LENGTH:
            raise NewsletterError.validation(
                f"The idempotency key must be at most {IDEMPOTENCY_KEY_MAX_LENGTH} characters"
            )
        if not set(value) <= _ALLOWED_KEY_CHARACTERS:
            raise NewsletterError.validation(
                "The idempotency key may only contain letters and digits"
            )
        return super().__new__(cls, value)


class SavedResponse(BaseModel):
    """HTTP response cached for replay."""

    status_code: int
    headers: list[tuple[str, str]]
    body: bytes

    @classmethod
    def from_response(cls, response: Response) -> "SavedResponse":
        return cls(
            status_code=response.status_code,
            headers=[
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ],
            body=bytes(response.body),
        )

    def to_response(self) -> Response:
        response = Response(content=self.body, status_code=self.status_code)
        # Replace the generated headers so the replay matches the original byte for byte.
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1")) for name, value in self.headers
        ]
        return response


class IdempotencyRecord(BaseModel):
    """Stored claim for ``(owner_id, idempotency_key)``; ``response`` is unset while in flight."""

    owner_id: UUID
    idempotency_key: str
    response: SavedResponse | None = None
    created_at: datetime


@dataclass
class StartProcessing:
    """Admission won: ``session`` holds the open transaction that owns the claim."""

    session: AsyncSession


@dataclass
class ReplaySavedResponse:
    """A previous attempt with the same key already produced ``response``."""

    response: Response


AdmissionOutcome = Union[StartProcessing, ReplaySavedResponse]
