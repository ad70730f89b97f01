from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced by publishing and delivery."""

    VALIDATION = "validation"
    TRANSIENT_STORAGE = "transient_storage"
    DELIVERY = "delivery"


class NewsletterError(Exception):
    """Single error type for the newsletter core, tagged with an :class:`ErrorKind`.

    The underlying exception (database error, HTTP failure, ...) is kept as
    ``cause`` and chained as ``__cause__`` by the ``raise ... from`` call sites.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause

    @classmethod
    def validation(cls, message: str, *, cause: BaseException | None = None) -> "NewsletterError":
        return cls(ErrorKind.VALIDATION, message, cause=cause)

    @classmethod
    def transient_storage(
        cls, message: str, *, cause: BaseException | None = None
    ) -> "NewsletterError":
        return cls(ErrorKind.TRANSIENT_STORAGE, message, cause=cause)

    @classmethod
    def delivery(cls, message: str, *, cause: BaseException | None = None) -> "NewsletterError":
        return cls(ErrorKind.DELIVERY, message, cause=cause)

    def __repr__(self) -> str:
        return f"NewsletterError(kind={self.kind.value!r}, message={self.message!r})"
