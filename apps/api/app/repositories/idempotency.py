"""Idempotency store: admission control and response caching for publish requests.

A placeholder row inserted under ``UNIQUE(owner_id, idempotency_key)`` is the
claim. Whoever inserts it owns the key until the transaction ends; every other
request with the same key either replays the stored response or waits for it.
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from ..core.config import get_settings
from ..domain.errors import NewsletterError
from ..domain.idempotency import (
    AdmissionOutcome,
    IdempotencyKey,
    IdempotencyRecord,
    ReplaySavedResponse,
    SavedResponse,
    StartProcessing,
)
from ..models.idempotency import IdempotencyResponseModel

logger = structlog.get_logger(__name__)


class SqlAlchemyIdempotencyRepository:
    """Idempotency records backed by the ``idempotency_responses`` table.

    None of the methods commit; transaction boundaries belong to the caller.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def try_claim(self, owner_id: UUID, key: IdempotencyKey) -> bool:
        """Insert the placeholder row, returning ``False`` if the key is already taken.

        A losing insert rolls the session back.
        """

        try:
            await self._session.execute(
                insert(IdempotencyResponseModel).values(
                    owner_id=owner_id,
                    idempotency_key=str(key),
                )
            )
        except IntegrityError:
            await self._session.rollback()
            return False
        return True

    async def get(self, owner_id: UUID, key: IdempotencyKey) -> IdempotencyRecord | None:
        result = await self._session.execute(
            select(IdempotencyResponseModel).where(
                IdempotencyResponseModel.owner_id == owner_id,
                IdempotencyResponseModel.idempotency_key == str(key),
            )
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return self._model_to_record(model)

    async def save_response(
        self, owner_id: UUID, key: IdempotencyKey, response: SavedResponse
    ) -> None:
        result = await self._session.execute(
            update(IdempotencyResponseModel)
            .where(
                IdempotencyResponseModel.owner_id == owner_id,
                IdempotencyResponseModel.idempotency_key == str(key),
                IdempotencyResponseModel.response_status_code.is_(None),
            )
            .values(
                response_status_code=response.status_code,
                response_headers=[list(pair) for pair in response.headers],
                response_body=response.body,
            )
        )
        if result.rowcount != 1:
            raise NewsletterError.transient_storage(
                "The idempotency claim was lost before the response could be saved"
            )

    @staticmethod
    def _model_to_record(model: IdempotencyResponseModel) -> IdempotencyRecord:
        response = None
        if model.response_status_code is not None:
            response = SavedResponse(
                status_code=model.response_status_code,
                headers=[(name, value) for name, value in model.response_headers or []],
                body=model.response_body or b"",
            )
        return IdempotencyRecord(
            owner_id=model.owner_id,
            idempotency_key=model.idempotency_key,
            response=response,
            created_at=model.created_at,
        )


async def begin_or_replay(
    session: AsyncSession,
    owner_id: UUID,
    key: IdempotencyKey,
    *,
    wait_timeout: float | None = None,
    poll_interval: float | None = None,
) -> AdmissionOutcome:
    """Claim ``(owner_id, key)`` for this request or hand back the saved response.

    On :class:`StartProcessing` the session's transaction stays open and holds
    the claim; finish it with :func:`commit_and_save` or roll it back. A
    duplicate that finds the claim still in flight polls until the response is
    saved and gives up with a transient storage error after ``wait_timeout``.
    """

    settings = get_settings()
    if wait_timeout is None:
        wait_timeout = settings.idempotency_wait_timeout_seconds
    if poll_interval is None:
        poll_interval = settings.idempotency_poll_interval_seconds

    repository = SqlAlchemyIdempotencyRepository(session)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + wait_timeout

    while True:
        try:
            if await repository.try_claim(owner_id, key):
                return StartProcessing(session)
            record = await repository.get(owner_id, key)
            # Release the read so the in-flight writer is not blocked on SQLite.
            await session.rollback()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning(
                "idempotency.admission_failed",
                owner_id=str(owner_id),
                key=str(key),
                error=str(exc),
            )
            raise NewsletterError.transient_storage(
                "Could not record the idempotency key", cause=exc
            ) from exc

        if record is not None and record.response is not None:
            logger.info("idempotency.replayed", owner_id=str(owner_id), key=str(key))
            return ReplaySavedResponse(record.response.to_response())

        if loop.time() >= deadline:
            logger.warning("idempotency.in_flight_timeout", owner_id=str(owner_id), key=str(key))
            raise NewsletterError.transient_storage(
                "A request with this idempotency key is still being processed"
            )

        if record is None:
            # The competing attempt rolled back; the key is free again.
            continue
        await asyncio.sleep(poll_interval)


async def commit_and_save(
    session: AsyncSession,
    owner_id: UUID,
    key: IdempotencyKey,
    response: Response,
) -> Response:
    """Store ``response`` on the claim row and commit it with the business writes."""

    repository = SqlAlchemyIdempotencyRepository(session)
    try:
        await repository.save_response(owner_id, key, SavedResponse.from_response(response))
        await session.commit()
    except NewsletterError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        raise NewsletterError.transient_storage(
            "Could not save the response for the idempotency key", cause=exc
        ) from exc
    return response


async def get_saved_response(
    session: AsyncSession, owner_id: UUID, key: IdempotencyKey
) -> SavedResponse | None:
    record = await SqlAlchemyIdempotencyRepository(session).get(owner_id, key)
    if record is None:
        return None
    return record.response
