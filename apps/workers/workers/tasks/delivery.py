"""Polling worker that drains the newsletter delivery queue.

Each pass claims one queue row inside a transaction, sends the email and
resolves the row in that same transaction: deleted after a successful send,
``retry_count`` bumped and ``next_attempt_at`` pushed back after a failure,
deleted as abandoned once the retry budget is spent. A crash before commit
releases the row untouched.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import time
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.api.app.core.config import Settings, get_settings
from apps.api.app.core.logging import configure_logging
from apps.api.app.db import dispose_engine, get_sessionmaker
from apps.api.app.domain.deliveries import (
    DeliveryObligation,
    DeliveryResult,
    DrainReport,
    ExecutionOutcome,
    parse_subscriber_email,
    retry_backoff,
)
from apps.api.app.domain.errors import NewsletterError
from apps.api.app.domain.newsletters import NewsletterIssue
from apps.api.app.repositories.deliveries import SqlAlchemyDeliveryQueueRepository
from apps.api.app.repositories.issues import SqlAlchemyIssuesRepository
from apps.api.app.services.email_client import EmailSender, build_email_client_from_settings

from ..telemetry import configure_worker_telemetry, record_delivery, tracer

logger = structlog.get_logger(__name__)


async def try_execute_task(
    session_factory: async_sessionmaker[AsyncSession],
    email_client: EmailSender,
    settings: Settings | None = None,
    *,
    report: DrainReport | None = None,
) -> ExecutionOutcome:
    """Run one claim/deliver/resolve pass against the queue."""

    settings = settings or get_settings()
    async with session_factory() as session:
        queue = SqlAlchemyDeliveryQueueRepository(session)
        obligation = await queue.claim_one()
        if obligation is None:
            await session.rollback()
            return ExecutionOutcome.EMPTY_QUEUE

        issue = await SqlAlchemyIssuesRepository(session).get_issue(obligation.issue_id)
        if issue is None:
            await queue.delete(obligation)
            logger.warning(
                "delivery.missing_issue_abandoned",
                issue_id=str(obligation.issue_id),
                recipient=obligation.subscriber_email,
            )
            record_delivery(DeliveryResult.ABANDONED)
            result = DeliveryResult.ABANDONED
        else:
            result = await _deliver(queue, obligation, issue, email_client, settings)
        await session.commit()

    if report is not None:
        report.record(result)
    return ExecutionOutcome.TASK_COMPLETED


async def _deliver(
    queue: SqlAlchemyDeliveryQueueRepository,
    obligation: DeliveryObligation,
    issue: NewsletterIssue,
    email_client: EmailSender,
    settings: Settings,
) -> DeliveryResult:
    log = logger.bind(
        issue_id=str(obligation.issue_id),
        recipient=obligation.subscriber_email,
        retry_count=obligation.retry_count,
    )

    try:
        recipient = parse_subscriber_email(obligation.subscriber_email)
    except NewsletterError as exc:
        await queue.delete(obligation)
        log.warning("delivery.invalid_recipient_abandoned", error=exc.message)
        record_delivery(DeliveryResult.ABANDONED)
        return DeliveryResult.ABANDONED

    started = time.perf_counter()
    with tracer.start_as_current_span("delivery.send_email") as span:
        span.set_attribute("newsletter.issue_id", str(obligation.issue_id))
        span.set_attribute("newsletter.retry_count", obligation.retry_count)
        try:
            await email_client.send_email(
                recipient,
                issue.title,
                issue.html_content,
                issue.text_content,
            )
        except Exception as exc:
            duration = time.perf_counter() - started
            span.record_exception(exc)
            return await _record_failure(queue, obligation, exc, settings, duration, log)

    await queue.delete(obligation)
    log.info("delivery.sent")
    record_delivery(DeliveryResult.DELIVERED, time.perf_counter() - started)
    return DeliveryResult.DELIVERED


async def _record_failure(
    queue: SqlAlchemyDeliveryQueueRepository,
    obligation: DeliveryObligation,
    exc: Exception,
    settings: Settings,
    duration: float,
    log: structlog.stdlib.BoundLogger,
) -> DeliveryResult:
    error = exc.message if isinstance(exc, NewsletterError) else repr(exc)
    attempts = obligation.retry_count + 1
    if attempts >= settings.delivery_max_retries:
        await queue.delete(obligation)
        log.warning("delivery.abandoned", attempts=attempts, error=error)
        result = DeliveryResult.ABANDONED
    else:
        retry_at = datetime.now(timezone.utc) + retry_backoff(
            attempts,
            settings.delivery_retry_backoff_seconds,
            settings.delivery_retry_backoff_max_seconds,
        )
        await queue.record_failure(obligation, retry_at)
        log.warning(
            "delivery.retry_scheduled",
            attempts=attempts,
            retry_at=retry_at.isoformat(),
            error=error,
        )
        result = DeliveryResult.RETRIED
    record_delivery(result, duration)
    return result


async def drain_pending(
    session_factory: async_sessionmaker[AsyncSession],
    email_client: EmailSender,
    settings: Settings | None = None,
) -> DrainReport:
    """Process due queue rows until none is left and report what happened.

    Rows still backing off after a failure stay in the queue for a later run.
    """

    report = DrainReport()
    while (
        await try_execute_task(session_factory, email_client, settings, report=report)
        is ExecutionOutcome.TASK_COMPLETED
    ):
        pass
    logger.info(
        "delivery.drained",
        delivered=report.delivered,
        retried=report.retried,
        abandoned=report.abandoned,
    )
    return report


async def worker_loop(
    session_factory: async_sessionmaker[AsyncSession],
    email_client: EmailSender,
    settings: Settings | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Poll the queue until ``stop_event`` is set.

    An empty queue waits ``delivery_poll_interval_seconds``; a failed pass is
    logged and waits ``delivery_error_backoff_seconds``.
    """

    settings = settings or get_settings()
    stop_event = stop_event or asyncio.Event()
    logger.info("delivery.worker_started", max_retries=settings.delivery_max_retries)
    while not stop_event.is_set():
        try:
            outcome = await try_execute_task(session_factory, email_client, settings)
        except Exception:
            logger.exception("delivery.pass_failed")
            await _wait_for_stop(stop_event, settings.delivery_error_backoff_seconds)
            continue
        if outcome is ExecutionOutcome.EMPTY_QUEUE:
            await _wait_for_stop(stop_event, settings.delivery_poll_interval_seconds)
    logger.info("delivery.worker_stopped")


async def _wait_for_stop(stop_event: asyncio.Event, timeout: float) -> None:
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)


async def run_worker_until_stopped(settings: Settings | None = None) -> None:
    """Long-running entry point: build collaborators from settings and poll until SIGINT/SIGTERM."""

    settings = settings or get_settings()
    configure_logging()
    configure_worker_telemetry(settings)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop_event.set)

    try:
        async with build_email_client_from_settings() as email_client:
            await worker_loop(get_sessionmaker(), email_client, settings, stop_event)
    finally:
        await dispose_engine()


async def drain_once(settings: Settings | None = None) -> DrainReport:
    settings = settings or get_settings()
    configure_logging()
    try:
        async with build_email_client_from_settings() as email_client:
            return await drain_pending(get_sessionmaker(), email_client, settings)
    finally:
        await dispose_engine()
