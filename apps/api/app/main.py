from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.logging import configure_logging
from .db import init_db
from .domain.errors import ErrorKind, NewsletterError
from .api.routes.newsletters import router as newsletters_router
from .telemetry import SERVICE_VERSION, configure_tracing, setup_prometheus

logger = structlog.get_logger(__name__)

_ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TRANSIENT_STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.DELIVERY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def _handle_newsletter_error(request: Request, exc: NewsletterError) -> JSONResponse:
    status_code = _ERROR_STATUS[exc.kind]
    if status_code >= 500:
        logger.error(
            "api.request_failed",
            path=request.url.path,
            kind=exc.kind.value,
            error=exc.message,
            cause=repr(exc.cause) if exc.cause is not None else None,
        )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(*, create_tables: bool = True) -> FastAPI:
    settings = get_settings()
    configure_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if create_tables:
            await init_db()
        yield

    app = FastAPI(title=settings.project_name, version=SERVICE_VERSION, lifespan=lifespan)

    allow_origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in allow_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(NewsletterError, _handle_newsletter_error)  # type: ignore[arg-type]

    @app.get("/healthz")
    def healthz() -> dict[str, str | bool]:
        return {"ok": True, "service": "api"}

    app.include_router(newsletters_router, prefix=settings.api_v1_prefix)

    if settings.enable_prometheus_metrics:
        setup_prometheus(app)
    configure_tracing(app)

    return app


app = create_app()
