"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from wabridge.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from wabridge.observability.logging import get_logger
from wabridge.whatsapp.service import get_service

from .routers import public
from .routes import session, users, webhooks_whatsapp, webhooks_workflow, workflow_config

logger = get_logger(__name__)


def _autostart_enabled() -> bool:
    return os.environ.get("WHATSAPP_AUTOSTART", "true").lower() in {"1", "true", "yes", "on"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the WhatsApp session with the app and stop it on shutdown.

    A failed start is logged and the API keeps serving so an operator can
    retry through POST /whatsapp/start.
    """
    try:
        await run_in_threadpool(get_service().start)
    except Exception:
        logger.exception("WhatsApp service failed to start")
    yield
    await run_in_threadpool(get_service().stop)


def create_app(autostart: bool | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        autostart: Start the WhatsApp session on startup. If None, reads
                   WHATSAPP_AUTOSTART (default true).

    Returns:
        Configured FastAPI application.
    """
    if autostart is None:
        autostart = _autostart_enabled()

    app = FastAPI(
        title="WA Bridge",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan if autostart else None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        # Get or generate correlation ID
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks_whatsapp.router)
    app.include_router(webhooks_workflow.router)
    app.include_router(session.router)
    app.include_router(workflow_config.router)
    app.include_router(users.router)

    return app
