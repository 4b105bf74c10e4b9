"""WhatsApp webhook routes - Evolution API integration.

Security:
- remote_jid and text exist only in memory while the event is dispatched
- Logs contain NO PII
"""

from typing import Any

from fastapi import APIRouter, Header, Request, Response
from starlette.concurrency import run_in_threadpool

from wabridge.api.auth import WEBHOOK_SECRET_HEADER, verify_secret
from wabridge.observability.correlation import get_correlation_id
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context
from wabridge.whatsapp.evolution_adapter import InvalidPayloadError
from wabridge.whatsapp.service import get_service

router = APIRouter(prefix="/webhooks/whatsapp", tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/evolution")
async def evolution_webhook(
    request: Request,
    x_webhook_secret: str | None = Header(None, alias=WEBHOOK_SECRET_HEADER),
) -> Response:
    """Receive an Evolution API webhook event.

    The event is normalized and dispatched synchronously (on the thread
    pool), so per-sender ordering is whatever the gateway delivers.

    Returns:
        200 OK if dispatched or ignored.
        400 Bad Request if payload invalid.
        401 Unauthorized if secret validation fails.
        500 Internal Server Error if dispatch fails.
    """
    correlation_id = get_correlation_id()

    if not verify_secret(x_webhook_secret, "EVOLUTION_WEBHOOK_SECRET"):
        return Response(status_code=401, content="unauthorized")

    try:
        payload: dict[str, Any] = await request.json()
    except Exception:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=400, content="invalid json")

    if not isinstance(payload, dict):
        return Response(status_code=400, content="invalid payload shape")

    service = get_service()
    try:
        event = await run_in_threadpool(service.handle_webhook, payload)
    except InvalidPayloadError as e:
        logger.warning(
            "invalid evolution payload shape",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, reason=str(e)
                )
            },
        )
        return Response(status_code=400, content="invalid payload shape")
    except Exception:
        logger.exception(
            "webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content="processing failed")

    if event is None:
        return Response(status_code=200, content="ignored")
    return Response(status_code=200, content="ok")
