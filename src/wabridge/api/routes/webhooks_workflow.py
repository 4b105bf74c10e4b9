"""Webhooks called by workflow backends.

n8n and Flowise answer asynchronously by posting the generated reply here;
the bridge delivers it to the user through the WhatsApp session.

POST /webhooks/workflow/reply   → deliver one reply
POST /webhooks/workflow/signal  → broadcast a stock signal to active users
"""

import time

import psycopg2
from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel, Field

from wabridge.api.auth import WEBHOOK_SECRET_HEADER, verify_secret
from wabridge.domain.signals import format_signal_message
from wabridge.errors import InvalidPhoneNumber, NotConnected, SendFailed
from wabridge.infra.db import txn
from wabridge.infra.repositories import users_repository
from wabridge.infra.time import utc_now
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import hash_identifier, safe_log_context
from wabridge.whatsapp.service import get_service

router = APIRouter(prefix="/webhooks/workflow", tags=["webhooks"])

logger = get_logger(__name__)


class WorkflowReply(BaseModel):
    """Reply posted by a workflow (n8n uses ``response``, Flowise ``text``)."""

    message_id: str = ""
    phone: str
    response: str | None = None
    text: str | None = None
    success: bool = True
    error: str | None = None

    def reply_text(self) -> str:
        return self.response or self.text or ""


@router.post("/reply")
def workflow_reply(
    body: WorkflowReply,
    x_webhook_secret: str | None = Header(None, alias=WEBHOOK_SECRET_HEADER),
) -> dict:
    """Deliver a workflow reply to the user.

    Failed workflow runs are logged and acknowledged without sending.
    """
    if not verify_secret(x_webhook_secret, "WORKFLOW_WEBHOOK_SECRET"):
        raise HTTPException(status_code=401, detail="unauthorized")

    log_ctx = safe_log_context(
        message_id=body.message_id, to_hash=hash_identifier(body.phone)
    )

    if not body.success:
        logger.warning(
            "workflow reported failure",
            extra={"extra_fields": safe_log_context(**log_ctx, error=body.error)},
        )
        return {"status": "ignored"}

    text = body.reply_text()
    if not text:
        raise HTTPException(status_code=400, detail="empty reply")

    try:
        receipt = get_service().send_message(body.phone, text)
    except NotConnected:
        raise HTTPException(status_code=409, detail="whatsapp not connected")
    except InvalidPhoneNumber:
        raise HTTPException(status_code=400, detail="invalid phone number")
    except SendFailed:
        raise HTTPException(status_code=502, detail="failed to send message")

    logger.info("workflow reply delivered", extra={"extra_fields": log_ctx})
    return {"status": "sent", "message_id": receipt}


class Signal(BaseModel):
    """Stock signal produced by an n8n workflow."""

    ticker: str = Field(min_length=1, max_length=10)
    last_date: str = Field(min_length=1)
    last_close: int = 0
    entry_price: int
    entry_gap_percent: float
    stop: float = Field(gt=0)
    target: float = Field(gt=0)
    risk_reward: float = Field(gt=0)
    backtest_win_rate: float = Field(ge=0, le=100)
    total_trades: int = Field(ge=0)
    confluence_score: float = Field(ge=0)
    confluence_hits: str = ""
    overall_sentiment: str = ""
    confidence_score: float = 0.0
    sentiment_score: float = 0.0
    analysis_summary: str = ""


@router.post("/signal")
def broadcast_signal(
    body: Signal,
    x_webhook_secret: str | None = Header(None, alias=WEBHOOK_SECRET_HEADER),
) -> dict:
    """Send a signal notice to every active registered user.

    Per-user send failures are logged and skipped; ``users_notified``
    counts the notices actually delivered.
    """
    if not verify_secret(x_webhook_secret, "WORKFLOW_WEBHOOK_SECRET"):
        raise HTTPException(status_code=401, detail="unauthorized")

    started = time.monotonic()
    service = get_service()
    if not service.is_connected():
        raise HTTPException(status_code=409, detail="whatsapp not connected")

    try:
        with txn() as cur:
            users = users_repository.list_users(cur, active_only=True)
    except (psycopg2.Error, RuntimeError):
        logger.exception("failed to load users for signal broadcast")
        raise HTTPException(status_code=503, detail="database unavailable")

    text = format_signal_message(body)
    notified = 0
    for user in users:
        try:
            service.send_message(user.phone, text)
        except NotConnected:
            logger.error(
                "session lost during signal broadcast",
                extra={"extra_fields": safe_log_context(ticker=body.ticker, notified=notified)},
            )
            break
        except (InvalidPhoneNumber, SendFailed) as e:
            logger.warning(
                "failed to send signal to user",
                extra={
                    "extra_fields": safe_log_context(
                        ticker=body.ticker,
                        to_hash=hash_identifier(user.phone),
                        error_type=type(e).__name__,
                    )
                },
            )
            continue
        notified += 1

    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "signal broadcast completed",
        extra={
            "extra_fields": safe_log_context(
                ticker=body.ticker,
                users_total=len(users),
                users_notified=notified,
                processing_time_ms=elapsed_ms,
            )
        },
    )
    return {
        "ticker": body.ticker,
        "users_notified": notified,
        "timestamp": utc_now().isoformat(),
        "processing_time_ms": elapsed_ms,
    }
