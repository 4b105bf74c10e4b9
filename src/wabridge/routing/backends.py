"""Workflow backend clients - n8n webhook and Flowise prediction API.

Both backends are fire-and-forget from the bridge's point of view: replies
come back later on the reply webhook.

Security: NEVER log phone or message text.
"""

from __future__ import annotations

import os
import uuid
from typing import Any, Protocol

import requests

from wabridge.domain.models import (
    FlowiseOverrideConfig,
    FlowiseRequest,
    N8NRequest,
    UserContext,
    WorkflowType,
)
from wabridge.errors import BackendError
from wabridge.infra.time import utc_now
from wabridge.observability.correlation import get_correlation_id
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


def default_timeout() -> float:
    """Backend call timeout from WORKFLOW_TIMEOUT_SECONDS."""
    raw = os.environ.get("WORKFLOW_TIMEOUT_SECONDS", "")
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT
    return value if value > 0 else DEFAULT_TIMEOUT


class WorkflowBackend(Protocol):
    """A workflow engine that accepts one message per call."""

    name: str

    def send_message_to_workflow(
        self,
        user_context: UserContext,
        message: str,
        *,
        message_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Forward a message. Raises BackendError on failure."""
        ...


def _post_json(
    backend: str,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """POST a JSON payload and raise BackendError on any failure."""
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-Id": get_correlation_id(),
        **headers,
    }
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        status = e.response.status_code if e.response is not None else None
        logger.error(
            "workflow request failed",
            extra={
                "extra_fields": safe_log_context(
                    backend=backend, status=status, error_type=type(e).__name__
                )
            },
        )
        raise BackendError(f"{backend} request failed: {type(e).__name__}") from e
    return response


class N8NBackend:
    """Posts N8NRequest payloads to an n8n webhook.

    Env:
    - N8N_WEBHOOK_URL (required)
    - N8N_WEBHOOK_SECRET (optional, sent as X-Webhook-Secret)
    """

    name = WorkflowType.N8N.value

    def _get_config(self) -> dict[str, str]:
        url = os.environ.get("N8N_WEBHOOK_URL", "")
        if not url:
            raise BackendError("Missing n8n config: N8N_WEBHOOK_URL")
        return {"url": url, "secret": os.environ.get("N8N_WEBHOOK_SECRET", "")}

    def build_request(
        self, user_context: UserContext, message: str, message_id: str | None = None
    ) -> N8NRequest:
        return N8NRequest(
            user_context=user_context,
            message=message,
            message_id=message_id or str(uuid.uuid4()),
            timestamp=utc_now(),
        )

    def send_message_to_workflow(
        self,
        user_context: UserContext,
        message: str,
        *,
        message_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        config = self._get_config()
        request = self.build_request(user_context, message, message_id)

        headers = {}
        if config["secret"]:
            headers["X-Webhook-Secret"] = config["secret"]

        _post_json(
            self.name,
            config["url"],
            request.to_dict(),
            headers,
            timeout or default_timeout(),
        )
        logger.info(
            "message sent to n8n",
            extra={"extra_fields": safe_log_context(message_id=request.message_id)},
        )


class FlowiseBackend:
    """Posts FlowiseRequest payloads to a chatflow prediction endpoint.

    Env:
    - FLOWISE_BASE_URL, FLOWISE_CHATFLOW_ID (required)
    - FLOWISE_API_KEY (optional, Bearer token)
    """

    name = WorkflowType.FLOWISE.value

    def _get_config(self) -> dict[str, str]:
        base_url = os.environ.get("FLOWISE_BASE_URL", "")
        chatflow_id = os.environ.get("FLOWISE_CHATFLOW_ID", "")
        if not base_url or not chatflow_id:
            raise BackendError("Missing Flowise config: FLOWISE_BASE_URL, FLOWISE_CHATFLOW_ID")
        return {
            "url": f"{base_url.rstrip('/')}/api/v1/prediction/{chatflow_id}",
            "api_key": os.environ.get("FLOWISE_API_KEY", ""),
        }

    def build_request(
        self, user_context: UserContext, message: str, message_id: str | None = None
    ) -> FlowiseRequest:
        # The phone doubles as session id so Flowise keeps per-chat memory.
        return FlowiseRequest(
            question=message,
            override_config=FlowiseOverrideConfig(
                session_id=user_context.phone,
                vars={
                    **user_context.to_dict(),
                    "message_id": message_id or str(uuid.uuid4()),
                },
            ),
        )

    def send_message_to_workflow(
        self,
        user_context: UserContext,
        message: str,
        *,
        message_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        config = self._get_config()
        request = self.build_request(user_context, message, message_id)

        headers = {}
        if config["api_key"]:
            headers["Authorization"] = f"Bearer {config['api_key']}"

        response = _post_json(
            self.name,
            config["url"],
            request.to_dict(),
            headers,
            timeout or default_timeout(),
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        chat_id = body.get("chatId", "") if isinstance(body, dict) else ""
        logger.info(
            "message sent to flowise",
            extra={"extra_fields": safe_log_context(chat_id=chat_id)},
        )
