"""Shared-secret authentication for webhooks and admin routes.

All checks fail closed: an unset secret rejects every request, except in
local development (APP_ENV=local) where the check is skipped with a warning.
"""

from __future__ import annotations

import hmac
import os

from fastapi import Header, HTTPException

from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context

logger = get_logger(__name__)

ADMIN_API_KEY_HEADER = "X-API-Key"
WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"


def _is_local_dev() -> bool:
    return os.environ.get("APP_ENV", "").lower() == "local"


def verify_secret(provided: str | None, env_var: str) -> bool:
    """Compare ``provided`` with the secret stored in ``env_var``.

    Args:
        provided: Value received in the request header.
        env_var: Name of the environment variable holding the secret.

    Returns:
        True if the request is authorized.
    """
    expected = os.environ.get(env_var, "")
    if not expected:
        if _is_local_dev():
            logger.warning(
                "secret not set - skipping validation (local dev)",
                extra={"extra_fields": safe_log_context(env_var=env_var)},
            )
            return True
        logger.error(
            "secret not configured - rejecting request (fail-closed)",
            extra={"extra_fields": safe_log_context(env_var=env_var)},
        )
        return False

    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning(
            "secret mismatch",
            extra={"extra_fields": safe_log_context(env_var=env_var)},
        )
        return False
    return True


def require_admin_key(
    x_api_key: str | None = Header(None, alias=ADMIN_API_KEY_HEADER),
) -> None:
    """FastAPI dependency guarding the admin routes."""
    if not verify_secret(x_api_key, "ADMIN_API_KEY"):
        raise HTTPException(status_code=401, detail="unauthorized")
