"""Public routes (no authentication)."""

from fastapi import APIRouter

from wabridge.infra.db import fetchone, txn
from wabridge.infra.time import utc_now
from wabridge.observability.logging import get_logger
from wabridge.whatsapp.service import get_service

router = APIRouter()

logger = get_logger(__name__)


def _database_status() -> str:
    try:
        with txn() as cur:
            fetchone(cur, "SELECT 1")
    except Exception:
        logger.warning("health check: database unreachable")
        return "unhealthy"
    return "healthy"


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    database = _database_status()
    return {
        "status": "ok" if database == "healthy" else "degraded",
        "timestamp": utc_now().isoformat(),
        "server": "ok",
        "database": database,
        "whatsapp": get_service().state.value,
    }
