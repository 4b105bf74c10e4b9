"""Global workflow configuration endpoints.

GET /workflow-config  → active workflow
PUT /workflow-config  → switch workflow (n8n | flowise)
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from wabridge.api.auth import require_admin_key
from wabridge.domain.models import WorkflowConfig, WorkflowType
from wabridge.infra.workflow_config import get_workflow_config, set_active_workflow_type
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context

router = APIRouter(
    prefix="/workflow-config",
    tags=["workflow"],
    dependencies=[Depends(require_admin_key)],
)

logger = get_logger(__name__)


class UpdateWorkflowConfigRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workflow_type: WorkflowType


def _config_to_dict(config: WorkflowConfig) -> dict:
    return {
        "id": config.id,
        "workflow_type": config.workflow_type,
        "is_active": config.is_active,
        "updated_at": config.updated_at.isoformat(),
    }


@router.get("")
def read_workflow_config() -> dict:
    config = get_workflow_config()
    if config is None:
        raise HTTPException(status_code=404, detail="no active workflow config")
    return _config_to_dict(config)


@router.put("")
def update_workflow_config(body: UpdateWorkflowConfigRequest) -> dict:
    """Switch the active workflow. Takes effect on the next message."""
    config = set_active_workflow_type(body.workflow_type.value)
    logger.info(
        "workflow config updated",
        extra={"extra_fields": safe_log_context(workflow_type=config.workflow_type)},
    )
    return _config_to_dict(config)
