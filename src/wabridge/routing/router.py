"""Workflow routing - pick exactly one backend per message."""

from __future__ import annotations

from typing import Callable

from wabridge.domain.models import DEFAULT_WORKFLOW_TYPE, UserContext, WorkflowType
from wabridge.errors import BackendDispatchError
from wabridge.infra.workflow_config import get_active_workflow_type
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context

from .backends import FlowiseBackend, N8NBackend, WorkflowBackend

logger = get_logger(__name__)


class WorkflowRouter:
    """Routes messages to the active workflow backend.

    Policy:
    - config fetch failure: log and use n8n
    - unknown workflow type: log a warning and use n8n
    - backend failure: raise BackendDispatchError (no retry)
    """

    def __init__(
        self,
        n8n: WorkflowBackend | None = None,
        flowise: WorkflowBackend | None = None,
        fetch_workflow_type: Callable[[], str] = get_active_workflow_type,
    ) -> None:
        self._backends: dict[WorkflowType, WorkflowBackend] = {
            WorkflowType.N8N: n8n or N8NBackend(),
            WorkflowType.FLOWISE: flowise or FlowiseBackend(),
        }
        self._fetch_workflow_type = fetch_workflow_type

    def select(self) -> WorkflowType:
        """Resolve the workflow type to use for the next message."""
        try:
            configured = self._fetch_workflow_type()
        except Exception as e:
            logger.error(
                "failed to get workflow config, using default",
                extra={
                    "extra_fields": safe_log_context(
                        default=DEFAULT_WORKFLOW_TYPE.value, error=e
                    )
                },
            )
            return DEFAULT_WORKFLOW_TYPE

        try:
            return WorkflowType(configured)
        except ValueError:
            logger.warning(
                "unknown workflow type, defaulting to n8n",
                extra={"extra_fields": safe_log_context(workflow_type=configured)},
            )
            return DEFAULT_WORKFLOW_TYPE

    def route(
        self,
        user_context: UserContext,
        message: str,
        *,
        message_id: str | None = None,
        timeout: float | None = None,
    ) -> WorkflowType:
        """Forward a message to the selected backend.

        Args:
            user_context: Identity of the sender.
            message: Message text. NEVER logged.
            message_id: Transport message id, forwarded to the backend.
            timeout: Upper bound in seconds for the backend call.

        Returns:
            The workflow type that handled the message.

        Raises:
            BackendDispatchError: If the backend call fails.
        """
        workflow_type = self.select()
        backend = self._backends[workflow_type]

        logger.info(
            "routing message to workflow",
            extra={"extra_fields": safe_log_context(workflow_type=workflow_type.value)},
        )

        try:
            backend.send_message_to_workflow(
                user_context, message, message_id=message_id, timeout=timeout
            )
        except Exception as e:
            logger.error(
                "failed to send message to workflow",
                extra={
                    "extra_fields": safe_log_context(
                        workflow_type=workflow_type.value, error_type=type(e).__name__
                    )
                },
            )
            raise BackendDispatchError(workflow_type.value, e) from e

        return workflow_type
