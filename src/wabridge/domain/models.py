"""Domain models shared by routing, persistence and backend clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from wabridge.infra.time import rfc3339


class WorkflowType(str, Enum):
    """Workflow backends a message can be routed to."""

    N8N = "n8n"
    FLOWISE = "flowise"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


DEFAULT_WORKFLOW_TYPE = WorkflowType.N8N


@dataclass(frozen=True)
class UserContext:
    """Identity attached to an outgoing backend request."""

    user_id: UUID
    name: str
    phone: str
    email: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
        }


@dataclass(frozen=True)
class User:
    """Registered user row."""

    id: UUID
    name: str
    phone: str
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class WorkflowConfig:
    """Global workflow routing configuration row."""

    id: int
    workflow_type: str
    is_active: bool
    updated_at: datetime


@dataclass(frozen=True)
class N8NRequest:
    """Payload sent to the n8n workflow webhook."""

    user_context: UserContext
    message: str
    message_id: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_context": self.user_context.to_dict(),
            "message": self.message,
            "message_id": self.message_id,
            "timestamp": rfc3339(self.timestamp),
        }


@dataclass(frozen=True)
class FlowiseOverrideConfig:
    """Runtime configuration for a Flowise prediction."""

    session_id: str = ""
    vars: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.session_id:
            data["sessionId"] = self.session_id
        if self.vars:
            data["vars"] = self.vars
        return data


@dataclass(frozen=True)
class FlowiseRequest:
    """Payload sent to the Flowise prediction endpoint."""

    question: str
    override_config: FlowiseOverrideConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"question": self.question}
        if self.override_config is not None:
            override = self.override_config.to_dict()
            if override:
                data["overrideConfig"] = override
        return data
