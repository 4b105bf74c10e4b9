"""Global workflow routing configuration.

One row of ``workflow_configs`` is active at a time; switching the workflow
deactivates the current row and inserts a new one, so the table keeps the
history of changes.
"""

from __future__ import annotations

import psycopg2

from wabridge.domain.models import WorkflowConfig, WorkflowType
from wabridge.errors import ConfigFetchError

from .db import fetchone, txn

_SELECT_ACTIVE_SQL = """
SELECT id, workflow_type, is_active, updated_at
FROM workflow_configs
WHERE is_active = TRUE
ORDER BY updated_at DESC
LIMIT 1
"""


def _row_to_config(row: tuple) -> WorkflowConfig:
    return WorkflowConfig(
        id=row[0],
        workflow_type=row[1],
        is_active=row[2],
        updated_at=row[3],
    )


def get_workflow_config() -> WorkflowConfig | None:
    """Load the active configuration row, or None if there is none."""
    with txn() as cur:
        row = fetchone(cur, _SELECT_ACTIVE_SQL)
        return _row_to_config(row) if row else None


def get_active_workflow_type() -> str:
    """Return the active workflow type as stored (not validated).

    Raises:
        ConfigFetchError: If the row cannot be read or none is active.
    """
    try:
        config = get_workflow_config()
    except (psycopg2.Error, RuntimeError) as e:
        raise ConfigFetchError(f"failed to load workflow config: {e}") from e

    if config is None:
        raise ConfigFetchError("no active workflow config")
    return config.workflow_type


def set_active_workflow_type(workflow_type: str) -> WorkflowConfig:
    """Make ``workflow_type`` the active workflow.

    Args:
        workflow_type: "n8n" or "flowise".

    Returns:
        The newly active configuration row.

    Raises:
        ValueError: If the workflow type is unknown.
    """
    if workflow_type not in WorkflowType.values():
        raise ValueError(f"unknown workflow type: {workflow_type}")

    with txn() as cur:
        cur.execute("UPDATE workflow_configs SET is_active = FALSE WHERE is_active = TRUE")
        row = fetchone(
            cur,
            """
            INSERT INTO workflow_configs (workflow_type, is_active, updated_at)
            VALUES (%s, TRUE, now())
            RETURNING id, workflow_type, is_active, updated_at
            """,
            (workflow_type,),
        )
        return _row_to_config(row)
