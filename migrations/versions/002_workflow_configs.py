"""Global workflow routing configuration.

Revision ID: 002_workflow_configs
Revises: 001_users
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op


revision = "002_workflow_configs"
down_revision = "001_users"
branch_labels = None
depends_on = None


UPGRADE_SQL = """
CREATE TABLE IF NOT EXISTS workflow_configs (
    id             SERIAL PRIMARY KEY,
    workflow_type  VARCHAR(20) NOT NULL,
    is_active      BOOLEAN     NOT NULL DEFAULT TRUE,
    updated_at     TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT ck_workflow_configs_type CHECK (workflow_type IN ('n8n', 'flowise'))
);

-- At most one active row
CREATE UNIQUE INDEX IF NOT EXISTS ux_workflow_configs_active
    ON workflow_configs (is_active) WHERE is_active;

INSERT INTO workflow_configs (workflow_type, is_active)
SELECT 'n8n', TRUE
WHERE NOT EXISTS (SELECT 1 FROM workflow_configs);
"""


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(UPGRADE_SQL)


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql("DROP TABLE IF EXISTS workflow_configs;")
