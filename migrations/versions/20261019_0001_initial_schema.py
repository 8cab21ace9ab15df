"""Initial schema - tenants, api_keys, templates, groups, workflows

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

This migration creates the initial database schema for Alcada Portal.

Tables:
- tenants: Country ERP backends with encrypted credentials
- api_keys: Authentication credentials with permissions
- workflow_templates: Approval hierarchy definitions
- approval_groups: Named sets of approvers
- document_workflows: Approval state per ERP document (version counted)
- approval_levels: Levels of each workflow instance
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WORKFLOW_STATUSES = ("draft", "pending", "approved", "rejected")
LEVEL_STATES = ("Pending", "Released", "Rejected", "AwaitingPriorLevel")


def upgrade() -> None:
    """Create initial database schema."""

    # Create tenants table
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=5), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, default=False),
        sa.Column("table_suffix", sa.String(length=10), nullable=False),
        sa.Column("db_host", sa.String(length=255), nullable=False),
        sa.Column("db_port", sa.Integer(), nullable=False, default=1433),
        sa.Column("db_database", sa.String(length=128), nullable=False),
        sa.Column("db_username", sa.String(length=128), nullable=False),
        sa.Column("db_password", sa.Text(), nullable=False),
        sa.Column("db_options", sa.JSON(), nullable=True),
        sa.Column("api_base_url", sa.String(length=500), nullable=True),
        sa.Column("api_username", sa.String(length=128), nullable=True),
        sa.Column("api_password", sa.Text(), nullable=True),
        sa.Column("api_timeout", sa.Integer(), nullable=False, default=30000),
        sa.Column("oauth_url", sa.String(length=500), nullable=True),
        sa.Column("connection_status", sa.String(length=20), nullable=False, default="untested"),
        sa.Column("connection_error", sa.Text(), nullable=True),
        sa.Column("last_connection_test", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_code", "tenants", ["code"], unique=True)

    # Create api_keys table
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("key_prefix", sa.String(length=12), nullable=False),
        sa.Column("key_hash", sa.String(length=255), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("rate_limit", sa.Integer(), nullable=False, default=60),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False, default=0),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_api_keys_key_prefix", "api_keys", ["key_prefix"])

    # Create workflow_templates table
    op.create_table(
        "workflow_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("country_code", sa.String(length=5), nullable=True),
        sa.Column("document_type", sa.String(length=10), nullable=True),
        sa.Column("levels", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_workflow_templates_country_code", "workflow_templates", ["country_code"])

    # Create approval_groups table
    op.create_table(
        "approval_groups",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("members", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Create document_workflows table
    op.create_table(
        "document_workflows",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("country_code", sa.String(length=5), nullable=False),
        sa.Column("branch", sa.String(length=10), nullable=False),
        sa.Column("document_number", sa.String(length=50), nullable=False),
        sa.Column("document_type", sa.String(length=10), nullable=True),
        sa.Column("total_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*WORKFLOW_STATUSES, name="workflowstatus", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("current_level", sa.Integer(), nullable=True),
        sa.Column("sent_back_to", sa.Integer(), nullable=True),
        sa.Column("send_back_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["workflow_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("country_code", "branch", "document_number", name="uq_workflow_document"),
    )
    op.create_index("ix_document_workflows_country_code", "document_workflows", ["country_code"])

    # Create approval_levels table
    op.create_table(
        "approval_levels",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workflow_id", sa.Integer(), nullable=False),
        sa.Column("level_order", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("approver_id", sa.String(length=100), nullable=True),
        sa.Column("approver_name", sa.String(length=150), nullable=True),
        sa.Column("eligible_approvers", sa.JSON(), nullable=False),
        sa.Column("next_level", sa.Integer(), nullable=True),
        sa.Column(
            "state",
            sa.Enum(*LEVEL_STATES, name="levelstate", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("released_at", sa.DateTime(), nullable=True),
        sa.Column("decided_by", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["workflow_id"], ["document_workflows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workflow_id", "level_order", name="uq_approval_level_order"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("approval_levels")
    op.drop_index("ix_document_workflows_country_code", table_name="document_workflows")
    op.drop_table("document_workflows")
    op.drop_table("approval_groups")
    op.drop_index("ix_workflow_templates_country_code", table_name="workflow_templates")
    op.drop_table("workflow_templates")
    op.drop_index("ix_api_keys_key_prefix", table_name="api_keys")
    op.drop_table("api_keys")
    op.drop_index("ix_tenants_code", table_name="tenants")
    op.drop_table("tenants")
