"""Track delivery of level decisions to the tenant ERP

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Adds sync_status, sync_error and synced_at to approval_levels. Existing
rows start as "none" (nothing to deliver).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SYNC_STATUSES = ("none", "pending", "synced", "failed")


def upgrade() -> None:
    with op.batch_alter_table("approval_levels") as batch_op:
        batch_op.add_column(
            sa.Column(
                "sync_status",
                sa.Enum(*SYNC_STATUSES, name="syncstatus", native_enum=False, length=20),
                nullable=False,
                server_default="none",
            )
        )
        batch_op.add_column(sa.Column("sync_error", sa.Text(), nullable=True))
        batch_op.add_column(sa.Column("synced_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("approval_levels") as batch_op:
        batch_op.drop_column("synced_at")
        batch_op.drop_column("sync_error")
        batch_op.drop_column("sync_status")
