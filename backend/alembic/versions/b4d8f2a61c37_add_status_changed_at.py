"""add status_changed_at to whatsapp integrations

Revision ID: b4d8f2a61c37
Revises: a7c3e9d1f204
Create Date: 2026-10-19 15:10:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b4d8f2a61c37"
down_revision: Union[str, None] = "a7c3e9d1f204"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "whatsapp_integrations",
        sa.Column("status_changed_at", sa.DateTime(), nullable=True),
    )
    op.execute("UPDATE whatsapp_integrations SET status_changed_at = updated_at")


def downgrade() -> None:
    with op.batch_alter_table("whatsapp_integrations") as batch_op:
        batch_op.drop_column("status_changed_at")
