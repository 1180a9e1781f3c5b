"""create whatsapp integrations table

Revision ID: a7c3e9d1f204
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a7c3e9d1f204"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "whatsapp_integrations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False, server_default=sa.text("'uazapi'")),
        sa.Column("instance_name", sa.String(), nullable=True),
        sa.Column("api_key_encrypted", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'disconnected'")),
        sa.Column("qr_code_base64", sa.Text(), nullable=True),
        sa.Column("connected_at", sa.DateTime(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "status IN ('disconnected', 'pending', 'connected', 'error')",
            name="ck_whatsapp_integrations_status",
        ),
    )
    op.create_index(op.f("ix_whatsapp_integrations_id"), "whatsapp_integrations", ["id"], unique=False)
    op.create_index(
        op.f("ix_whatsapp_integrations_tenant_id"),
        "whatsapp_integrations",
        ["tenant_id"],
        unique=True,
    )
    op.create_index(
        "ix_whatsapp_integrations_status_id",
        "whatsapp_integrations",
        ["status", "id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_whatsapp_integrations_status_id", table_name="whatsapp_integrations")
    op.drop_index(op.f("ix_whatsapp_integrations_tenant_id"), table_name="whatsapp_integrations")
    op.drop_index(op.f("ix_whatsapp_integrations_id"), table_name="whatsapp_integrations")
    op.drop_table("whatsapp_integrations")
