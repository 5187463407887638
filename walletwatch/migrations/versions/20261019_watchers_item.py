"""add watchers item table

Revision ID: 20261019_watchers_item
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_watchers_item"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "watchers_item",
        sa.Column("pk", sa.String(length=191), nullable=False),
        sa.Column("sk", sa.String(length=1024), nullable=False),
        sa.Column("item_type", sa.String(length=32)),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("pk", "sk", name="pk_watchers_item"),
    )
    op.create_index("ix_watchers_item_pk_type", "watchers_item", ["pk", "item_type"])


def downgrade():
    op.drop_index("ix_watchers_item_pk_type", table_name="watchers_item")
    op.drop_table("watchers_item")
