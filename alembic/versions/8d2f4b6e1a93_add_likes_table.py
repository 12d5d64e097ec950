"""Add likes table

Revision ID: 8d2f4b6e1a93
Revises: 3c1e7a9b2d40
Create Date: 2026-10-20 10:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8d2f4b6e1a93"
down_revision: str | Sequence[str] | None = "3c1e7a9b2d40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "item_id", sa.Integer(),
            sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "item_id", name="uq_likes_user_item"),
    )
    op.create_index("ix_likes_item", "likes", ["item_id"])


def downgrade() -> None:
    op.drop_index("ix_likes_item", table_name="likes")
    op.drop_table("likes")
