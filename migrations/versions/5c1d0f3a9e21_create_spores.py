"""create spores

Revision ID: 5c1d0f3a9e21
Revises:
Create Date: 2025-08-14 09:12:40.318552

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1d0f3a9e21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the append-only spores table and its lookup indexes."""
    op.create_table(
        "spores",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("cookie_id", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.current_timestamp(),
            nullable=False,
        ),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_spores_location", "spores", ["lat", "lng"])
    op.create_index("idx_spores_cookie", "spores", ["cookie_id"])


def downgrade() -> None:
    """Drop the spores table."""
    op.drop_index("idx_spores_cookie", table_name="spores")
    op.drop_index("idx_spores_location", table_name="spores")
    op.drop_table("spores")
