"""Create roadmaps table

Revision ID: create_roadmaps
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "create_roadmaps"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "roadmaps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("career", sa.String(), nullable=False),
        sa.Column("timeline", sa.String(), nullable=False),
        sa.Column("total_progress", sa.Integer(), nullable=False, server_default="0"),
        # Milestones with their tasks and quiz reports, stored as one document
        sa.Column("milestones", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_roadmaps_owner_id", "roadmaps", ["owner_id"])


def downgrade() -> None:
    op.drop_index("ix_roadmaps_owner_id", table_name="roadmaps")
    op.drop_table("roadmaps")
