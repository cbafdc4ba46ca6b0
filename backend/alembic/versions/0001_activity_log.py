"""Activity log table.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "activity_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("engagement_id", sa.String(64), nullable=True),
        sa.Column("client_id", sa.String(64), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_activity_log_engagement_id", "activity_log", ["engagement_id"])
    op.create_index("ix_activity_log_client_id", "activity_log", ["client_id"])
    op.create_index("ix_activity_log_type", "activity_log", ["type"])
    op.create_index("ix_activity_log_user_id", "activity_log", ["user_id"])
    op.create_index("ix_activity_log_timestamp", "activity_log", ["timestamp"])


def downgrade() -> None:
    op.drop_table("activity_log")
