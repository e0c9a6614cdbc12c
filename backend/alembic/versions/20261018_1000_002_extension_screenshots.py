"""Extension screenshots

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 10:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create extension_screenshots"""
    op.create_table(
        "extension_screenshots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("extension_id", sa.Uuid(), nullable=False),
        sa.Column("image_path", sa.String(length=1024), nullable=False),
        sa.Column("image_url", sa.String(length=2048), nullable=False),
        sa.Column("caption", sa.String(length=200), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["extension_id"], ["extensions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_extension_screenshots_extension_id"), "extension_screenshots", ["extension_id"])


def downgrade() -> None:
    """Drop extension_screenshots"""
    op.drop_index(op.f("ix_extension_screenshots_extension_id"), table_name="extension_screenshots")
    op.drop_table("extension_screenshots")
