"""Baseline marketplace schema

Revision ID: 001
Revises:
Create Date: 2026-03-01 10:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

EXTENSION_STATUSES = ("draft", "pending_review", "published", "rejected", "unlisted")
VERSION_STATUSES = ("draft", "pending_review", "published", "rejected")


def upgrade() -> None:
    """Create publishers, extensions, versions, reviews, downloads and API keys"""

    extension_status = postgresql.ENUM(*EXTENSION_STATUSES, name="extension_status", create_type=False)
    version_status = postgresql.ENUM(*VERSION_STATUSES, name="version_status", create_type=False)
    extension_status.create(op.get_bind(), checkfirst=True)
    version_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "publishers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=50), nullable=False),
        sa.Column("slug", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(length=2048), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("avatar_url", sa.String(length=2048), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_publishers_user_id"), "publishers", ["user_id"], unique=True)
    op.create_index(op.f("ix_publishers_slug"), "publishers", ["slug"], unique=True)

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_categories_slug"), "categories", ["slug"], unique=True)

    op.create_table(
        "extensions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("publisher_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=True),
        sa.Column("extension_id", sa.String(length=100), nullable=False),
        sa.Column("public_key", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("short_description", sa.String(length=150), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon_url", sa.String(length=2048), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("status", extension_status, nullable=False, server_default="draft"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("average_rating", sa.Integer(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["publisher_id"], ["publishers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("extension_id"),
        sa.UniqueConstraint("public_key"),
    )
    op.create_index(op.f("ix_extensions_publisher_id"), "extensions", ["publisher_id"])
    op.create_index(op.f("ix_extensions_category_id"), "extensions", ["category_id"])
    op.create_index(op.f("ix_extensions_slug"), "extensions", ["slug"], unique=True)
    op.create_index(op.f("ix_extensions_status"), "extensions", ["status"])
    op.create_index(op.f("ix_extensions_total_downloads"), "extensions", ["total_downloads"])

    op.create_table(
        "extension_versions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("extension_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.String(length=256), nullable=False),
        sa.Column("changelog", sa.Text(), nullable=True),
        sa.Column("bundle_path", sa.String(length=1024), nullable=False),
        sa.Column("bundle_size", sa.Integer(), nullable=False),
        sa.Column("bundle_hash", sa.String(length=64), nullable=False),
        sa.Column("manifest", sa.JSON(), nullable=False),
        sa.Column("min_app_version", sa.String(length=256), nullable=True),
        sa.Column("max_app_version", sa.String(length=256), nullable=True),
        sa.Column("permissions", sa.JSON(), nullable=True),
        sa.Column("status", version_status, nullable=False, server_default="draft"),
        sa.Column("downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["extension_id"], ["extensions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("extension_id", "version", name="uq_extension_versions_extension_version"),
    )
    op.create_index(op.f("ix_extension_versions_extension_id"), "extension_versions", ["extension_id"])
    op.create_index(op.f("ix_extension_versions_status"), "extension_versions", ["status"])

    op.create_table(
        "extension_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("extension_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_extension_reviews_rating"),
        sa.ForeignKeyConstraint(["extension_id"], ["extensions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("extension_id", "user_id", name="uq_extension_reviews_extension_user"),
    )
    op.create_index(op.f("ix_extension_reviews_extension_id"), "extension_reviews", ["extension_id"])
    op.create_index(op.f("ix_extension_reviews_rating"), "extension_reviews", ["rating"])
    op.create_index(
        "ix_extension_reviews_extension_created", "extension_reviews", ["extension_id", "created_at"]
    )

    op.create_table(
        "extension_downloads",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("extension_id", sa.Uuid(), nullable=False),
        sa.Column("version_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("ip_hash", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("platform", sa.String(length=50), nullable=True),
        sa.Column("app_version", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["extension_id"], ["extensions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["version_id"], ["extension_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_extension_downloads_extension_id"), "extension_downloads", ["extension_id"])
    op.create_index(op.f("ix_extension_downloads_version_id"), "extension_downloads", ["version_id"])
    op.create_index(op.f("ix_extension_downloads_created_at"), "extension_downloads", ["created_at"])

    op.create_table(
        "publisher_api_keys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("publisher_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("key_hash", sa.String(length=128), nullable=False),
        sa.Column("key_prefix", sa.String(length=32), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["publisher_id"], ["publishers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_publisher_api_keys_publisher_id"), "publisher_api_keys", ["publisher_id"])
    op.create_index(op.f("ix_publisher_api_keys_key_hash"), "publisher_api_keys", ["key_hash"])


def downgrade() -> None:
    """Drop all tables"""
    op.drop_table("publisher_api_keys")
    op.drop_table("extension_downloads")
    op.drop_table("extension_reviews")
    op.drop_table("extension_versions")
    op.drop_table("extensions")
    op.drop_table("categories")
    op.drop_table("publishers")
    op.execute("DROP TYPE IF EXISTS version_status")
    op.execute("DROP TYPE IF EXISTS extension_status")
