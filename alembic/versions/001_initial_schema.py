"""Initial schema: workspaces, members, UGC posts and rights requests.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-10 00:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Workspaces table
    op.create_table(
        "workspaces",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("idx_workspaces_slug", "workspaces", ["slug"])

    # Workspace members table
    op.create_table(
        "workspace_members",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_user"),
    )
    op.create_index("idx_workspace_members_workspace", "workspace_members", ["workspace_id"])

    # UGC posts table
    op.create_table(
        "ugc_posts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("post_url", sa.String(2048), nullable=False),
        sa.Column("post_id", sa.String(100), nullable=True),
        sa.Column("creator_handle", sa.String(100), nullable=False),
        sa.Column("creator_name", sa.String(255), nullable=True),
        sa.Column("creator_profile_url", sa.String(2048), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("hashtags", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("mentions", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("import_source", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workspace_id", "platform", "post_url", name="uq_ugc_posts_workspace_platform_url"
        ),
    )
    op.create_index("idx_ugc_posts_workspace_created", "ugc_posts", ["workspace_id", "created_at"])
    op.create_index("idx_ugc_posts_creator_handle", "ugc_posts", ["creator_handle"])

    # Rights requests table
    op.create_table(
        "rights_requests",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("ugc_post_id", sa.UUID(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("request_message", sa.Text(), nullable=True),
        sa.Column("request_method", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.ForeignKeyConstraint(["ugc_post_id"], ["ugc_posts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ugc_post_id"),
    )
    op.create_index(
        "idx_rights_requests_workspace_status", "rights_requests", ["workspace_id", "status"]
    )


def downgrade() -> None:
    op.drop_table("rights_requests")
    op.drop_table("ugc_posts")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
