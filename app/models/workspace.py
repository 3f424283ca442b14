"""Workspace (tenant) and membership models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.import_log import ImportLog
    from app.models.ugc_post import UgcPost


class WorkspaceRole(str, Enum):
    """Workspace member roles, highest first."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    ANALYST = "analyst"


ROLE_LEVELS = {
    WorkspaceRole.OWNER: 4,
    WorkspaceRole.ADMIN: 3,
    WorkspaceRole.MEMBER: 2,
    WorkspaceRole.ANALYST: 1,
}

PERMISSION_LEVELS = {
    "read": 1,
    "write": 2,
    "admin": 3,
    "owner": 4,
}


def has_permission(role: str, permission: str) -> bool:
    """Check a member role against a required permission level."""
    try:
        role_level = ROLE_LEVELS[WorkspaceRole(role)]
    except ValueError:
        return False
    return role_level >= PERMISSION_LEVELS[permission]


class Workspace(Base):
    """Multi-tenant workspace root entity."""

    __tablename__ = "workspaces"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    members: Mapped[list["WorkspaceMember"]] = relationship(
        "WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan"
    )
    posts: Mapped[list["UgcPost"]] = relationship(
        "UgcPost", back_populates="workspace", cascade="all, delete-orphan"
    )
    import_logs: Mapped[list["ImportLog"]] = relationship(
        "ImportLog", back_populates="workspace", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_workspaces_slug", "slug"),)


class WorkspaceMember(Base):
    """A user's membership in a workspace. Users live in the auth service."""

    __tablename__ = "workspace_members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=WorkspaceRole.MEMBER.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="members")

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_user"),
        Index("idx_workspace_members_workspace", "workspace_id"),
    )
