"""UGC post and rights request models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.workspace import Workspace


class Platform(str, Enum):
    """Platforms a UGC post can come from."""

    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    MANUAL = "manual"


class RightsStatus(str, Enum):
    """Usage-rights negotiation status."""

    PENDING = "pending"
    REQUESTED = "requested"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class UgcPost(Base):
    """
    A piece of user-generated content imported into a workspace.

    (workspace_id, platform, post_url) is unique. The import pipeline
    checks it before inserting, but the constraint is what settles races
    between concurrent imports.
    """

    __tablename__ = "ugc_posts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    post_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    post_id: Mapped[str | None] = mapped_column(String(100))

    # Creator
    creator_handle: Mapped[str] = mapped_column(String(100), nullable=False)
    creator_name: Mapped[str | None] = mapped_column(String(255))
    creator_profile_url: Mapped[str | None] = mapped_column(String(2048))

    # Content metadata
    caption: Mapped[str | None] = mapped_column(Text)
    hashtags: Mapped[list[str]] = mapped_column(JSON, default=list)
    mentions: Mapped[list[str]] = mapped_column(JSON, default=list)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime)
    import_source: Mapped[str | None] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="posts")
    rights_request: Mapped["RightsRequest | None"] = relationship(
        "RightsRequest", back_populates="post", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "platform",
            "post_url",
            name="uq_ugc_posts_workspace_platform_url",
        ),
        Index("idx_ugc_posts_workspace_created", "workspace_id", "created_at"),
        Index("idx_ugc_posts_creator_handle", "creator_handle"),
    )


class RightsRequest(Base):
    """Permission request to reuse a UGC post. One per post."""

    __tablename__ = "rights_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False
    )
    ugc_post_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("ugc_posts.id"), unique=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default=RightsStatus.PENDING.value)
    request_message: Mapped[str | None] = mapped_column(Text)
    request_method: Mapped[str | None] = mapped_column(String(20))  # dm, email, comment

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    post: Mapped["UgcPost"] = relationship("UgcPost", back_populates="rights_request")

    __table_args__ = (Index("idx_rights_requests_workspace_status", "workspace_id", "status"),)
