"""Duplicate detection for UGC posts."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import UgcPost


class DuplicateDetector:
    """
    Looks up a post by its uniqueness key (workspace, platform, url).

    Only call with a validated URL. This is a pre-check; the unique
    constraint on ugc_posts still decides races between concurrent imports.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_existing(
        self, workspace_id: uuid.UUID, platform: str, post_url: str
    ) -> uuid.UUID | None:
        """Return the id of the existing post, or None."""
        result = await self.db.execute(
            select(UgcPost.id)
            .where(
                UgcPost.workspace_id == workspace_id,
                UgcPost.platform == platform,
                UgcPost.post_url == post_url,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
