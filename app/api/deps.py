"""Shared API dependencies: workspace context and permission checks.

Authentication happens upstream; the gateway forwards the caller's user id
in the ``X-User-Id`` header.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Path
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Workspace, WorkspaceMember
from app.models.workspace import has_permission


@dataclass
class WorkspaceContext:
    """The authenticated caller inside one workspace."""

    workspace_id: uuid.UUID
    slug: str
    user_id: str
    role: str


async def get_workspace_context(
    slug: Annotated[str, Path(description="Workspace slug")],
    x_user_id: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> WorkspaceContext:
    """Resolve the workspace and the caller's membership, or 404."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    result = await db.execute(
        select(Workspace.id, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(Workspace.slug == slug, WorkspaceMember.user_id == x_user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Workspace not found")

    return WorkspaceContext(
        workspace_id=row.id,
        slug=slug,
        user_id=x_user_id,
        role=row.role,
    )


def require_permission(permission: str):
    """Dependency factory: the caller's role must grant ``permission``."""

    async def dependency(
        context: WorkspaceContext = Depends(get_workspace_context),
    ) -> WorkspaceContext:
        if not has_permission(context.role, permission):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return context

    return dependency
