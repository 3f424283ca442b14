"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
async def health(db: AsyncSession = Depends(get_db)) -> dict:
    """Liveness plus a trivial database round trip."""
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
