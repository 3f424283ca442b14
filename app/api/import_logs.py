"""Import log API endpoints - import history and per-run step trails."""

import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, get_workspace_context
from app.config import settings
from app.database import get_db
from app.models import ImportLog, ImportLogEntry
from app.services.import_logger import ImportLogStore

router = APIRouter(prefix="/api/v1/workspaces/{slug}/ugc/import-logs", tags=["import-logs"])


class ImportLogEntryResponse(BaseModel):
    """One recorded step."""

    id: str
    sequence: int
    step: str
    status: str
    message: str
    details: dict[str, Any] | None
    duration: int | None
    created_at: datetime


class ImportLogResponse(BaseModel):
    """An import run with its ordered entries."""

    id: str
    source: str
    status: str
    total_items: int
    processed: int
    succeeded: int
    failed: int
    skipped: int
    metadata: dict[str, Any] | None
    started_at: datetime
    completed_at: datetime | None
    created_at: datetime
    entries: list[ImportLogEntryResponse]


class ImportLogListResponse(BaseModel):
    logs: list[ImportLogResponse]


def _entry_to_response(entry: ImportLogEntry) -> ImportLogEntryResponse:
    return ImportLogEntryResponse(
        id=str(entry.id),
        sequence=entry.sequence,
        step=entry.step,
        status=entry.status,
        message=entry.message,
        details=entry.details,
        duration=entry.duration,
        created_at=entry.created_at,
    )


def _log_to_response(log: ImportLog) -> ImportLogResponse:
    return ImportLogResponse(
        id=str(log.id),
        source=log.source,
        status=log.status,
        total_items=log.total_items,
        processed=log.processed,
        succeeded=log.succeeded,
        failed=log.failed,
        skipped=log.skipped,
        metadata=log.metadata_,
        started_at=log.started_at,
        completed_at=log.completed_at,
        created_at=log.created_at,
        entries=[_entry_to_response(e) for e in log.entries],
    )


@router.get("", response_model=ImportLogListResponse)
async def list_import_logs(
    limit: Annotated[int, Query(ge=1, le=settings.import_logs_max_limit)] = settings.import_logs_default_limit,
    context: WorkspaceContext = Depends(get_workspace_context),
    db: AsyncSession = Depends(get_db),
) -> ImportLogListResponse:
    """Most recent import runs for the workspace, newest first."""
    store = ImportLogStore(db)
    logs = await store.list_runs(context.workspace_id, limit)
    return ImportLogListResponse(logs=[_log_to_response(log) for log in logs])


@router.get("/{log_id}", response_model=ImportLogResponse)
async def get_import_log(
    log_id: str,
    context: WorkspaceContext = Depends(get_workspace_context),
    db: AsyncSession = Depends(get_db),
) -> ImportLogResponse:
    """One import run with every entry in the order it was recorded."""
    try:
        log_uuid = uuid.UUID(log_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Import log not found")

    store = ImportLogStore(db)
    log = await store.get_run(log_uuid, context.workspace_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Import log not found")

    return _log_to_response(log)
