"""UGC import API endpoints (manual single post and CSV batches)."""

from datetime import datetime
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, File, HTTPException, Request, Response, UploadFile
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import WorkspaceContext, require_permission
from app.config import settings
from app.database import get_db
from app.models import UgcPost
from app.models.import_log import ImportSource
from app.services.csv_parser import CsvParseError, CsvRowParser
from app.services.errors import ImportAbortedError, ImportValidationError
from app.services.ugc_importer import ImportResult, RowOutcomeType, UgcImporter

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/workspaces/{slug}/ugc", tags=["ugc"])


# ============ Schemas ============


class UgcPostResponse(BaseModel):
    """An imported UGC post."""

    id: str
    platform: str
    post_url: str
    creator_handle: str
    creator_name: str | None
    caption: str | None
    hashtags: list[str]
    mentions: list[str]
    posted_at: datetime | None
    import_source: str | None
    created_at: datetime
    rights_request_id: str | None
    rights_status: str | None


class ManualImportResponse(BaseModel):
    """Response from a manual single-post import."""

    import_log_id: str
    status: str
    duplicate: bool = False
    existing_post_id: str | None = None
    post: UgcPostResponse | None = None


class CsvImportRequest(BaseModel):
    """A batch of CSV rows already parsed by the client."""

    rows: list[Any] = []


class RowError(BaseModel):
    row: int
    error: str | None
    post_url: str | None = None


class CsvImportResponse(BaseModel):
    """Aggregate result of a batch import."""

    import_log_id: str
    status: str
    message: str
    total: int
    processed: int
    imported: int
    skipped: int
    failed: int
    cancelled: bool
    errors: list[RowError]
    post_ids: list[str]


# ============ Helper Functions ============


def _post_to_response(post: UgcPost) -> UgcPostResponse:
    rights = post.rights_request
    return UgcPostResponse(
        id=str(post.id),
        platform=post.platform,
        post_url=post.post_url,
        creator_handle=post.creator_handle,
        creator_name=post.creator_name,
        caption=post.caption,
        hashtags=post.hashtags or [],
        mentions=post.mentions or [],
        posted_at=post.posted_at,
        import_source=post.import_source,
        created_at=post.created_at,
        rights_request_id=str(rights.id) if rights else None,
        rights_status=rights.status if rights else None,
    )


def _result_to_response(result: ImportResult) -> CsvImportResponse:
    return CsvImportResponse(
        import_log_id=str(result.import_log_id),
        status=result.status.value,
        message=result.message,
        total=result.total,
        processed=result.processed,
        imported=result.imported,
        skipped=result.skipped,
        failed=result.failed,
        cancelled=result.cancelled,
        errors=[RowError(**e) for e in result.errors],
        post_ids=[str(post_id) for post_id in result.post_ids],
    )


def _aborted(e: ImportAbortedError, message: str) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={
            "code": "INTERNAL_ERROR",
            "message": message,
            "import_log_id": str(e.import_log_id) if e.import_log_id else None,
        },
    )


async def _run_batch(
    request: Request,
    db: AsyncSession,
    context: WorkspaceContext,
    rows: list[Any],
    metadata: dict[str, Any],
) -> CsvImportResponse:
    if not rows:
        raise HTTPException(
            status_code=400,
            detail={"code": "VALIDATION_ERROR", "message": "No rows provided"},
        )

    async def still_connected() -> bool:
        return not await request.is_disconnected()

    importer = UgcImporter(db)
    try:
        result = await importer.run_import(
            context.workspace_id,
            ImportSource.CSV,
            rows,
            metadata={"user_id": context.user_id, **metadata},
            should_continue=still_connected,
        )
    except ImportValidationError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})
    except ImportAbortedError as e:
        raise _aborted(e, "Failed to import CSV")

    logger.info(
        "csv_import_finished",
        workspace_id=str(context.workspace_id),
        user_id=context.user_id,
        import_log_id=str(result.import_log_id),
        imported=result.imported,
        skipped=result.skipped,
        failed=result.failed,
    )
    return _result_to_response(result)


# ============ Endpoints ============


@router.post("", response_model=ManualImportResponse, status_code=201)
async def import_manual_post(
    response: Response,
    payload: Annotated[dict[str, Any], Body(description="Post to import (camelCase fields)")],
    context: WorkspaceContext = Depends(require_permission("write")),
    db: AsyncSession = Depends(get_db),
) -> ManualImportResponse:
    """
    Import a single UGC post by hand.

    Body fields:
    - postUrl, platform (tiktok/instagram/youtube/manual), creatorHandle
    - optional: creatorName, caption, hashtags (list), postedAt (ISO-8601)

    A post that already exists in the workspace is not an error: the
    response is 200 with ``duplicate: true``.
    """
    importer = UgcImporter(db)
    try:
        result = await importer.run_import(
            context.workspace_id,
            ImportSource.MANUAL,
            [payload],
            metadata={"user_id": context.user_id},
        )
    except ImportAbortedError as e:
        raise _aborted(e, "Failed to import post")

    import_log_id = str(result.import_log_id)
    outcome = result.rows[0]

    if outcome.outcome == RowOutcomeType.INVALID:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "VALIDATION_ERROR",
                "message": "Invalid input",
                "details": outcome.field_errors,
                "import_log_id": import_log_id,
            },
        )
    if outcome.outcome == RowOutcomeType.FAILED:
        raise HTTPException(
            status_code=500,
            detail={
                "code": "IMPORT_FAILED",
                "message": outcome.error or "Failed to import post",
                "import_log_id": import_log_id,
            },
        )
    if outcome.outcome == RowOutcomeType.DUPLICATE:
        response.status_code = 200
        return ManualImportResponse(
            import_log_id=import_log_id,
            status=result.status.value,
            duplicate=True,
            existing_post_id=str(outcome.existing_post_id),
        )

    post_result = await db.execute(
        select(UgcPost)
        .options(selectinload(UgcPost.rights_request))
        .where(UgcPost.id == outcome.post_id)
    )
    post = post_result.scalar_one()

    logger.info(
        "ugc_post_imported",
        workspace_id=str(context.workspace_id),
        user_id=context.user_id,
        post_id=str(post.id),
        platform=post.platform,
    )
    return ManualImportResponse(
        import_log_id=import_log_id,
        status=result.status.value,
        post=_post_to_response(post),
    )


@router.post("/import/csv", response_model=CsvImportResponse)
async def import_csv_rows(
    request: Request,
    data: CsvImportRequest,
    context: WorkspaceContext = Depends(require_permission("write")),
    db: AsyncSession = Depends(get_db),
) -> CsvImportResponse:
    """
    Import a batch of CSV rows sent as JSON.

    Row columns: post_url, platform, creator_handle, and optionally
    creator_name, caption, hashtags (comma-separated), posted_at.
    Returns counts, the ids of created posts and the first few row errors.
    A row that is not an object fails on its own; the rest still import.
    """
    return await _run_batch(request, db, context, data.rows, {"total_rows": len(data.rows)})


@router.post("/import/csv/upload", response_model=CsvImportResponse)
async def import_csv_file(
    request: Request,
    file: Annotated[UploadFile, File(description="CSV file with UGC post rows")],
    context: WorkspaceContext = Depends(require_permission("write")),
    db: AsyncSession = Depends(get_db),
) -> CsvImportResponse:
    """
    Import UGC posts from an uploaded CSV file.

    Headers are matched case-insensitively; url/link, handle/username and
    similar aliases are accepted.
    """
    content = await file.read()
    parser = CsvRowParser(max_rows=settings.import_csv_max_rows)
    try:
        rows = parser.parse(content)
    except CsvParseError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})

    metadata = {
        "file_name": file.filename or "unknown.csv",
        "file_hash": parser.file_hash(content),
        "total_rows": len(rows),
    }
    return await _run_batch(request, db, context, rows, metadata)
