"""UGC import service - drives rows through validation, dedup and persistence.

Each call to :meth:`UgcImporter.run_import` is one import run. Rows are
processed strictly in order; a row's failure is logged and counted but
never stops the batch.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings as default_settings
from app.models import RightsRequest, UgcPost
from app.models.import_log import ImportLogStatus, ImportLogStep, ImportSource
from app.models.ugc_post import RightsStatus
from app.services.duplicate_detector import DuplicateDetector
from app.services.errors import (
    ImportAbortedError,
    ImportValidationError,
    RowValidationError,
)
from app.services.hashtags import extract_mentions, normalize_hashtags
from app.services.import_logger import ImportLogger, ImportLogStore
from app.services.import_status import resolve_import_status
from app.services.row_validator import ValidatedRow, validate_row

logger = structlog.get_logger(__name__)

# Step failures a row can recover from. Anything else aborts the run.
ROW_ERRORS = (SQLAlchemyError, asyncio.TimeoutError)


class RowOutcomeType(str, Enum):
    IMPORTED = "imported"
    DUPLICATE = "duplicate"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class RowOutcome:
    """What happened to one row."""

    row: int
    outcome: RowOutcomeType
    post_url: str | None = None
    post_id: uuid.UUID | None = None
    existing_post_id: uuid.UUID | None = None
    rights_request_id: uuid.UUID | None = None
    error: str | None = None
    field_errors: dict[str, list[str]] | None = None


@dataclass
class ImportResult:
    """Summary of an import run, returned whether or not rows failed."""

    import_log_id: uuid.UUID
    status: ImportLogStatus
    total: int
    processed: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    errors: list[dict[str, Any]] = field(default_factory=list)
    rows: list[RowOutcome] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Imported {self.imported} posts, skipped {self.skipped} duplicates, "
            f"{self.failed} failed"
        )

    @property
    def post_ids(self) -> list[uuid.UUID]:
        return [r.post_id for r in self.rows if r.post_id is not None]


def _raw_post_url(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    value = raw.get("post_url", raw.get("postUrl"))
    return value if isinstance(value, str) else None


class UgcImporter:
    """
    Runs UGC import batches and records a step-by-step import log.

    Per row: validate -> check duplicate -> normalize hashtags -> create
    post -> bootstrap a pending rights request. The rights request is best
    effort; the row counts as imported once the post exists.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or default_settings
        self.store = ImportLogStore(db)
        self.detector = DuplicateDetector(db)

    @property
    def timeout(self) -> float | None:
        return self.settings.import_step_timeout_seconds or None

    async def _bounded(self, coro):
        return await asyncio.wait_for(coro, self.timeout)

    async def run_import(
        self,
        workspace_id: uuid.UUID,
        source: ImportSource,
        rows: Sequence[Any],
        metadata: dict[str, Any] | None = None,
        should_continue: Callable[[], Awaitable[bool]] | None = None,
    ) -> ImportResult:
        """
        Import a batch of raw rows into a workspace.

        Args:
            workspace_id: Workspace the rows belong to (already authorized)
            source: manual, csv or api
            rows: Raw row payloads, in order
            metadata: Extra context stored on the run
            should_continue: Checked between rows; returning False stops
                the batch and closes the run over the rows done so far

        Returns:
            ImportResult with the run id and final counters

        Raises:
            ImportValidationError: rows is empty (no run is created)
            ImportAbortedError: the run could not be opened or finished
        """
        source = ImportSource(source)
        if not rows:
            raise ImportValidationError("No rows provided")

        total = len(rows)
        import_logger = await ImportLogger.start(
            self.store,
            workspace_id=workspace_id,
            source=source,
            total_items=total,
            metadata={"total_rows": total, **(metadata or {})},
            timeout=self.timeout,
        )
        result = ImportResult(
            import_log_id=import_logger.run_id,
            status=ImportLogStatus.PROCESSING,
            total=total,
        )
        log = logger.bind(import_log_id=str(import_logger.run_id), workspace_id=str(workspace_id))
        log.info("ugc_import_started", source=source.value, total=total)

        try:
            await import_logger.info(
                ImportLogStep.VALIDATING,
                f"Starting {source.value} import with {total} rows",
                {"total_rows": total},
            )
            await self._process_rows(import_logger, workspace_id, source, rows, result, should_continue)
            await self._finish(import_logger, result)
        except ImportAbortedError as e:
            log.error("ugc_import_aborted", error=str(e))
            await import_logger.abandon(f"Import failed: {e}", {"error": str(e)})
            e.import_log_id = import_logger.run_id
            raise
        except asyncio.CancelledError:
            log.warning("ugc_import_interrupted", processed=result.processed)
            await import_logger.abandon(
                "Import interrupted",
                {"processed": result.processed, "interrupted": True},
            )
            raise
        except Exception as e:
            log.exception("ugc_import_crashed")
            await import_logger.abandon(f"Import failed: {e}", {"error": str(e)})
            raise ImportAbortedError(f"Import failed: {e}", import_logger.run_id) from e

        log.info(
            "ugc_import_finished",
            status=result.status.value,
            imported=result.imported,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result

    async def _process_rows(
        self,
        import_logger: ImportLogger,
        workspace_id: uuid.UUID,
        source: ImportSource,
        rows: Sequence[Any],
        result: ImportResult,
        should_continue: Callable[[], Awaitable[bool]] | None,
    ) -> None:
        every = max(1, self.settings.import_progress_every)
        preview_limit = self.settings.import_error_preview_limit

        for index, raw in enumerate(rows):
            row_num = index + 1
            if should_continue is not None and not await should_continue():
                result.cancelled = True
                break

            outcome = await self._import_row(import_logger, workspace_id, source, row_num, raw)
            result.rows.append(outcome)
            result.processed += 1

            if outcome.outcome == RowOutcomeType.IMPORTED:
                result.imported += 1
            elif outcome.outcome == RowOutcomeType.DUPLICATE:
                result.skipped += 1
            else:
                result.failed += 1
                if len(result.errors) < preview_limit:
                    result.errors.append(
                        {"row": row_num, "error": outcome.error, "post_url": outcome.post_url}
                    )

            if row_num % every == 0 or row_num == result.total:
                await import_logger.update_progress(
                    result.processed, result.imported, result.failed, result.skipped
                )

        if result.cancelled:
            await import_logger.update_progress(
                result.processed, result.imported, result.failed, result.skipped
            )

    async def _finish(self, import_logger: ImportLogger, result: ImportResult) -> None:
        if result.processed:
            result.status = resolve_import_status(result.processed, result.imported, result.failed)
        else:
            result.status = ImportLogStatus.FAILED

        details = {
            "total": result.total,
            "processed": result.processed,
            "imported": result.imported,
            "skipped": result.skipped,
            "failed": result.failed,
        }
        message = result.message
        if result.cancelled:
            details["cancelled"] = True
            message = f"Import cancelled after {result.processed} of {result.total} rows. {message}"

        await import_logger.complete(result.status, message, details)

    async def _import_row(
        self,
        import_logger: ImportLogger,
        workspace_id: uuid.UUID,
        source: ImportSource,
        row_num: int,
        raw: Any,
    ) -> RowOutcome:
        """Run one row through every step. Only log store failures escape."""
        post_url = _raw_post_url(raw)
        await import_logger.info(ImportLogStep.VALIDATING, f"Starting row {row_num}", {"row": row_num})

        # Validate
        try:
            row = validate_row(source, raw)
        except RowValidationError as e:
            await import_logger.error(
                ImportLogStep.VALIDATING,
                f"Row {row_num}: Validation failed - {e}",
                {"row": row_num, "post_url": post_url, "errors": e.field_errors},
            )
            return RowOutcome(
                row=row_num,
                outcome=RowOutcomeType.INVALID,
                post_url=post_url,
                error=str(e),
                field_errors=e.field_errors,
            )

        post_url = row.post_url
        await import_logger.success(
            ImportLogStep.VALIDATING,
            f"Row {row_num}: Validation passed",
            {"row": row_num, "platform": row.platform, "post_url": post_url},
        )

        # Duplicate check
        try:
            existing_id = await self._bounded(
                self.detector.find_existing(workspace_id, row.platform, row.post_url)
            )
        except ROW_ERRORS as e:
            await self.db.rollback()
            error = _describe(e)
            await import_logger.error(
                ImportLogStep.CHECKING_DUPLICATE,
                f"Row {row_num}: Duplicate check failed",
                {"row": row_num, "post_url": post_url, "error": error},
            )
            return RowOutcome(row=row_num, outcome=RowOutcomeType.FAILED, post_url=post_url, error=error)

        if existing_id is not None:
            await import_logger.warning(
                ImportLogStep.CHECKING_DUPLICATE,
                f"Row {row_num}: Duplicate post skipped",
                {"row": row_num, "post_url": post_url, "existing_post_id": str(existing_id)},
            )
            return RowOutcome(
                row=row_num,
                outcome=RowOutcomeType.DUPLICATE,
                post_url=post_url,
                existing_post_id=existing_id,
            )

        await import_logger.success(
            ImportLogStep.CHECKING_DUPLICATE,
            f"Row {row_num}: No duplicate found",
            {"row": row_num, "post_url": post_url},
        )

        # Hashtags
        hashtags = normalize_hashtags(row.hashtags, row.caption)
        await import_logger.success(
            ImportLogStep.EXTRACTING_HASHTAGS,
            f"Row {row_num}: Found {len(hashtags)} hashtags",
            {
                "row": row_num,
                "count": len(hashtags),
                "hashtags": hashtags,
                "from": "explicit" if row.hashtags is not None else "caption",
            },
        )

        # Post
        try:
            post_id = await self._bounded(
                self._create_post(workspace_id, source, row, hashtags)
            )
        except ROW_ERRORS as e:
            await self.db.rollback()
            error = _describe(e)
            logger.warning(
                "ugc_import_row_failed",
                import_log_id=str(import_logger.run_id),
                row=row_num,
                error=error,
            )
            await import_logger.error(
                ImportLogStep.CREATING_POST,
                f"Row {row_num}: Database error",
                {
                    "row": row_num,
                    "post_url": post_url,
                    "error": error,
                    "constraint_violation": isinstance(e, IntegrityError),
                },
            )
            return RowOutcome(row=row_num, outcome=RowOutcomeType.FAILED, post_url=post_url, error=error)

        await import_logger.success(
            ImportLogStep.CREATING_POST,
            f"Row {row_num}: Successfully imported @{row.creator_handle}",
            {
                "row": row_num,
                "post_id": str(post_id),
                "creator_handle": row.creator_handle,
                "platform": row.platform,
            },
        )
        outcome = RowOutcome(
            row=row_num,
            outcome=RowOutcomeType.IMPORTED,
            post_url=post_url,
            post_id=post_id,
        )

        # Rights request (best effort)
        try:
            outcome.rights_request_id = await self._bounded(
                self._create_rights_request(workspace_id, post_id)
            )
        except ROW_ERRORS as e:
            await self.db.rollback()
            await import_logger.warning(
                ImportLogStep.CREATING_RIGHTS_REQUEST,
                f"Row {row_num}: Could not create rights request",
                {"row": row_num, "post_id": str(post_id), "error": _describe(e)},
            )
        else:
            await import_logger.success(
                ImportLogStep.CREATING_RIGHTS_REQUEST,
                f"Row {row_num}: Rights request created",
                {
                    "row": row_num,
                    "post_id": str(post_id),
                    "rights_request_id": str(outcome.rights_request_id),
                },
            )

        return outcome

    async def _create_post(
        self,
        workspace_id: uuid.UUID,
        source: ImportSource,
        row: ValidatedRow,
        hashtags: list[str],
    ) -> uuid.UUID:
        async with self.db.begin_nested():
            post = UgcPost(
                workspace_id=workspace_id,
                platform=row.platform,
                post_url=row.post_url,
                creator_handle=row.creator_handle,
                creator_name=row.creator_name,
                caption=row.caption,
                hashtags=hashtags,
                mentions=extract_mentions(row.caption),
                posted_at=row.posted_at,
                import_source=source.value,
            )
            self.db.add(post)
            await self.db.flush()
            post_id = post.id
        await self.db.commit()
        return post_id

    async def _create_rights_request(
        self, workspace_id: uuid.UUID, post_id: uuid.UUID
    ) -> uuid.UUID:
        async with self.db.begin_nested():
            rights_request = RightsRequest(
                workspace_id=workspace_id,
                ugc_post_id=post_id,
                status=RightsStatus.PENDING.value,
            )
            self.db.add(rights_request)
            await self.db.flush()
            rights_request_id = rights_request.id
        await self.db.commit()
        return rights_request_id


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "Timed out"
    if isinstance(exc, IntegrityError):
        return f"Constraint violation: {exc.orig}"
    return str(exc) or exc.__class__.__name__
