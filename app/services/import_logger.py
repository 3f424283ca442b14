"""Import log store and the run-bound import logger.

Every import run gets an ImportLog row and an ordered trail of
ImportLogEntry rows. Writes commit immediately so the trail is readable
while a batch is still running.
"""

import asyncio
import json
import time
import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import ImportLog, ImportLogEntry
from app.models.import_log import (
    ImportLogStatus,
    ImportLogStep,
    ImportSource,
    LogStatus,
    TERMINAL_STATUSES,
)
from app.services.errors import ImportStoreError

logger = structlog.get_logger(__name__)


def _jsonable(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Coerce a details/metadata bag into plain JSON values."""
    if data is None:
        return None
    return json.loads(json.dumps(data, default=str))


class ImportLogStore:
    """
    Append-only persistence for import runs and their entries.

    Entries are never updated once written. Run rows only have their
    status, counters and completion time moved forward.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ImportStoreError(f"Failed to {action}: {e}") from e

    async def create_run(
        self,
        workspace_id: uuid.UUID,
        source: ImportSource,
        total_items: int,
        metadata: dict[str, Any] | None = None,
    ) -> uuid.UUID:
        """Create a pending run and return its id."""
        now = datetime.utcnow()
        run = ImportLog(
            workspace_id=workspace_id,
            source=ImportSource(source).value,
            status=ImportLogStatus.PENDING.value,
            total_items=total_items,
            processed=0,
            succeeded=0,
            failed=0,
            skipped=0,
            metadata_=_jsonable(metadata),
            started_at=now,
            created_at=now,
        )
        try:
            self.db.add(run)
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ImportStoreError(f"Failed to create import log: {e}") from e
        run_id = run.id
        await self._commit("create import log")
        return run_id

    async def mark_processing(self, run_id: uuid.UUID) -> None:
        await self._execute_update(
            update(ImportLog)
            .where(
                ImportLog.id == run_id,
                ImportLog.status == ImportLogStatus.PENDING.value,
            )
            .values(status=ImportLogStatus.PROCESSING.value, updated_at=datetime.utcnow()),
            "start import log",
        )

    async def append_entry(
        self,
        run_id: uuid.UUID,
        sequence: int,
        step: ImportLogStep,
        status: LogStatus,
        message: str,
        details: dict[str, Any] | None = None,
        duration: int | None = None,
    ) -> uuid.UUID:
        """Append one entry to a run. Returns the new entry id."""
        if not message:
            raise ValueError("Log entry message must not be empty")

        entry = ImportLogEntry(
            import_log_id=run_id,
            sequence=sequence,
            step=ImportLogStep(step).value,
            status=LogStatus(status).value,
            message=message,
            details=_jsonable(details),
            duration=duration,
            created_at=datetime.utcnow(),
        )
        try:
            self.db.add(entry)
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ImportStoreError(f"Failed to append import log entry: {e}") from e
        entry_id = entry.id
        await self._commit("append import log entry")
        return entry_id

    async def update_progress(
        self,
        run_id: uuid.UUID,
        processed: int,
        succeeded: int,
        failed: int,
        skipped: int = 0,
    ) -> None:
        await self._execute_update(
            update(ImportLog)
            .where(ImportLog.id == run_id)
            .values(
                processed=processed,
                succeeded=succeeded,
                failed=failed,
                skipped=skipped,
                updated_at=datetime.utcnow(),
            ),
            "update import progress",
        )

    async def complete_run(
        self,
        run_id: uuid.UUID,
        status: ImportLogStatus,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Move a run to its terminal status.

        completed_at is only ever set once; completing an already
        completed run is a no-op.
        """
        status = ImportLogStatus(status)
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status.value} is not a terminal import status")

        now = datetime.utcnow()
        values: dict[Any, Any] = {
            ImportLog.status: status.value,
            ImportLog.completed_at: now,
            ImportLog.updated_at: now,
        }
        if metadata is not None:
            values[ImportLog.metadata_] = _jsonable(metadata)

        await self._execute_update(
            update(ImportLog)
            .where(ImportLog.id == run_id, ImportLog.completed_at.is_(None))
            .values(values),
            "complete import log",
        )

    async def _execute_update(self, stmt, action: str) -> None:
        try:
            await self.db.execute(stmt.execution_options(synchronize_session=False))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ImportStoreError(f"Failed to {action}: {e}") from e
        await self._commit(action)

    async def get_run(
        self, run_id: uuid.UUID, workspace_id: uuid.UUID
    ) -> ImportLog | None:
        """Fetch one run with its entries in append order, scoped to a workspace."""
        result = await self.db.execute(
            select(ImportLog)
            .options(selectinload(ImportLog.entries))
            .where(ImportLog.id == run_id, ImportLog.workspace_id == workspace_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_runs(self, workspace_id: uuid.UUID, limit: int = 20) -> list[ImportLog]:
        """Most recent runs for a workspace, newest first, with entries."""
        result = await self.db.execute(
            select(ImportLog)
            .options(selectinload(ImportLog.entries))
            .where(ImportLog.workspace_id == workspace_id)
            .order_by(ImportLog.created_at.desc(), ImportLog.started_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


class ImportLogger:
    """
    Records the step trail of one import run.

    Always built through :meth:`start`, so a logger never exists without
    its run. ``duration`` on each entry is the time since the previous
    entry (or since the run started, for the first one).
    """

    def __init__(
        self,
        store: ImportLogStore,
        run_id: uuid.UUID,
        workspace_id: uuid.UUID,
        source: ImportSource,
        timeout: float | None = None,
    ):
        self.store = store
        self.run_id = run_id
        self.workspace_id = workspace_id
        self.source = ImportSource(source)
        self.timeout = timeout
        self._sequence = 0
        self._last_at = time.monotonic()
        self._finished = False

    @classmethod
    async def start(
        cls,
        store: ImportLogStore,
        workspace_id: uuid.UUID,
        source: ImportSource,
        total_items: int,
        metadata: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> "ImportLogger":
        """Open a run and move it to processing."""
        run_id = await cls._bounded(
            store.create_run(workspace_id, source, total_items, metadata),
            timeout,
            "create import log",
        )
        instance = cls(store, run_id, workspace_id, source, timeout=timeout)
        try:
            await instance._guard(store.mark_processing(run_id), "start import log")
        except ImportStoreError as e:
            await instance.abandon(str(e))
            raise
        logger.info(
            "import_log_started",
            import_log_id=str(run_id),
            workspace_id=str(workspace_id),
            source=instance.source.value,
            total_items=total_items,
        )
        return instance

    @staticmethod
    async def _bounded(coro, timeout: float | None, action: str):
        try:
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError as e:
            raise ImportStoreError(f"Timed out trying to {action}") from e

    async def _guard(self, coro, action: str):
        try:
            return await self._bounded(coro, self.timeout, action)
        except ImportStoreError as e:
            if e.import_log_id is None:
                e.import_log_id = self.run_id
            raise

    @property
    def finished(self) -> bool:
        return self._finished

    async def log(
        self,
        step: ImportLogStep,
        status: LogStatus,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append an entry to this run's trail."""
        now = time.monotonic()
        duration = int((now - self._last_at) * 1000)
        self._last_at = now
        self._sequence += 1
        await self._guard(
            self.store.append_entry(
                self.run_id,
                self._sequence,
                step,
                status,
                message,
                details,
                duration,
            ),
            "append import log entry",
        )

    async def success(self, step: ImportLogStep, message: str, details: dict[str, Any] | None = None) -> None:
        await self.log(step, LogStatus.SUCCESS, message, details)

    async def error(self, step: ImportLogStep, message: str, details: dict[str, Any] | None = None) -> None:
        await self.log(step, LogStatus.ERROR, message, details)

    async def warning(self, step: ImportLogStep, message: str, details: dict[str, Any] | None = None) -> None:
        await self.log(step, LogStatus.WARNING, message, details)

    async def info(self, step: ImportLogStep, message: str, details: dict[str, Any] | None = None) -> None:
        await self.log(step, LogStatus.INFO, message, details)

    async def update_progress(
        self, processed: int, succeeded: int, failed: int, skipped: int = 0
    ) -> None:
        await self._guard(
            self.store.update_progress(self.run_id, processed, succeeded, failed, skipped),
            "update import progress",
        )

    async def complete(
        self,
        status: ImportLogStatus = ImportLogStatus.COMPLETED,
        message: str = "Import completed",
        details: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write the terminal entry and close the run."""
        status = ImportLogStatus(status)
        if status == ImportLogStatus.FAILED:
            await self.error(ImportLogStep.FAILED, message, details)
        else:
            await self.success(ImportLogStep.COMPLETED, message, details)
        await self._guard(
            self.store.complete_run(self.run_id, status, metadata),
            "complete import log",
        )
        self._finished = True
        logger.info(
            "import_log_completed",
            import_log_id=str(self.run_id),
            status=status.value,
        )

    async def fail(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Close the run as failed after a structural error."""
        await self.complete(ImportLogStatus.FAILED, message, details)

    async def abandon(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Best-effort close after a structural error.

        Tries to write the terminal entry, then falls back to only flipping
        the run status. Never raises.
        """
        if self.finished:
            return
        try:
            await self.fail(message, details)
            return
        except ImportStoreError:
            logger.warning("import_log_fail_entry_lost", import_log_id=str(self.run_id))
        try:
            await self._guard(
                self.store.complete_run(self.run_id, ImportLogStatus.FAILED),
                "complete import log",
            )
            self._finished = True
        except ImportStoreError:
            logger.exception("import_log_left_open", import_log_id=str(self.run_id))
