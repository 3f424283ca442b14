import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.config import Settings
from app.models import RightsRequest, UgcPost
from app.models.import_log import ImportLog, ImportLogStatus, ImportLogStep, ImportSource
from app.services.errors import ImportAbortedError, ImportStoreError, ImportValidationError
from app.services.ugc_importer import RowOutcomeType, UgcImporter
from tests.conftest import csv_row, manual_row


async def _count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _run(db, workspace_id, run_id):
    return await UgcImporter(db).store.get_run(run_id, workspace_id)


async def test_manual_import_creates_post_and_rights_request(db, workspace):
    importer = UgcImporter(db)

    result = await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row()])

    assert result.status == ImportLogStatus.COMPLETED
    assert (result.imported, result.skipped, result.failed) == (1, 0, 0)
    outcome = result.rows[0]
    assert outcome.outcome == RowOutcomeType.IMPORTED
    assert outcome.rights_request_id is not None
    assert result.post_ids == [outcome.post_id]

    post = (await db.execute(select(UgcPost))).scalar_one()
    assert post.hashtags == ["deal", "summer23"]
    assert post.import_source == "manual"
    rights = (await db.execute(select(RightsRequest))).scalar_one()
    assert rights.ugc_post_id == post.id
    assert rights.status == "pending"

    run = await _run(db, workspace.id, result.import_log_id)
    assert run.status == "completed"
    assert (run.processed, run.succeeded, run.failed) == (1, 1, 0)
    assert run.entries[0].message == "Starting manual import with 1 rows"
    steps = [e.step for e in run.entries]
    assert steps.index("validating") < steps.index("checking_duplicate")
    assert steps.index("checking_duplicate") < steps.index("extracting_hashtags")
    assert steps.index("extracting_hashtags") < steps.index("creating_post")
    assert steps.index("creating_post") < steps.index("creating_rights_request")
    assert steps[-1] == "completed"
    assert run.entries[-1].message == "Imported 1 posts, skipped 0 duplicates, 0 failed"


async def test_reimport_is_idempotent(db, workspace):
    importer = UgcImporter(db)
    rows = [manual_row(postUrl=f"https://www.tiktok.com/@mia/video/{i}") for i in range(3)]

    await importer.run_import(workspace.id, ImportSource.MANUAL, rows)
    result = await importer.run_import(workspace.id, ImportSource.MANUAL, rows)

    assert result.status == ImportLogStatus.COMPLETED
    assert (result.imported, result.skipped, result.failed) == (0, 3, 0)
    assert await _count(db, UgcPost) == 3
    assert await _count(db, RightsRequest) == 3

    run = await _run(db, workspace.id, result.import_log_id)
    warnings = [e for e in run.entries if e.status == "warning"]
    assert len(warnings) == 3
    assert all(e.details["existing_post_id"] for e in warnings)
    assert run.skipped == 3


async def test_same_url_in_another_workspace_is_not_duplicate(db, workspace, other_workspace):
    importer = UgcImporter(db)

    await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row()])
    result = await importer.run_import(other_workspace.id, ImportSource.MANUAL, [manual_row()])

    assert result.imported == 1


async def test_csv_batch_with_invalid_row_is_partial(db, workspace):
    importer = UgcImporter(db)
    rows = [
        csv_row(),
        csv_row(post_url="bad", creator_handle="u2"),
    ]

    result = await importer.run_import(workspace.id, ImportSource.CSV, rows)

    assert result.status == ImportLogStatus.PARTIAL
    assert (result.imported, result.failed) == (1, 1)
    assert result.errors == [{"row": 2, "error": "Invalid url", "post_url": "bad"}]

    run = await _run(db, workspace.id, result.import_log_id)
    failed_entry = next(e for e in run.entries if e.status == "error")
    assert failed_entry.message == "Row 2: Validation failed - Invalid url"
    assert failed_entry.details["errors"] == {"post_url": ["Invalid url"]}
    assert run.entries[-1].message == "Imported 1 posts, skipped 0 duplicates, 1 failed"


async def test_all_rows_invalid_is_failed(db, workspace):
    result = await UgcImporter(db).run_import(
        workspace.id, ImportSource.CSV, [csv_row(platform="Facebook"), "not a row"]
    )

    assert result.status == ImportLogStatus.FAILED
    assert result.failed == 2
    run = await _run(db, workspace.id, result.import_log_id)
    assert run.entries[-1].step == ImportLogStep.FAILED.value
    assert run.entries[-1].status == "error"


async def test_empty_batch_creates_no_run(db, workspace):
    with pytest.raises(ImportValidationError):
        await UgcImporter(db).run_import(workspace.id, ImportSource.CSV, [])
    assert await _count(db, ImportLog) == 0


async def test_explicit_csv_hashtags_override_caption(db, workspace):
    await UgcImporter(db).run_import(
        workspace.id,
        ImportSource.CSV,
        [csv_row(caption="ignore #these", hashtags="#Promo, new")],
    )
    post = (await db.execute(select(UgcPost))).scalar_one()
    assert post.hashtags == ["promo", "new"]


async def test_progress_updated_every_five_rows_and_at_end(db, workspace, monkeypatch):
    importer = UgcImporter(db)
    calls = []
    real_update = importer.store.update_progress

    async def spy(run_id, processed, succeeded, failed, skipped=0):
        calls.append(processed)
        await real_update(run_id, processed, succeeded, failed, skipped)

    monkeypatch.setattr(importer.store, "update_progress", spy)
    rows = [csv_row(post_url=f"https://x.com/{i}") for i in range(7)]

    result = await importer.run_import(workspace.id, ImportSource.CSV, rows)

    assert calls == [5, 7]
    run = await _run(db, workspace.id, result.import_log_id)
    assert (run.processed, run.succeeded) == (7, 7)


async def test_error_preview_is_capped(db, workspace):
    rows = [csv_row(post_url=f"bad-{i}") for i in range(12)]
    result = await UgcImporter(db).run_import(workspace.id, ImportSource.CSV, rows)

    assert result.failed == 12
    assert len(result.errors) == 10
    assert result.errors[0]["row"] == 1


async def test_rights_request_failure_is_a_warning(db, workspace, monkeypatch):
    importer = UgcImporter(db)

    async def broken(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("rights table locked"))

    monkeypatch.setattr(importer, "_create_rights_request", broken)

    result = await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row()])

    assert result.status == ImportLogStatus.COMPLETED
    assert result.imported == 1
    assert result.rows[0].rights_request_id is None
    assert await _count(db, UgcPost) == 1
    run = await _run(db, workspace.id, result.import_log_id)
    rights_entry = next(e for e in run.entries if e.step == "creating_rights_request")
    assert rights_entry.status == "warning"


async def test_constraint_race_fails_only_the_row(db, workspace, monkeypatch):
    importer = UgcImporter(db)
    await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row()])

    async def miss(*args, **kwargs):
        return None

    monkeypatch.setattr(importer.detector, "find_existing", miss)
    other = manual_row(postUrl="https://www.tiktok.com/@mia/video/2")

    result = await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row(), other])

    assert result.status == ImportLogStatus.PARTIAL
    assert (result.imported, result.failed) == (1, 1)
    assert await _count(db, UgcPost) == 2
    run = await _run(db, workspace.id, result.import_log_id)
    db_error = next(e for e in run.entries if e.message == "Row 1: Database error")
    assert db_error.details["constraint_violation"] is True


async def test_step_timeout_fails_the_row(db, workspace, monkeypatch):
    importer = UgcImporter(db, Settings(import_step_timeout_seconds=0.2))

    async def slow(*args, **kwargs):
        await asyncio.sleep(5)

    monkeypatch.setattr(importer.detector, "find_existing", slow)

    result = await importer.run_import(workspace.id, ImportSource.MANUAL, [manual_row()])

    assert result.status == ImportLogStatus.FAILED
    assert result.errors[0]["error"] == "Timed out"


async def test_cancellation_closes_run_over_processed_rows(db, workspace):
    seen = 0

    async def should_continue():
        nonlocal seen
        seen += 1
        return seen <= 2

    rows = [csv_row(post_url=f"https://x.com/{i}") for i in range(5)]
    result = await UgcImporter(db).run_import(
        workspace.id, ImportSource.CSV, rows, should_continue=should_continue
    )

    assert result.cancelled
    assert result.processed == 2
    assert result.status == ImportLogStatus.COMPLETED
    run = await _run(db, workspace.id, result.import_log_id)
    assert run.processed == 2
    assert run.entries[-1].message.startswith("Import cancelled after 2 of 5 rows.")
    assert run.entries[-1].details["cancelled"] is True


async def test_cancellation_before_any_row_is_failed(db, workspace):
    async def stop():
        return False

    result = await UgcImporter(db).run_import(
        workspace.id, ImportSource.CSV, [csv_row()], should_continue=stop
    )

    assert result.status == ImportLogStatus.FAILED
    assert result.processed == 0


async def test_run_not_created_when_store_is_down(db, workspace, monkeypatch):
    importer = UgcImporter(db)

    async def broken(*args, **kwargs):
        raise ImportStoreError("Failed to create import log")

    monkeypatch.setattr(importer.store, "create_run", broken)

    with pytest.raises(ImportAbortedError) as exc_info:
        await importer.run_import(workspace.id, ImportSource.CSV, [csv_row()])
    assert exc_info.value.import_log_id is None
    assert await _count(db, ImportLog) == 0


async def test_progress_failure_aborts_and_fails_run(db, workspace, monkeypatch):
    importer = UgcImporter(db)

    async def broken(*args, **kwargs):
        raise ImportStoreError("Failed to update import progress")

    monkeypatch.setattr(importer.store, "update_progress", broken)

    with pytest.raises(ImportAbortedError) as exc_info:
        await importer.run_import(workspace.id, ImportSource.CSV, [csv_row()])

    run_id = exc_info.value.import_log_id
    assert run_id is not None
    run = await _run(db, workspace.id, run_id)
    assert run.status == ImportLogStatus.FAILED.value
    assert run.completed_at is not None
    assert run.entries[-1].step == ImportLogStep.FAILED.value
