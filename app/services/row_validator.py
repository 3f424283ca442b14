"""Row validation - turns one raw import row into a canonical row.

Pure: no I/O and no side effects.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from app.models.import_log import ImportSource
from app.schemas.ugc import CsvImportRow, ManualImportRow
from app.services.errors import RowValidationError


@dataclass
class ValidatedRow:
    """Canonical shape of an import row, whatever its source."""

    platform: str
    post_url: str
    creator_handle: str
    creator_name: str | None = None
    caption: str | None = None
    hashtags: list[str] | None = None  # None means "derive from caption"
    posted_at: datetime | None = None


def _to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _field_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Flatten pydantic errors into {field: [message, ...]}."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "_row"
        message = err["msg"].removeprefix("Value error, ")
        errors.setdefault(field, []).append(message)
    return errors


def validate_row(source: ImportSource | str, raw: Any) -> ValidatedRow:
    """
    Validate a raw row for the given import source.

    Manual and API rows use the camelCase manual shape; CSV rows use
    snake_case columns with free-text platform and comma-separated hashtags.

    Raises:
        RowValidationError: with field-keyed messages when the row is invalid.
    """
    source = ImportSource(source)
    if not isinstance(raw, dict):
        raise RowValidationError({"_row": ["Row must be an object"]})

    try:
        if source == ImportSource.CSV:
            csv_row = CsvImportRow.model_validate(raw)
            return ValidatedRow(
                platform=csv_row.platform,
                post_url=csv_row.post_url,
                creator_handle=csv_row.creator_handle,
                creator_name=csv_row.creator_name,
                caption=csv_row.caption,
                hashtags=csv_row.split_hashtags(),
                posted_at=_to_naive_utc(csv_row.parsed_posted_at()),
            )

        manual_row = ManualImportRow.model_validate(raw)
    except ValidationError as exc:
        raise RowValidationError(_field_errors(exc)) from exc

    return ValidatedRow(
        platform=manual_row.platform.value,
        post_url=manual_row.post_url,
        creator_handle=manual_row.creator_handle,
        creator_name=manual_row.creator_name,
        caption=manual_row.caption,
        hashtags=manual_row.hashtags,
        posted_at=_to_naive_utc(manual_row.posted_at),
    )
