"""Request row schemas for UGC imports.

Manual imports arrive as camelCase JSON, CSV rows as snake_case columns.
Both validate into the same canonical fields.
"""

from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.ugc_post import Platform


def _check_url(value: str) -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid url")
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _clean_handle(value):
    if isinstance(value, str):
        return value.strip().lstrip("@")
    return value


class ManualImportRow(BaseModel):
    """A single post submitted by hand."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    post_url: str = Field(alias="postUrl")
    platform: Platform
    creator_handle: str = Field(alias="creatorHandle", min_length=1, max_length=100)
    creator_name: str | None = Field(default=None, alias="creatorName")
    caption: str | None = None
    hashtags: list[str] | None = None
    posted_at: datetime | None = Field(default=None, alias="postedAt")

    @field_validator("post_url")
    @classmethod
    def validate_post_url(cls, v: str) -> str:
        return _check_url(v)

    @field_validator("platform", mode="before")
    @classmethod
    def normalize_platform(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("creator_handle", mode="before")
    @classmethod
    def normalize_handle(cls, v):
        return _clean_handle(v)

    @field_validator("creator_name", "caption", "posted_at", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)


class CsvImportRow(BaseModel):
    """One row of a CSV import. Every cell arrives as text."""

    model_config = ConfigDict(extra="ignore")

    post_url: str
    platform: str
    creator_handle: str = Field(min_length=1)
    creator_name: str | None = None
    caption: str | None = None
    hashtags: str | None = None  # comma-separated
    posted_at: str | None = None

    @field_validator("post_url")
    @classmethod
    def validate_post_url(cls, v: str) -> str:
        return _check_url(v)

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        name = v.strip().upper()
        if name not in Platform.__members__:
            valid = ", ".join(Platform.__members__)
            raise ValueError(f"Invalid platform: {v!r} (expected one of {valid})")
        return Platform[name].value

    @field_validator("creator_handle", mode="before")
    @classmethod
    def normalize_handle(cls, v):
        return _clean_handle(v)

    @field_validator("creator_name", "caption", "hashtags", "posted_at", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("posted_at")
    @classmethod
    def validate_posted_at(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("Invalid posted_at: expected an ISO-8601 timestamp")
        return v.strip()

    def split_hashtags(self) -> list[str] | None:
        """Split the comma-separated cell into normalized tags."""
        if self.hashtags is None:
            return None
        tags = [t.strip().lower().removeprefix("#") for t in self.hashtags.split(",")]
        return [t for t in tags if t]

    def parsed_posted_at(self) -> datetime | None:
        if self.posted_at is None:
            return None
        return datetime.fromisoformat(self.posted_at.replace("Z", "+00:00"))
