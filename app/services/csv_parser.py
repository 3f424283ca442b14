"""CSV file parsing for UGC imports.

Turns an uploaded CSV file into the raw row dicts the import pipeline
validates. Header names are normalized and common aliases are mapped onto
the canonical snake_case columns; cell values are left as text.
"""

import hashlib
import io
from typing import Any

import pandas as pd

from app.services.errors import ImportValidationError


class CsvParseError(ImportValidationError):
    """The uploaded file is not a usable CSV."""

    pass


class CsvRowParser:
    """Parse CSV bytes into import rows."""

    # Canonical column -> accepted header variants
    COLUMN_ALIASES = {
        "post_url": ["post_url", "url", "link", "video_url", "posturl"],
        "platform": ["platform", "network", "source"],
        "creator_handle": ["creator_handle", "handle", "username", "creator"],
        "creator_name": ["creator_name", "name", "display_name"],
        "caption": ["caption", "description", "text"],
        "hashtags": ["hashtags", "tags"],
        "posted_at": ["posted_at", "post_date", "date", "created_at"],
    }

    REQUIRED_COLUMNS = ("post_url", "platform", "creator_handle")

    def __init__(self, max_rows: int | None = None):
        self.max_rows = max_rows

    @staticmethod
    def file_hash(file_content: bytes) -> str:
        return hashlib.sha256(file_content).hexdigest()

    def parse(self, file_content: bytes) -> list[dict[str, Any]]:
        """
        Parse a CSV file into row dicts keyed by canonical column names.

        Raises:
            CsvParseError: unreadable file, missing required columns,
                no data rows or too many rows
        """
        try:
            df = pd.read_csv(
                io.BytesIO(file_content),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise CsvParseError(f"Failed to parse CSV: {e}")

        mapping = self._map_columns(df.columns.tolist())
        df = df[list(mapping.values())].rename(columns={v: k for k, v in mapping.items()})

        if df.empty:
            raise CsvParseError("CSV file has no data rows")
        if self.max_rows is not None and len(df) > self.max_rows:
            raise CsvParseError(f"CSV file has {len(df)} rows (max {self.max_rows})")

        rows = []
        for record in df.to_dict(orient="records"):
            rows.append({k: v.strip() for k, v in record.items()})
        return rows

    def _map_columns(self, columns: list[str]) -> dict[str, str]:
        """Map canonical field names to the CSV's actual headers."""
        columns_lower = {str(c).lower().strip().replace(" ", "_"): c for c in columns}
        mapping = {}

        for field, variants in self.COLUMN_ALIASES.items():
            for variant in variants:
                if variant in columns_lower and columns_lower[variant] not in mapping.values():
                    mapping[field] = columns_lower[variant]
                    break

        missing = [f for f in self.REQUIRED_COLUMNS if f not in mapping]
        if missing:
            raise CsvParseError(f"Missing required column(s): {', '.join(missing)}")

        return mapping
