"""Pydantic schemas shared by the API and the import pipeline."""

from app.schemas.ugc import CsvImportRow, ManualImportRow

__all__ = ["CsvImportRow", "ManualImportRow"]
