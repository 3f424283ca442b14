"""UGC Vault services."""

from app.services.csv_parser import CsvRowParser
from app.services.duplicate_detector import DuplicateDetector
from app.services.import_logger import ImportLogger, ImportLogStore
from app.services.import_status import resolve_import_status
from app.services.row_validator import validate_row
from app.services.ugc_importer import ImportResult, UgcImporter

__all__ = [
    "CsvRowParser",
    "DuplicateDetector",
    "ImportLogger",
    "ImportLogStore",
    "ImportResult",
    "UgcImporter",
    "resolve_import_status",
    "validate_row",
]
