"""Import pipeline exceptions."""


class UgcImportError(Exception):
    """Base error for the UGC import pipeline."""

    pass


class ImportValidationError(UgcImportError):
    """The import request itself is unusable (e.g. no rows)."""

    pass


class RowValidationError(UgcImportError):
    """A single row failed validation. Carries field-keyed messages."""

    def __init__(self, field_errors: dict[str, list[str]]):
        self.field_errors = field_errors
        first = next(iter(field_errors.values()), None)
        super().__init__(first[0] if first else "Invalid data")


class ImportAbortedError(UgcImportError):
    """The import could not run to completion. Fatal to the whole invocation.

    ``import_log_id`` is set when a run had already been opened before the
    failure; that run has been closed as failed where possible.
    """

    def __init__(self, message: str, import_log_id=None):
        super().__init__(message)
        self.import_log_id = import_log_id


class ImportStoreError(ImportAbortedError):
    """The import log store could not be written or read."""

    pass
