"""Roll per-row outcomes up into one import run status."""

from app.models.import_log import ImportLogStatus


def resolve_import_status(total: int, succeeded: int, failed: int) -> ImportLogStatus:
    """
    Map row counters to a terminal run status.

    Duplicates count toward neither ``succeeded`` nor ``failed``, so a run
    made only of duplicates is completed.
    """
    if total <= 0:
        raise ValueError("total must be positive")
    if failed == total:
        return ImportLogStatus.FAILED
    if failed > 0:
        return ImportLogStatus.PARTIAL
    return ImportLogStatus.COMPLETED
