"""SQLAlchemy models for UGC Vault."""

from app.models.import_log import ImportLog, ImportLogEntry
from app.models.ugc_post import RightsRequest, UgcPost
from app.models.workspace import Workspace, WorkspaceMember

__all__ = [
    "Workspace",
    "WorkspaceMember",
    "UgcPost",
    "RightsRequest",
    "ImportLog",
    "ImportLogEntry",
]
