"""UGC Vault API routes."""

from app.api.health import router as health_router
from app.api.import_logs import router as import_logs_router
from app.api.ugc import router as ugc_router

__all__ = [
    "health_router",
    "import_logs_router",
    "ugc_router",
]
