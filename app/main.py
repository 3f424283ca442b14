"""FastAPI application entry point."""

from fastapi import FastAPI

from app.api import health_router, import_logs_router, ugc_router
from app.config import settings
from app.logging import configure_logging

configure_logging()

app = FastAPI(title="UGC Vault API", debug=settings.debug)
app.include_router(health_router)
app.include_router(ugc_router)
app.include_router(import_logs_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port)
