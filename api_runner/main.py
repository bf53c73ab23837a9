"""
API Runner - FastAPI Application Entry Point

Executes user-described HTTP requests against arbitrary servers,
classifies transport failures and keeps a history of every execution.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .database import init_db
from .exceptions import register_exception_handlers
from .routers import requests, execute, history

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up logging and the database before serving requests."""
    settings = get_settings()
    configure_logging(settings)
    init_db()
    logger.info(
        "API Runner ready (timeout=%ss, retries=%d, verify_tls=%s)",
        settings.request_timeout, settings.max_retries, settings.verify_tls
    )
    yield


app = FastAPI(
    title="API Runner",
    description="Execute HTTP requests against any server and inspect the results",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(requests.router)
app.include_router(execute.router)
app.include_router(history.router)


@app.get("/")
async def root():
    """Service information and entry points."""
    return {
        "name": app.title,
        "version": app.version,
        "docs": app.docs_url,
        "endpoints": ["/api/execute", "/api/requests", "/api/history"],
    }


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}
