"""FastAPI application setup for Voice Journal."""

from __future__ import annotations

import sqlite3

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voice_journal.api.dependencies import (
    get_app_settings,
    get_coordinator,
    get_error_log,
    get_media_store,
    get_repository,
    shutdown as shutdown_dependencies,
)
from voice_journal.api.results import error_payload, status_for
from voice_journal.api.routes_admin import router as admin_router
from voice_journal.api.routes_entries import router as entries_router
from voice_journal.api.routes_workflow import router as workflow_router
from voice_journal.core.config import Settings
from voice_journal.core.errors import JournalError
from voice_journal.core.logging import configure_logging
from voice_journal.workflow import ErrorCategory

configure_logging()

app = FastAPI(
    title="Voice Journal",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


def install_cors(target: FastAPI, origins: list[str]) -> None:
    """Allow browser calls from the configured origins only; none by default."""
    if not origins:
        return
    target.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )


install_cors(app, Settings.from_yaml().cors_origins)

app.include_router(workflow_router, prefix="", tags=["workflow"])
app.include_router(entries_router, prefix="", tags=["entries"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.exception_handler(sqlite3.Error)
async def database_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
    get_error_log().record(exc, ErrorCategory.DATA, context=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=503, content={"detail": error_payload(exc, ErrorCategory.DATA)})


@app.exception_handler(JournalError)
async def journal_error(request: Request, exc: JournalError) -> JSONResponse:
    get_error_log().record(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=status_for(exc), content={"detail": error_payload(exc)})


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_repository()
    get_media_store()
    get_coordinator()


@app.on_event("shutdown")
async def shutdown() -> None:
    shutdown_dependencies()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
