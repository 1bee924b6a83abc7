"""
Bird League Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers;
       uvicorn imports the module-level `app` (uvicorn birdleague.main:app).

Error mapping:
    ValidationError (incl. malformed multipart, bad dataset) → 400
    AuthorizationError                                       → 401
    SubmissionClosedError                                    → 403
    NotFoundError (incl. unknown backup)                     → 404
    FileStorageError / BirdLeagueError / anything else       → 500

Lifecycle:
    Startup:
    1. Configure logging
    2. Warn about missing production settings
    3. Copy a bundled db.json into an empty data directory, if configured
    4. Log where data and media live
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from birdleague import __version__
from birdleague.config import settings
from birdleague.database import document_store
from birdleague.exceptions import (
    AuthorizationError,
    BirdLeagueError,
    FileStorageError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from birdleague.middleware.logging import RequestLoggingMiddleware
from birdleague.middleware.request_id import RequestIDMiddleware, request_id_var
from birdleague.routes import admin, health, league, submissions

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging once at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Output goes to stdout, which the hosting platform captures.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Bird League backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Public routes still work; only admin is affected
        logger.warning("Configuration warning: %s", str(e))

    if document_store.migrate_if_needed(settings.seed_db_path):
        logger.info("Seeded %s from %s", document_store.db_path, settings.seed_db_path)

    logger.info("Data directory: %s", Path(settings.data_dir).resolve())
    logger.info("Submissions directory: %s", Path(settings.submissions_root).resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Bird League backend shut down.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map BirdLeagueError subclasses to HTTP responses.

    Starlette picks the handler for the most specific class in the
    exception's MRO, so MalformedRequestError and DatasetShapeError land on
    the ValidationError handler and BackupNotFoundError on NotFoundError.
    Internal details (paths, OS errors) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthorizationError)
    async def handle_authorization_error(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=401, content=_error_body("unauthorized", exc.message))

    @app.exception_handler(SubmissionClosedError)
    async def handle_submission_closed(request: Request, exc: SubmissionClosedError):
        return JSONResponse(
            status_code=403,
            content=_error_body("submissions_closed", exc.message, {"week": exc.week}),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(BirdLeagueError)
    async def handle_league_error(request: Request, exc: BirdLeagueError):
        logger.error(
            "[%s] Unhandled application error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact the league admin.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Bird League API",
        description=(
            "Weekly head-to-head bird photography league: members submit a "
            "species with photos or video, matchups are judged, standings follow."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(league.router)
    app.include_router(submissions.router)
    app.include_router(admin.router)

    return app


app = create_app()
