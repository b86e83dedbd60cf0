from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SAOperationalError

from api.router import api_router
from core.bootstrap import bootstrap_schema
from core.config import settings
from core.database import DatabaseUnavailableError, ENGINE, is_transient_db_connectivity_error
from core.logging import setup_logging
from solver.errors import SolverInvariantError, TimetableConfigError


logger = logging.getLogger(__name__)


def _db_unavailable_response() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={
            "code": "DATABASE_UNAVAILABLE",
            "message": "Database temporarily unavailable. Please retry.",
        },
    )


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    if settings.auto_create_schema:
        bootstrap_schema()
    yield


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment, log_level=settings.log_level, log_dir=settings.log_dir)
    is_production = settings.environment == "production"
    app = FastAPI(
        title="School Timetable API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=_lifespan,
    )

    @app.exception_handler(DatabaseUnavailableError)
    def _db_unavailable(_request, _exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=_exc)
        return _db_unavailable_response()

    @app.exception_handler(SAOperationalError)
    def _sqlalchemy_operational_error(_request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return _db_unavailable_response()
        return JSONResponse(
            status_code=500,
            content={
                "code": "DATABASE_ERROR",
                "message": "Database operation failed.",
            },
        )

    @app.exception_handler(TimetableConfigError)
    def _timetable_config_error(_request, exc: TimetableConfigError):
        status_code = 404 if exc.code == "SCHOOL_NOT_FOUND" else 422
        return JSONResponse(status_code=status_code, content={"code": exc.code, "message": str(exc)})

    @app.exception_handler(SolverInvariantError)
    def _solver_invariant_error(_request, exc: SolverInvariantError):
        run_id = getattr(exc, "run_id", None)
        logger.error("Solver invariant violated (%s) in run %s", exc.code, run_id)
        return JSONResponse(
            status_code=500,
            content={
                "code": "SOLVER_INTEGRITY_ERROR",
                "type": exc.code,
                "message": str(exc),
                "run_id": str(run_id) if run_id is not None else None,
                "details": exc.details,
            },
        )

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        # Always respond; reflect DB availability without crashing.
        db_status = "ok"
        try:
            with ENGINE.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            db_status = "down"

        return {"app": "ok", "database": db_status}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
