import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from . import config
from .api import assessments as assessments_api
from .api import candidates as candidates_api
from .api import jobs as jobs_api
from .database import SessionLocal, init_db
from .services.seed import seed_database
from .services.store import EntityStore
from .services.transport import UnreliableTransport
from .utils.error_handlers import AppError, create_error_response, get_error_message

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(
    store: EntityStore | None = None,
    transport: UnreliableTransport | None = None,
    *,
    seed: bool = config.SEED_ON_STARTUP,
) -> FastAPI:
    """
    Build the simulated backend.

    Pass ``store``/``transport`` to run against a prepared database (tests); by default
    the configured SQLite file is used and its tables are created on startup.
    """
    app = FastAPI(title="TalentFlow")
    app.state.store = store or EntityStore(SessionLocal)
    app.state.transport = transport or UnreliableTransport(app.state.store)

    app.include_router(jobs_api.router)
    app.include_router(candidates_api.router)
    app.include_router(assessments_api.router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return create_error_response(exc.status_code, exc.message, exc.details or None)

    @app.exception_handler(OperationalError)
    async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError):
        """Handle database operational errors."""
        logger.exception("Database OperationalError: %s", exc)
        return create_error_response(503, get_error_message("database_error"))

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        """Handle general database errors."""
        logger.exception("Database SQLAlchemyError: %s", exc)
        return create_error_response(500, get_error_message("database_error"))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors globally."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": get_error_message("server_error")},
        )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "Backend running",
            "service": "TalentFlow",
            "write_failure_rate": app.state.transport.failure_rate,
        }

    @app.on_event("startup")
    def on_startup() -> None:
        if store is None:
            init_db()
        if seed:
            seed_database(app.state.store)

    _default_origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
    _extra_origins = [
        origin.strip()
        for origin in os.getenv("FRONTEND_ORIGINS", "").split(",")
        if origin.strip()
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[*_default_origins, *_extra_origins],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
