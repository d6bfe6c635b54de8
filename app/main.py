"""HTTP surface for the vesting and reward ledgers."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routes import events, health, staking, vesting
from config import PROJECT_ROOT, get_settings
from db.connection import init_database
from migrations.migrate import migrate
from tokenledger.services.errors import (
    AlreadyInitializedError,
    LedgerError,
    NotFoundError,
    StakeLocked,
    TransferFailed,
    Unauthorized,
)

logger: logging.Logger = logging.getLogger(__name__)

# Checked in order; first match wins, anything else is a 400.
_STATUS_BY_ERROR: tuple[tuple[type[LedgerError] | tuple[type[LedgerError], ...], int], ...] = (
    (NotFoundError, 404),
    (Unauthorized, 403),
    ((AlreadyInitializedError, StakeLocked), 409),
    (TransferFailed, 402),
)


def status_for(exc: LedgerError) -> int:
    for kinds, code in _STATUS_BY_ERROR:
        if isinstance(exc, kinds):
            return code
    return 400


def _error_body(exc: Exception) -> dict[str, str]:
    return {"detail": str(exc), "type": type(exc).__name__}


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    db = get_settings().database
    logger.info("Ledger store: %s", db.describe())
    # PostgreSQL gets the ORM schema; SQLite files go through the SQL migrations.
    if db.is_postgres:
        init_database()
    else:
        applied = migrate(db_path=db.sqlite_file.as_posix())
        if applied:
            logger.info("Applied migrations: %s", ", ".join(applied))
    yield


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerError)
    async def _ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        code = status_for(exc)
        logger.info("Rejected %s %s (%d): %s", request.method, request.url.path, code, exc)
        return JSONResponse(status_code=code, content=_error_body(exc))

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_error_body(exc))


def create_app() -> FastAPI:
    app = FastAPI(title="Token Ledger", version="0.1.0", lifespan=_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    for module in (health, vesting, staking, events):
        app.include_router(module.router)
    return app


app: FastAPI = create_app()


def start() -> None:
    """Run the API with uvicorn (tokenledger-api)."""
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        app_dir=str(PROJECT_ROOT),
    )
