"""Liveness and storage checks."""

import logging
import os

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from app.dependencies import get_api_key
from config import get_settings
from db.connection import REQUIRED_TABLES, get_engine, verify_required_tables
from tokenledger.services._types import DbInfoDict

logger: logging.Logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def get_db_info(engine: Engine | None = None) -> DbInfoDict:
    """Describe the configured store. Failures are reported, not raised."""
    db = get_settings().database
    info = DbInfoDict(
        backend_type="postgres" if db.is_postgres else "sqlite",
        database_url_or_path=db.redacted_url,
        pid=os.getpid(),
    )
    try:
        missing = verify_required_tables(engine or get_engine())
    except Exception as e:
        logger.exception("Storage check against %s failed", db.describe())
        info.update(schema_initialized=False, tables_missing=list(REQUIRED_TABLES), error=str(e))
        return info

    info.update(
        tables_present=[name for name in REQUIRED_TABLES if name not in missing],
        tables_missing=missing,
        schema_initialized=not missing,
    )
    return info


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/db", dependencies=[Depends(get_api_key)])
def health_db() -> DbInfoDict:
    return get_db_info()
