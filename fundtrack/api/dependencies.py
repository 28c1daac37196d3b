"""
FastAPI dependencies — DataStore singleton, failure -> HTTP mapping, JSON cleanup.
"""
from __future__ import annotations

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from fundtrack.data.store import DataStore
from fundtrack.data.schemas import ValidationFailure
from fundtrack.analytics.common import sanitize_for_json

# ---------------------------------------------------------------------------
# Global store singleton (set during startup)
# ---------------------------------------------------------------------------
_store: DataStore | None = None


def set_store(store: DataStore | None) -> None:
    global _store
    _store = store


def get_store() -> DataStore:
    if _store is None:
        raise HTTPException(503, "Server not initialized yet")
    return _store


# ---------------------------------------------------------------------------
# Engine results -> responses
# ---------------------------------------------------------------------------

# Codes that mean "the request clashes with current state" rather than bad input
CONFLICT_CODES = {"busy", "locked"}


def check(result):
    """Raise HTTPException for a ValidationFailure, otherwise pass the value through."""
    if isinstance(result, ValidationFailure):
        status = 409 if result.code in CONFLICT_CODES else 400
        raise HTTPException(status, {"code": result.code, "message": result.message})
    return result


def safe_json(data) -> JSONResponse:
    """JSONResponse with dataclasses, enums, numpy and NaN cleaned up."""
    return JSONResponse(content=sanitize_for_json(data))
