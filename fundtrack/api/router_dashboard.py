"""
Dashboard endpoints — dataset summary, reviewer progress, tracker report, auto-assign defaults.
"""
from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from fundtrack import services
from fundtrack.config import REPORTS_FOLDER
from fundtrack.data.store import DataStore
from fundtrack.reports import tracker_report
from fundtrack.api.dependencies import get_store, safe_json

router = APIRouter(prefix="/api", tags=["dashboard"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _parse_today(today: str | None) -> dt.date | None:
    if not today:
        return None
    try:
        return dt.date.fromisoformat(today)
    except ValueError:
        raise HTTPException(400, f"Invalid date: {today}")


def _output_path(name: str) -> Path:
    REPORTS_FOLDER.mkdir(parents=True, exist_ok=True)
    return REPORTS_FOLDER / name


@router.get("/datasets/{dataset_id}/summary")
async def summary(dataset_id: str, store: DataStore = Depends(get_store)):
    """Proposal counts, funding decisions, notes, average request, total granted."""
    return safe_json(await services.summary(store, dataset_id))


@router.get("/datasets/{dataset_id}/reviewers")
async def reviewers(
    dataset_id: str,
    today: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    store: DataStore = Depends(get_store),
):
    """Assigned vs submitted per reviewer, plus items due in the next 7 days."""
    return safe_json({"reviewers": await services.progress(store, dataset_id, _parse_today(today))})


@router.get("/datasets/{dataset_id}/report")
async def report_json(
    dataset_id: str,
    today: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
):
    ctx = await services.load_context(store, dataset_id)
    return safe_json(tracker_report.generate_json(ctx, _parse_today(today)))


@router.get("/datasets/{dataset_id}/report/excel")
async def report_excel(
    dataset_id: str,
    today: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
):
    ctx = await services.load_context(store, dataset_id)
    path = tracker_report.generate_excel(ctx, _output_path(f"Tracker_{dataset_id}.xlsx"), _parse_today(today))
    return FileResponse(path=str(path), filename=path.name, media_type=XLSX_MEDIA_TYPE)


@router.get("/auto-assign/defaults")
async def auto_assign_defaults(store: DataStore = Depends(get_store)):
    """Reviewer pool, count and meeting dates remembered from the last run."""
    return safe_json(await store.load_auto_assign_config())
