"""
Dataset endpoints: health, list, upload / replace, detail, delete,
match-column inference, change, lock and history, column pins, row hide toggle.
"""
from __future__ import annotations

import re
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from fundtrack import services
from fundtrack.config import BASE_FOLDER, UPLOADS_FOLDER
from fundtrack.data.store import DataStore
from fundtrack.analytics.columns import infer_match_column
from fundtrack.api.dependencies import check, get_store, safe_json
from fundtrack.api.response_models import (
    DatasetInfo,
    HealthResponse,
    LockRequest,
    MatchColumnRequest,
    PinColumnRequest,
)

router = APIRouter(prefix="/api", tags=["datasets"])

_ACCEPTED = (".csv", ".xlsx", ".xlsm")


async def _save_upload(f: UploadFile) -> Path:
    """Write an uploaded spreadsheet under UPLOADS_FOLDER and return its path."""
    if not f.filename:
        raise HTTPException(400, "Missing filename")
    if not f.filename.lower().endswith(_ACCEPTED):
        raise HTTPException(400, f"Only .csv / .xlsx files are accepted (got '{f.filename}')")
    safe_name = re.sub(r"[^\w\-. ()]", "_", Path(f.filename).name)
    UPLOADS_FOLDER.mkdir(parents=True, exist_ok=True)
    dest = UPLOADS_FOLDER / safe_name
    dest.write_bytes(await f.read())
    return dest


def _info(ds) -> DatasetInfo:
    return DatasetInfo(
        id=ds.id,
        name=ds.name,
        rows=len(ds.rows),
        proposals=len(ds.proposals()),
        match_column=ds.key_column,
        match_column_locked=ds.match_column_locked,
        created=ds.created,
    )


@router.get("/health", response_model=HealthResponse)
async def health(store: DataStore = Depends(get_store)):
    datasets = await store.list_datasets()
    return HealthResponse(status="ok", datasets=len(datasets), data_dir=str(BASE_FOLDER))


@router.get("/datasets", response_model=list[DatasetInfo])
async def list_datasets(store: DataStore = Depends(get_store)):
    return [_info(ds) for ds in await store.list_datasets()]


@router.post("/datasets")
async def upload_dataset(
    file: UploadFile = File(...),
    name: str | None = Form(None),
    user: str = Form("system"),
    store: DataStore = Depends(get_store),
):
    """Upload a spreadsheet as a new cycle; the match column is inferred and locked."""
    path = await _save_upload(file)
    try:
        dataset, inference = await services.import_dataset(store, path, name or None, user)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return safe_json({"dataset": _info(dataset).model_dump(), "inference": inference})


@router.put("/datasets/{dataset_id}/rows")
async def replace_rows(
    dataset_id: str,
    file: UploadFile = File(...),
    user: str = Form("system"),
    store: DataStore = Depends(get_store),
):
    """Replace a cycle's rows with a re-exported spreadsheet."""
    path = await _save_upload(file)
    try:
        dataset, inference = await services.replace_dataset_rows(store, dataset_id, path, user)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return safe_json({"dataset": _info(dataset).model_dump(), "inference": inference})


@router.get("/datasets/{dataset_id}")
async def dataset_detail(dataset_id: str, store: DataStore = Depends(get_store)):
    ds = await services.require_dataset(store, dataset_id)
    rows = [
        {"index": i, "identity": ds.identity(r), "hidden": r.hidden, "values": r.values, "links": r.links}
        for i, r in enumerate(ds.rows)
    ]
    return safe_json({
        **_info(ds).model_dump(),
        "headers": ds.ordered_headers,
        "pinned_columns": ds.pinned_columns,
        "rows": rows,
    })


@router.delete("/datasets/{dataset_id}")
async def delete_dataset(dataset_id: str, store: DataStore = Depends(get_store)):
    await services.require_dataset(store, dataset_id)
    await store.delete_dataset(dataset_id)
    return {"status": "deleted", "dataset_id": dataset_id}


# ── Match column ───────────────────────────────────────────────────

@router.get("/datasets/{dataset_id}/match-column/inference")
async def match_column_inference(dataset_id: str, store: DataStore = Depends(get_store)):
    """Scores for every header. Read-only; nothing is changed."""
    ds = await services.require_dataset(store, dataset_id)
    submissions = await store.load_submissions(dataset_id)
    return safe_json(check(infer_match_column(ds, submissions)))


@router.post("/datasets/{dataset_id}/match-column")
async def change_match_column(dataset_id: str, req: MatchColumnRequest, store: DataStore = Depends(get_store)):
    event = check(await services.change_match_column(
        store, dataset_id, req.column, req.user, confirm_unlock=req.confirm_unlock, force=req.force,
    ))
    return safe_json({"changed": event is not None, "event": event})


@router.post("/datasets/{dataset_id}/match-column/lock")
async def set_lock(dataset_id: str, req: LockRequest, store: DataStore = Depends(get_store)):
    ds = await services.set_column_lock(store, dataset_id, req.locked)
    return {"match_column": ds.key_column, "match_column_locked": ds.match_column_locked}


@router.get("/datasets/{dataset_id}/match-column/history")
async def match_column_history(dataset_id: str, store: DataStore = Depends(get_store)):
    ds = await services.require_dataset(store, dataset_id)
    return safe_json({"history": ds.match_history})


# ── Rows ───────────────────────────────────────────────────────────

@router.post("/datasets/{dataset_id}/rows/{row_index}/hidden")
async def toggle_hidden(dataset_id: str, row_index: int, store: DataStore = Depends(get_store)):
    hidden = check(await services.toggle_row_hidden(store, dataset_id, row_index))
    return {"row_index": row_index, "hidden": hidden}


@router.post("/datasets/{dataset_id}/pinned-columns")
async def toggle_pinned(dataset_id: str, req: PinColumnRequest, store: DataStore = Depends(get_store)):
    pinned = check(await services.toggle_pinned_column(store, dataset_id, req.column))
    return {"pinned_columns": pinned}
