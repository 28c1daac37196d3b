"""
Approved endpoints — list, toggle, remap, manual speedtype, JSON / Excel export.
"""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from fundtrack import services
from fundtrack.config import REPORTS_FOLDER
from fundtrack.data.store import DataStore
from fundtrack.reports import approved_report
from fundtrack.api.dependencies import check, get_store, safe_json
from fundtrack.api.response_models import ApprovalToggleRequest, RemapRequest, SpeedtypeRequest

router = APIRouter(prefix="/api/datasets/{dataset_id}/approved", tags=["approved"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _output_path(name: str) -> Path:
    REPORTS_FOLDER.mkdir(parents=True, exist_ok=True)
    return REPORTS_FOLDER / name


@router.get("")
async def approved_json(dataset_id: str, store: DataStore = Depends(get_store)):
    ctx = await services.load_context(store, dataset_id)
    return safe_json(approved_report.generate_json(ctx))


@router.get("/excel")
async def approved_excel(dataset_id: str, store: DataStore = Depends(get_store)):
    ctx = await services.load_context(store, dataset_id)
    path = approved_report.generate_excel(ctx, _output_path(f"Approved_{dataset_id}.xlsx"))
    return FileResponse(path=str(path), filename=path.name, media_type=XLSX_MEDIA_TYPE)


@router.post("/toggle")
async def toggle(dataset_id: str, req: ApprovalToggleRequest, store: DataStore = Depends(get_store)):
    approved = check(await services.toggle_approved(store, dataset_id, req.identity, req.speedtype_column))
    return {"identity": req.identity.strip(), "approved": approved}


@router.post("/remap")
async def remap(dataset_id: str, req: RemapRequest, store: DataStore = Depends(get_store)):
    records = await services.remap_approved_records(store, dataset_id, req.speedtype_column)
    return safe_json({"count": len(records), "records": records})


@router.put("/speedtype")
async def set_speedtype(dataset_id: str, req: SpeedtypeRequest, store: DataStore = Depends(get_store)):
    await services.require_dataset(store, dataset_id)
    record = check(await services.set_approved_speedtype(store, dataset_id, req.identity, req.speedtype))
    return safe_json(record)
