"""
Fundtrack — FastAPI app factory; the lifespan creates the DataStore.
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fundtrack.data.store import DataStore, StorageError
from fundtrack.services import DatasetNotFound
from fundtrack.api.dependencies import set_store
from fundtrack.api.router_datasets import router as datasets_router
from fundtrack.api.router_tracker import router as tracker_router
from fundtrack.api.router_approved import router as approved_router
from fundtrack.api.router_dashboard import router as dashboard_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create data folders and the store at startup."""
    from fundtrack.config import CONFIG_FOLDER, DATASETS_FOLDER, REPORTS_FOLDER, UPLOADS_FOLDER
    for d in [DATASETS_FOLDER, CONFIG_FOLDER, REPORTS_FOLDER, UPLOADS_FOLDER]:
        d.mkdir(parents=True, exist_ok=True)

    # Diagnostic: show exactly where data lives
    print(f"  FUNDTRACK_DATA_DIR = {os.environ.get('FUNDTRACK_DATA_DIR', '(not set)')}")
    print(f"  DATASETS_FOLDER = {DATASETS_FOLDER}")

    store = DataStore(DATASETS_FOLDER, CONFIG_FOLDER)
    set_store(store)

    datasets = await store.list_datasets()
    if datasets:
        print(f"\nFundtrack ready — {len(datasets)} dataset(s): "
              f"{', '.join(d.name for d in datasets[:5])}{' ...' if len(datasets) > 5 else ''}\n")
    else:
        print("\nFundtrack ready — no datasets yet. Upload a spreadsheet to start a cycle.\n")
    yield
    set_store(None)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Fundtrack API",
        description="Funding proposal tracker — match columns, reviewer assignment, status, approvals",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DatasetNotFound)
    async def _not_found(request: Request, exc: DatasetNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError):
        print(f"  Storage error on {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    app.include_router(datasets_router)
    app.include_router(tracker_router)
    app.include_router(approved_router)
    app.include_router(dashboard_router)

    return app


app = create_app()
