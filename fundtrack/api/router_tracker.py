"""
Tracker endpoints — status table, reviewer feed, auto-assign, manual assignees,
proposal fields, submissions, cross-cycle matches, speedtype lookup.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from fundtrack import services
from fundtrack.config import CYCLE_MATCH_THRESHOLD
from fundtrack.data.store import DataStore
from fundtrack.analytics.speedtype import extract_speedtype
from fundtrack.analytics.approved import find_approved
from fundtrack.api.dependencies import check, get_store, safe_json
from fundtrack.api.response_models import (
    AssigneesRequest,
    AutoAssignRequest,
    ProposalFieldRequest,
    SubmissionRequest,
)

router = APIRouter(prefix="/api/datasets/{dataset_id}", tags=["tracker"])


@router.get("/tracker")
async def tracker(dataset_id: str, store: DataStore = Depends(get_store)):
    """One row per visible proposal with its derived status."""
    return safe_json({"proposals": await services.tracker(store, dataset_id)})


@router.get("/reviewer-feed")
async def reviewer_feed(
    dataset_id: str,
    reviewer: Optional[str] = Query(None, description="First-name match"),
    store: DataStore = Depends(get_store),
):
    return safe_json({"items": await services.reviewer_items(store, dataset_id, reviewer)})


# ── Assignments ────────────────────────────────────────────────────

@router.post("/auto-assign")
async def auto_assign(dataset_id: str, req: AutoAssignRequest, store: DataStore = Depends(get_store)):
    plan = check(await services.run_auto_assign(
        store, dataset_id, req.meeting_dates, req.reviewer_pool, req.reviewer_count,
    ))
    return safe_json({
        "due": plan.due,
        "assignments": plan.assignments,
        "loads": plan.loads,
        "total_assignments": plan.total_assignments,
        "config": plan.config,
    })


@router.get("/assignments")
async def get_assignments(dataset_id: str, store: DataStore = Depends(get_store)):
    await services.require_dataset(store, dataset_id)
    return {"assignments": await store.load_assignments(dataset_id)}


@router.put("/assignments")
async def put_assignees(dataset_id: str, req: AssigneesRequest, store: DataStore = Depends(get_store)):
    if not req.identity.strip():
        raise HTTPException(400, "identity is required")
    assignments = await services.update_assignees(store, dataset_id, req.identity, req.reviewers)
    return {"identity": req.identity.strip(), "reviewers": assignments.get(req.identity.strip(), [])}


@router.delete("/assignments")
async def clear_assignments(dataset_id: str, store: DataStore = Depends(get_store)):
    await services.clear_all_assignments(store, dataset_id)
    return {"status": "cleared"}


# ── Proposal fields ────────────────────────────────────────────────

@router.patch("/proposals")
async def patch_proposal(dataset_id: str, req: ProposalFieldRequest, store: DataStore = Depends(get_store)):
    saved = check(await services.update_proposal_field(store, dataset_id, req.identity, req.patch()))
    return {"identity": req.identity.strip(), "saved": saved}


# ── Submissions ────────────────────────────────────────────────────

@router.get("/submissions")
async def list_submissions(dataset_id: str, store: DataStore = Depends(get_store)):
    await services.require_dataset(store, dataset_id)
    return safe_json({"submissions": await store.load_submissions(dataset_id)})


@router.post("/submissions")
async def save_submission(dataset_id: str, req: SubmissionRequest, store: DataStore = Depends(get_store)):
    sub = check(await services.record_submission(store, dataset_id, req.model_dump()))
    return safe_json(sub)


@router.delete("/submissions/{submission_id}")
async def delete_submission(dataset_id: str, submission_id: str, store: DataStore = Depends(get_store)):
    if not await services.remove_submission(store, dataset_id, submission_id):
        raise HTTPException(404, f"Submission not found: {submission_id}")
    return {"status": "deleted", "id": submission_id}


# ── Cross-cycle matches ────────────────────────────────────────────

@router.get("/matches")
async def matches(
    dataset_id: str,
    identity: str = Query(""),
    threshold: float = Query(CYCLE_MATCH_THRESHOLD, ge=0.0, le=1.0),
    store: DataStore = Depends(get_store),
):
    """Same proposal in other cycles, best first, with requested / given totals."""
    return safe_json(await services.find_matches(store, dataset_id, identity, threshold))


# ── Speedtype ──────────────────────────────────────────────────────

@router.get("/speedtype")
async def speedtype(
    dataset_id: str,
    identity: str = Query(...),
    column: Optional[str] = Query(None),
    store: DataStore = Depends(get_store),
):
    ctx = await services.load_context(store, dataset_id)
    found = ctx.dataset.find_row(identity)
    if found is None:
        raise HTTPException(404, f"Proposal not found: {identity}")
    code = extract_speedtype(found[1], find_approved(ctx.approved, identity), column)
    return {"identity": identity, "speedtype": code}
