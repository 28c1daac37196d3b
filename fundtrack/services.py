"""
Fundtrack — async workflows joining the engine to the DataStore.

Every function loads what it needs, runs the pure engine code, and persists
the result. Engine ValidationFailures are returned untouched (nothing is
written); StorageError from the store propagates.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path

from fundtrack.config import CYCLE_MATCH_THRESHOLD
from fundtrack.data.loader import load_dataset_file
from fundtrack.data.normalize import to_ymd
from fundtrack.data.schemas import (
    META_FIELDS,
    ApprovedRecord,
    AssignmentMap,
    ColumnChangeEvent,
    Dataset,
    FundingStatus,
    ProposalMeta,
    Submission,
    ValidationFailure,
)
from fundtrack.data.store import DataStore, StorageError
from fundtrack.analytics.approved import remap_approved, toggle_approval
from fundtrack.analytics.assignment import AssignmentPlan, balance_assignments, edit_assignees
from fundtrack.analytics.columns import (
    ColumnInference,
    apply_inferred_column,
    lock_match_column,
    set_match_column,
    unlock_match_column,
)
from fundtrack.analytics.cycles import CrossCycleResult, CycleSnapshot, find_cross_cycle_matches
from fundtrack.analytics.dashboard import dataset_summary, reviewer_progress
from fundtrack.analytics.speedtype import is_valid_speedtype
from fundtrack.analytics.status import reviewer_feed, tracker_rows


class DatasetNotFound(LookupError):
    pass


@dataclass
class DatasetContext:
    """Everything joined to one dataset by proposal identity."""
    dataset: Dataset
    assignments: AssignmentMap = field(default_factory=dict)
    submissions: list[Submission] = field(default_factory=list)
    meta: ProposalMeta = field(default_factory=ProposalMeta)
    approved: list[ApprovedRecord] = field(default_factory=list)


async def require_dataset(store: DataStore, dataset_id: str) -> Dataset:
    dataset = await store.load_dataset(dataset_id)
    if dataset is None:
        raise DatasetNotFound(f"Dataset not found: {dataset_id}")
    return dataset


async def load_context(store: DataStore, dataset_id: str) -> DatasetContext:
    dataset = await require_dataset(store, dataset_id)
    assignments, submissions, meta, approved = await asyncio.gather(
        store.load_assignments(dataset_id),
        store.load_submissions(dataset_id),
        store.load_proposal_meta(dataset_id),
        store.load_approved_records(dataset_id),
    )
    return DatasetContext(dataset, assignments, submissions, meta, approved)


# ---------------------------------------------------------------------------
# Datasets and the match column
# ---------------------------------------------------------------------------

async def import_dataset(
    store: DataStore,
    filepath: str | Path,
    name: str | None = None,
    user: str = "system",
) -> tuple[Dataset, ColumnInference | ValidationFailure]:
    """Load a spreadsheet as a new cycle, infer + lock its match column, save."""
    dataset = load_dataset_file(Path(filepath), name)
    inference = apply_inferred_column(dataset, (), user)
    await store.save_dataset(dataset)
    return dataset, inference


async def replace_dataset_rows(
    store: DataStore,
    dataset_id: str,
    filepath: str | Path,
    user: str = "system",
) -> tuple[Dataset, ColumnInference | ValidationFailure | None]:
    """Swap in a re-exported spreadsheet, keeping id, name and column history.

    A locked match column that still exists is kept; otherwise the column is
    re-inferred against the dataset's submissions.
    """
    async with store.lock(dataset_id):
        dataset = await require_dataset(store, dataset_id)
        fresh = load_dataset_file(Path(filepath), dataset.name)
        dataset.headers = fresh.headers
        dataset.rows = fresh.rows
        dataset.pinned_columns = [c for c in dataset.pinned_columns if c in fresh.headers]

        inference = None
        if not (dataset.match_column_locked and dataset.match_column in dataset.headers):
            submissions = await store.load_submissions(dataset_id)
            inference = apply_inferred_column(dataset, submissions, user)
        await store.save_dataset(dataset)
    return dataset, inference


async def change_match_column(
    store: DataStore,
    dataset_id: str,
    column: str,
    user: str = "system",
    confirm_unlock: bool = False,
    force: bool = False,
) -> ColumnChangeEvent | ValidationFailure | None:
    async with store.lock(dataset_id):
        dataset = await require_dataset(store, dataset_id)
        result = set_match_column(dataset, column, user, confirm_unlock=confirm_unlock, force=force)
        if isinstance(result, ColumnChangeEvent):
            await store.save_dataset(dataset)
    return result


async def set_column_lock(store: DataStore, dataset_id: str, locked: bool) -> Dataset:
    async with store.lock(dataset_id):
        dataset = await require_dataset(store, dataset_id)
        if locked:
            lock_match_column(dataset)
        else:
            unlock_match_column(dataset)
        await store.save_dataset(dataset)
    return dataset


async def toggle_pinned_column(store: DataStore, dataset_id: str, column: str) -> list[str] | ValidationFailure:
    """Pin / unpin a column; pinned columns lead the dataset's column order."""
    async with store.lock(dataset_id):
        dataset = await require_dataset(store, dataset_id)
        if column not in dataset.headers:
            return ValidationFailure("unknown_column", f"Column {column!r} is not in this dataset.")
        if column in dataset.pinned_columns:
            dataset.pinned_columns.remove(column)
        else:
            dataset.pinned_columns.append(column)
        await store.save_dataset(dataset)
    return dataset.pinned_columns


async def toggle_row_hidden(store: DataStore, dataset_id: str, row_index: int) -> bool | ValidationFailure:
    """Flip one row's hidden flag; returns the new state."""
    async with store.lock(dataset_id):
        dataset = await require_dataset(store, dataset_id)
        if not 0 <= row_index < len(dataset.rows):
            return ValidationFailure("unknown_row", f"Row {row_index} does not exist.")
        row = dataset.rows[row_index]
        row.hidden = not row.hidden
        await store.save_dataset(dataset)
    return row.hidden


# ---------------------------------------------------------------------------
# Tracker: status, assignments, proposal fields
# ---------------------------------------------------------------------------

async def tracker(store: DataStore, dataset_id: str) -> list[dict]:
    ctx = await load_context(store, dataset_id)
    return tracker_rows(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved)


async def reviewer_items(store: DataStore, dataset_id: str, reviewer: str | None = None) -> list[dict]:
    ctx = await load_context(store, dataset_id)
    return reviewer_feed(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved, reviewer)


async def run_auto_assign(
    store: DataStore,
    dataset_id: str,
    meeting_dates: str | list[str] | None = None,
    reviewer_pool: str | list[str] | None = None,
    reviewer_count: int | None = None,
) -> AssignmentPlan | ValidationFailure:
    """Balance reviewers and due dates over visible proposals, then persist.

    Omitted inputs fall back to the remembered defaults. A run never waits:
    while the dataset lock is held it returns ValidationFailure("busy").
    Assignments are written first and put back if a later write fails.
    """
    lock = store.lock(dataset_id)
    if lock.locked():
        return ValidationFailure("busy", "Auto-assign is already running for this dataset.")

    async with lock:
        dataset = await require_dataset(store, dataset_id)
        defaults = await store.load_auto_assign_config()
        plan = balance_assignments(
            dataset.proposals(),
            reviewer_pool if reviewer_pool else defaults.reviewer_pool,
            meeting_dates if meeting_dates else defaults.meeting_dates,
            reviewer_count if reviewer_count is not None else defaults.reviewer_count,
        )
        if isinstance(plan, ValidationFailure):
            return plan

        existing = await store.load_assignments(dataset_id)
        previous_due = (await store.load_proposal_meta(dataset_id)).due
        await store.save_assignments(dataset_id, {**existing, **plan.assignments})
        try:
            await store.save_proposal_fields(
                dataset_id, {identity: {"due_date": due} for identity, due in plan.due.items()}
            )
        except StorageError:
            await store.save_assignments(dataset_id, existing)
            raise
        try:
            await store.save_auto_assign_config(plan.config)
        except StorageError:
            await store.save_assignments(dataset_id, existing)
            await store.save_proposal_fields(
                dataset_id, {identity: {"due_date": previous_due.get(identity, "")} for identity in plan.due}
            )
            raise

    print(f"  Auto-assign {dataset_id}: {len(plan.assignments)} proposals, "
          f"{plan.total_assignments} assignments over {len(plan.config.meeting_dates)} date(s)")
    return plan


async def update_assignees(store: DataStore, dataset_id: str, identity: str, raw: str | list[str]) -> AssignmentMap:
    async with store.lock(dataset_id):
        await require_dataset(store, dataset_id)
        assignments = edit_assignees(await store.load_assignments(dataset_id), identity.strip(), raw)
        await store.save_assignments(dataset_id, assignments)
    return assignments


async def clear_all_assignments(store: DataStore, dataset_id: str) -> None:
    async with store.lock(dataset_id):
        await require_dataset(store, dataset_id)
        await store.save_assignments(dataset_id, {})


async def update_proposal_field(
    store: DataStore,
    dataset_id: str,
    identity: str,
    patch: dict,
) -> dict | ValidationFailure:
    """Validate and save given amount / funding status / due date / notes."""
    identity = str(identity or "").strip()
    if not identity:
        return ValidationFailure("no_identity", "No proposal selected.")
    unknown = [k for k in patch if k not in META_FIELDS]
    if unknown:
        return ValidationFailure("unknown_field", f"Unknown proposal field(s): {', '.join(unknown)}")

    clean = {k: "" if v is None else str(v).strip() for k, v in patch.items()}
    if "funding_status" in clean:
        try:
            clean["funding_status"] = FundingStatus(clean["funding_status"].lower()).value
        except ValueError:
            return ValidationFailure("invalid_status", f"Invalid funding status: {clean['funding_status']}")
    if clean.get("due_date"):
        ymd = to_ymd(clean["due_date"])
        if not ymd:
            return ValidationFailure("invalid_date", f"Invalid due date: {clean['due_date']}")
        clean["due_date"] = ymd

    async with store.lock(dataset_id):
        await require_dataset(store, dataset_id)
        await store.save_proposal_field(dataset_id, identity, clean)
    return clean


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

async def record_submission(store: DataStore, dataset_id: str, fields: dict) -> Submission | ValidationFailure:
    """Create (new id) or replace (existing id) a reviewer submission."""
    project = str(fields.get("project_name") or "").strip()
    reviewer = str(fields.get("reviewer_name") or "").strip()
    if not project or not reviewer:
        return ValidationFailure("incomplete", "Project name and reviewer name are required.")

    await require_dataset(store, dataset_id)
    sub = Submission(
        id=str(fields.get("id") or uuid.uuid4().hex),
        project_name=project,
        reviewer_name=reviewer,
        timestamp=str(fields.get("timestamp") or dt.datetime.now().isoformat(timespec="seconds")),
        year=str(fields.get("year") or ""),
        project_type=str(fields.get("project_type") or ""),
        impact=str(fields.get("impact") or ""),
        overall=str(fields.get("overall") or ""),
        line_items=str(fields.get("line_items") or ""),
        funding=str(fields.get("funding") or ""),
    )
    await store.save_submission(dataset_id, sub)
    return sub


async def remove_submission(store: DataStore, dataset_id: str, submission_id: str) -> bool:
    await require_dataset(store, dataset_id)
    return await store.delete_submission(dataset_id, submission_id)


# ---------------------------------------------------------------------------
# Approved
# ---------------------------------------------------------------------------

async def toggle_approved(
    store: DataStore,
    dataset_id: str,
    identity: str,
    speedtype_column: str | None = None,
) -> bool | ValidationFailure:
    """Approve / un-approve one proposal; returns the new approved state."""
    async with store.lock(dataset_id):
        ctx = await load_context(store, dataset_id)
        result = toggle_approval(ctx.dataset, identity, ctx.approved, ctx.meta, speedtype_column)
        if isinstance(result, ValidationFailure):
            return result
        records, approved = result
        await store.save_approved_records(dataset_id, records)
    return approved


async def remap_approved_records(
    store: DataStore,
    dataset_id: str,
    speedtype_column: str | None = None,
) -> list[ApprovedRecord]:
    async with store.lock(dataset_id):
        ctx = await load_context(store, dataset_id)
        records = remap_approved(ctx.dataset, ctx.approved, ctx.meta, speedtype_column)
        await store.save_approved_records(dataset_id, records)
    return records


async def set_approved_speedtype(
    store: DataStore,
    dataset_id: str,
    identity: str,
    speedtype: str,
) -> ApprovedRecord | ValidationFailure:
    """Manual speedtype override on an approved record ("" clears it)."""
    code = str(speedtype or "").strip()
    if code and not is_valid_speedtype(code):
        return ValidationFailure("invalid_speedtype", f"Speedtype must be 8 digits starting with 1 (got {code!r}).")

    key = str(identity or "").strip()
    async with store.lock(dataset_id):
        records = await store.load_approved_records(dataset_id)
        updated = None
        out = []
        for rec in records:
            if rec.project_name.strip() == key:
                rec = updated = replace(rec, speedtype=code)
            out.append(rec)
        if updated is None:
            return ValidationFailure("not_approved", f"{key!r} is not approved.")
        await store.save_approved_records(dataset_id, out)
    return updated


# ---------------------------------------------------------------------------
# Cross-cycle matching and dashboards
# ---------------------------------------------------------------------------

async def find_matches(
    store: DataStore,
    dataset_id: str,
    identity: str,
    threshold: float = CYCLE_MATCH_THRESHOLD,
) -> CrossCycleResult:
    """Match against every other dataset; their meta loads run concurrently."""
    await require_dataset(store, dataset_id)
    others = [d for d in await store.list_datasets() if d.id != dataset_id]
    metas = await asyncio.gather(*(store.load_proposal_meta(d.id) for d in others))
    cycles = [CycleSnapshot(d, m) for d, m in zip(others, metas)]
    return find_cross_cycle_matches(identity, cycles, threshold)


async def summary(store: DataStore, dataset_id: str) -> dict:
    ctx = await load_context(store, dataset_id)
    return dataset_summary(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved)


async def progress(store: DataStore, dataset_id: str, today: dt.date | None = None) -> list[dict]:
    ctx = await load_context(store, dataset_id)
    return reviewer_progress(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved, today)
