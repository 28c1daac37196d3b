"""
Dashboard analytics — dataset KPIs and reviewer progress.

Dataset Summary: proposal counts, funding decisions over approved records,
note count, average request and total granted.
Reviewer Progress: assigned vs submitted per reviewer, plus what falls due soon.
"""
from __future__ import annotations

import datetime as dt

import pandas as pd

from fundtrack.config import DUE_SOON_DAYS
from fundtrack.data.normalize import parse_amount
from fundtrack.data.schemas import (
    ApprovedRecord,
    AssignmentMap,
    Dataset,
    FundingStatus,
    ProposalMeta,
    Submission,
)
from fundtrack.analytics.common import pct_of_total, sanitize_for_json
from fundtrack.analytics.status import reviewer_feed, tracker_rows


def dataset_summary(
    dataset: Dataset,
    assignments: AssignmentMap,
    submissions: list[Submission],
    meta: ProposalMeta,
    approved_records: list[ApprovedRecord],
) -> dict:
    rows = tracker_rows(dataset, assignments, submissions, meta, approved_records)
    df = pd.DataFrame(rows, columns=["project", "status", "requested_value", "assigned_count"])

    funding = pd.Series([str(r.funding_status or "").strip().lower() for r in approved_records], dtype=str)
    granted = pd.Series([parse_amount(r.given_amount) for r in approved_records], dtype=float)
    requested = pd.to_numeric(df["requested_value"], errors="coerce")
    requested = requested[requested > 0]

    by_status = df["status"].value_counts().to_dict() if not df.empty else {}

    return sanitize_for_json({
        "dataset_id": dataset.id,
        "dataset_name": dataset.name,
        "proposals": int(df.shape[0]),
        "assigned": int((df["assigned_count"] > 0).sum()) if not df.empty else 0,
        "approved": len(approved_records),
        "by_status": by_status,
        "fully_funded": int((funding == FundingStatus.FULLY.value).sum()),
        "partially_funded": int((funding == FundingStatus.PARTIAL.value).sum()),
        "not_funded": int((funding == FundingStatus.NONE.value).sum()),
        "notes_submitted": sum(1 for s in submissions if s.is_substantive),
        "avg_requested": float(requested.mean()) if not requested.empty else 0.0,
        "total_requested": float(requested.sum()),
        "total_granted": float(granted.fillna(0).sum()),
    })


def reviewer_progress(
    dataset: Dataset,
    assignments: AssignmentMap,
    submissions: list[Submission],
    meta: ProposalMeta,
    approved_records: list[ApprovedRecord],
    today: dt.date | None = None,
) -> list[dict]:
    """Per reviewer: assigned, submitted, due soon (not yet submitted), % done."""
    items = reviewer_feed(dataset, assignments, submissions, meta, approved_records)
    if not items:
        return []

    today = today or dt.date.today()
    horizon = today + dt.timedelta(days=DUE_SOON_DAYS)

    df = pd.DataFrame(items)
    due = pd.to_datetime(df["due_date"], errors="coerce")
    df["due_soon"] = ~df["submitted"].astype(bool) & due.between(pd.Timestamp(today), pd.Timestamp(horizon))

    grouped = df.groupby("reviewer", sort=False).agg(
        assigned=("project", "count"),
        submitted=("submitted", "sum"),
        due_soon=("due_soon", "sum"),
    ).reset_index()

    out = []
    for _, r in grouped.iterrows():
        assigned = int(r["assigned"])
        submitted = int(r["submitted"])
        out.append({
            "reviewer": str(r["reviewer"]),
            "assigned": assigned,
            "submitted": submitted,
            "outstanding": assigned - submitted,
            "due_soon": int(r["due_soon"]),
            "pct_complete": round(pct_of_total(submitted, assigned), 1),
        })
    return sorted(out, key=lambda x: (-x["outstanding"], x["reviewer"]))
