"""
Tracker Report — every visible proposal with status, money, reviewers and due date,
plus per-reviewer progress.
"""
from __future__ import annotations

import datetime as dt
from pathlib import Path

import pandas as pd

from fundtrack.services import DatasetContext
from fundtrack.analytics.common import sanitize_for_json
from fundtrack.analytics.dashboard import dataset_summary, reviewer_progress
from fundtrack.analytics.status import tracker_rows
from fundtrack.data.schemas import ProposalStatus
from fundtrack.excel.writer import ExcelWriter


TRACKER_COLS = [
    ("project", "text", "Project"),
    ("status", "text", "Status"),
    ("requested_value", "currency", "Requested"),
    ("given_value", "currency", "Given"),
    ("funding_status", "text", "Funding Status"),
    ("reviewer_names", "text", "Reviewers"),
    ("assigned_count", "number", "Assigned"),
    ("submitted_count", "number", "Notes In"),
    ("due_date", "text", "Due Date"),
    ("notes", "wrap", "Notes"),
    ("proposal_url", "link", "Proposal"),
]

REVIEWER_COLS = [
    ("reviewer", "text", "Reviewer"),
    ("assigned", "number", "Assigned"),
    ("submitted", "number", "Submitted"),
    ("outstanding", "number", "Outstanding"),
    ("due_soon", "number", "Due in 7 Days"),
    ("pct_complete", "percent", "% Complete"),
]

_STATUS_HIGHLIGHT = {
    ProposalStatus.APPROVED.value: "green",
    ProposalStatus.READY_FOR_REVIEW.value: "gold",
    ProposalStatus.WAITING_APPROVAL.value: "blue",
    ProposalStatus.UNASSIGNED.value: "warning",
}


def generate_json(ctx: DatasetContext, today: dt.date | None = None) -> dict:
    rows = tracker_rows(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved)
    for r in rows:
        r["reviewer_names"] = ", ".join(
            f"{rv['name']} ✓" if rv["submitted"] else rv["name"] for rv in r["reviewers"]
        )

    return sanitize_for_json({
        "dataset_id": ctx.dataset.id,
        "dataset_name": ctx.dataset.name,
        "match_column": ctx.dataset.key_column,
        "match_column_locked": ctx.dataset.match_column_locked,
        "summary": dataset_summary(ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved),
        "proposals": rows,
        "reviewers": reviewer_progress(
            ctx.dataset, ctx.assignments, ctx.submissions, ctx.meta, ctx.approved, today
        ),
    })


def generate_excel(ctx: DatasetContext, output_path: str | Path, today: dt.date | None = None) -> Path:
    data = generate_json(ctx, today)
    s = data["summary"]
    ew = ExcelWriter()

    # Summary
    ws = ew.add_sheet("Summary")
    ew.write_title(ws, data["dataset_name"].upper() or "FUNDING TRACKER",
                   f"Proposal Tracker  |  Match column: {data['match_column']}  |  "
                   f"Generated {pd.Timestamp.now():%B %d, %Y}")

    row = ew.write_section(ws, 5, "PIPELINE")
    row = ew.write_kpi_row(ws, row, [
        (s["proposals"], "PROPOSALS", "number"),
        (s["assigned"], "ASSIGNED", "number"),
        (s["approved"], "APPROVED", "number"),
        (s["notes_submitted"], "NOTES SUBMITTED", "number"),
    ])

    row = ew.write_section(ws, row, "FUNDING")
    row = ew.write_kpi_row(ws, row, [
        (s["total_requested"], "TOTAL REQUESTED", "currency"),
        (s["avg_requested"], "AVG REQUESTED", "currency"),
        (s["total_granted"], "TOTAL GRANTED", "currency"),
    ])
    row = ew.write_kpi_row(ws, row, [
        (s["fully_funded"], "FULLY FUNDED", "number"),
        (s["partially_funded"], "PARTIALLY FUNDED", "number"),
        (s["not_funded"], "NOT FUNDED", "number"),
    ])

    # Proposals
    ws_p = ew.add_sheet("Proposals")
    ew.write_table(
        ws_p, 1, TRACKER_COLS, data["proposals"],
        highlight_fn=lambda _i, r: _STATUS_HIGHLIGHT.get(r.get("status")),
        show_total=True,
    )

    # Reviewers
    ws_r = ew.add_sheet("Reviewers")
    ew.write_table(
        ws_r, 1, REVIEWER_COLS, data["reviewers"],
        highlight_fn=lambda _i, r: "orange" if r.get("due_soon") else None,
    )

    return ew.save(output_path)
