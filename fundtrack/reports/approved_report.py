"""
Approved Report — approved proposals with amounts and speedtypes for the
finance hand-off.
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

import pandas as pd

from fundtrack.services import DatasetContext
from fundtrack.analytics.common import sanitize_for_json, sum_amounts
from fundtrack.analytics.speedtype import is_valid_speedtype
from fundtrack.data.normalize import parse_amount
from fundtrack.excel.writer import ExcelWriter


APPROVED_COLS = [
    ("project_name", "text", "Project"),
    ("email", "text", "Email"),
    ("requested_value", "currency", "Requested"),
    ("given_value", "currency", "Given"),
    ("funding_status", "text", "Funding Status"),
    ("speedtype", "text", "Speedtype"),
    ("notes", "wrap", "Notes"),
]


def generate_json(ctx: DatasetContext) -> dict:
    records = []
    for rec in ctx.approved:
        row = asdict(rec)
        row["requested_value"] = parse_amount(rec.requested_amount)
        row["given_value"] = parse_amount(rec.given_amount)
        row["speedtype_ok"] = is_valid_speedtype(rec.speedtype)
        records.append(row)

    return sanitize_for_json({
        "dataset_id": ctx.dataset.id,
        "dataset_name": ctx.dataset.name,
        "count": len(records),
        "total_requested": sum_amounts(r.requested_amount for r in ctx.approved),
        "total_given": sum_amounts(r.given_amount for r in ctx.approved),
        "missing_speedtype": sum(1 for r in records if not r["speedtype_ok"]),
        "records": records,
    })


def generate_excel(ctx: DatasetContext, output_path: str | Path) -> Path:
    data = generate_json(ctx)
    ew = ExcelWriter()

    ws = ew.add_sheet("Approved")
    ew.write_title(ws, "APPROVED PROPOSALS",
                   f"{data['dataset_name']}  |  {data['count']} approved  |  "
                   f"Generated {pd.Timestamp.now():%B %d, %Y}",
                   merge_cols=len(APPROVED_COLS))

    row = ew.write_kpi_row(ws, 4, [
        (data["count"], "APPROVED", "number"),
        (data["total_requested"], "REQUESTED", "currency"),
        (data["total_given"], "GIVEN", "currency"),
    ])
    if data["missing_speedtype"]:
        row = ew.write_note(
            ws, row, "Missing speedtypes",
            f"{data['missing_speedtype']} approved proposal(s) have no valid speedtype (highlighted).",
            merge_cols=len(APPROVED_COLS),
        )

    ew.write_table(
        ws, row, APPROVED_COLS, data["records"],
        highlight_fn=lambda _i, r: None if r.get("speedtype_ok") else "warning",
        show_total=True,
    )
    return ew.save(output_path)
