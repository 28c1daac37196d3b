"""
Spreadsheet -> Dataset conversion for CSV and XLSX exports.
"""
from __future__ import annotations

import datetime as dt
import re
from pathlib import Path

import pandas as pd
from openpyxl import load_workbook

from fundtrack.data.schemas import Dataset, Row


def _unique_headers(raw: list) -> list[str]:
    """Blank headers become "Column N"; repeats get a numeric suffix."""
    headers: list[str] = []
    for i, h in enumerate(raw, 1):
        name = str(h).strip() if h is not None and str(h).strip() else f"Column {i}"
        base, n = name, 2
        while name in headers:
            name = f"{base} ({n})"
            n += 1
        headers.append(name)
    return headers


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dt.datetime):
        return value.date().isoformat() if value.time() == dt.time() else value.isoformat()
    return str(value).strip()


def _dataset_id(name: str) -> str:
    slug = re.sub(r"[^\w-]+", "-", name.lower()).strip("-")[:40] or "dataset"
    return f"dt_{slug}_{dt.datetime.now():%Y%m%d%H%M%S}"


def read_csv(filepath: Path) -> tuple[list[str], list[Row]]:
    df = pd.read_csv(filepath, dtype=str, keep_default_na=False)
    headers = _unique_headers(list(df.columns))
    df.columns = headers
    rows = [Row(values={h: str(v).strip() for h, v in rec.items()}) for rec in df.to_dict("records")]
    return headers, rows


def read_xlsx(filepath: Path) -> tuple[str, list[str], list[Row]]:
    """First worksheet; hyperlinks are kept per cell."""
    wb = load_workbook(filepath, read_only=False, data_only=True)
    ws = wb.worksheets[0]
    it = ws.iter_rows()
    try:
        header_cells = next(it)
    except StopIteration:
        return ws.title, [], []
    headers = _unique_headers([c.value for c in header_cells])

    rows: list[Row] = []
    for cells in it:
        values, links = {}, {}
        for h, cell in zip(headers, cells):
            values[h] = _cell_text(cell.value)
            if cell.hyperlink is not None and cell.hyperlink.target:
                links[h] = cell.hyperlink.target
        if not any(values.values()):
            continue
        rows.append(Row(values=values, links=links))
    return ws.title, headers, rows


def load_dataset_file(filepath: Path, name: str | None = None) -> Dataset:
    """Build a new Dataset from a .csv / .xlsx file (match column not yet set)."""
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()
    if suffix == ".csv":
        headers, rows = read_csv(filepath)
        sheet = filepath.stem
    elif suffix in (".xlsx", ".xlsm"):
        sheet, headers, rows = read_xlsx(filepath)
    else:
        raise ValueError(f"Unsupported file type '{filepath.suffix}' (expected .csv or .xlsx)")

    title = name or sheet or filepath.stem
    print(f"  Loaded {filepath.name}: {len(rows):,} rows, {len(headers)} columns")
    return Dataset(id=_dataset_id(title), name=title, headers=headers, rows=rows)
