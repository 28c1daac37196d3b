"""
Cell-level formatting for the tracker and approved workbooks.

Column types: text | wrap | link | currency | number | percent
"""
from __future__ import annotations

from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from fundtrack.excel.styles import (
    ALTERNATE_FILL,
    CENTER,
    DATA_FONT,
    FUND_BLUE,
    HEADER_BORDER,
    HEADER_FILL,
    HEADER_FONT,
    HIGHLIGHT_FILLS,
    KPI_LABEL_FONT,
    KPI_VALUE_FONT,
    LEFT,
    RIGHT,
    THIN_BORDER,
    TOTAL_BORDER,
    TOTAL_FILL,
    TOTAL_FONT,
    WRAP,
)

LINK_FONT = Font(name="Calibri", size=10, color=FUND_BLUE, underline="single")

CELL_FORMATS = {
    "currency": '"$"#,##0.00',
    "number": "#,##0",
    "percent": '0.0"%"',
}
# KPI cards show whole dollars
KPI_FORMATS = {**CELL_FORMATS, "currency": '"$"#,##0'}


def format_header_row(ws: Worksheet, row_num: int, labels: list[str]) -> None:
    for col, label in enumerate(labels, 1):
        cell = ws.cell(row=row_num, column=col, value=label)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER
        cell.border = HEADER_BORDER


def _row_fill(row_num: int, is_total: bool, highlight: str | None):
    if highlight in HIGHLIGHT_FILLS:
        return HIGHLIGHT_FILLS[highlight]
    if is_total:
        return TOTAL_FILL
    return ALTERNATE_FILL if row_num % 2 == 0 else None


def format_data_cell(
    ws: Worksheet,
    row_num: int,
    col_num: int,
    value,
    col_type: str = "text",
    is_total: bool = False,
    highlight: str | None = None,
) -> None:
    """Write one table cell; proposal links become clickable hyperlinks."""
    cell = ws.cell(row=row_num, column=col_num, value=value)
    cell.font = TOTAL_FONT if is_total else DATA_FONT
    cell.border = TOTAL_BORDER if is_total else THIN_BORDER

    if col_type in CELL_FORMATS:
        cell.number_format = CELL_FORMATS[col_type]
        cell.alignment = RIGHT
    elif col_type == "wrap":
        cell.alignment = WRAP
    else:
        cell.alignment = LEFT
        if col_type == "link" and value:
            cell.hyperlink = str(value)
            cell.font = LINK_FONT

    fill = _row_fill(row_num, is_total, highlight)
    if fill is not None:
        cell.fill = fill


def auto_column_width(ws: Worksheet, min_width: int = 10, max_width: int = 55) -> None:
    for column in ws.columns:
        longest = max((len(str(c.value)) for c in column if c.value), default=0)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(max(longest + 2, min_width), max_width)


def add_kpi_card(ws: Worksheet, row: int, col: int, value, label: str, format_type: str = "number") -> None:
    """Large KPI value with its caption on the row below."""
    value_cell = ws.cell(row=row, column=col, value=value)
    value_cell.font = KPI_VALUE_FONT
    value_cell.alignment = CENTER
    if format_type in KPI_FORMATS:
        value_cell.number_format = KPI_FORMATS[format_type]

    label_cell = ws.cell(row=row + 1, column=col, value=label)
    label_cell.font = KPI_LABEL_FONT
    label_cell.alignment = CENTER
