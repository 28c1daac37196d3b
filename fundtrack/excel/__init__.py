"""openpyxl styles, cell formatters and the ExcelWriter used by the tracker/approved exports."""
from .formatters import add_kpi_card, auto_column_width, format_data_cell, format_header_row
from .writer import ColSpec, ExcelWriter
