"""
xlexport/table.py — Writes the header and record rows and declares the table.

Critical rule: None values are NEVER written to cells. Writing None explicitly
via ws.cell(value=None) registers a phantom cell in openpyxl, inflating
ws.max_row and ws.max_column. Missing fields are skipped the same way.

The region is derived from the number of records consumed, not from the
worksheet dimensions, so a trailing record whose fields are all empty still
counts as a table row.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from openpyxl.utils import get_column_letter
from openpyxl.worksheet.filters import AutoFilter
from openpyxl.worksheet.table import Table, TableColumn, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from .errors import AppError
from .formats import StyleCache, ValueKind, cell_text, write_value
from .models import Column, TableRegion
from .records import RecordReader


logger = logging.getLogger(__name__)

VALUE_PADDING = 2
WIDTH_FACTOR = 1.25              # average glyph width vs. character count
MAX_COLUMN_WIDTH = 65279         # largest column width the format accepts, in 1/256 char


def column_width_units(width: int, factor: float = WIDTH_FACTOR) -> int:
    """Column width in 1/256 character units, capped at MAX_COLUMN_WIDTH."""
    return min(int(round(width * factor)) * 256, MAX_COLUMN_WIDTH)


class TableBuilder:
    """
    Fills one worksheet with a header row and one row per record, then
    declares the structured table over the written region.
    """

    def __init__(
        self,
        ws: Worksheet,
        columns: List[Column],
        styles: Optional[StyleCache] = None,
        *,
        table_id: int = 1,
        table_name: str = "Data",
        display_name: str = "MYTABLE",
        table_style: str = "TableStyleMedium16",
        width_factor: float = WIDTH_FACTOR,
    ):
        self.ws = ws
        self.columns = sorted(columns, key=lambda c: c.position)
        self.styles = styles
        self.table_id = table_id
        self.table_name = table_name
        self.display_name = display_name
        self.table_style = table_style
        self.width_factor = width_factor
        self.rows_written = 0
        self.region: Optional[TableRegion] = None
        self.table: Optional[Table] = None

    # ── rows ──────────────────────────────────────────────────────────────────

    def write_header(self) -> None:
        for col in self.columns:
            cell = self.ws.cell(row=1, column=col.position + 1)
            write_value(cell, col.name, self.styles, kind=ValueKind.TEXT)
        self.rows_written = 1

    def write_records(self, reader: RecordReader) -> int:
        """
        Consume the reader to the end. Returns the number of records written.
        """
        if self.rows_written == 0:
            self.write_header()

        count = 0
        while reader.read():
            row = self.rows_written + 1          # 1-based worksheet row
            for col in self.columns:
                if not reader.has_value(col.source_index):
                    continue
                value = reader.get_value(col.source_index)
                if value is None:
                    continue
                cell = self.ws.cell(row=row, column=col.position + 1)
                try:
                    write_value(cell, value, self.styles)
                except AppError as e:
                    if e.details is not None:
                        e.details.setdefault("column", col.name)
                    raise
                col.width = max(col.width, len(cell_text(value)) + VALUE_PADDING)
            self.rows_written += 1
            count += 1

        logger.debug("wrote %d records into %r", count, self.ws.title)
        return count

    # ── finalization ──────────────────────────────────────────────────────────

    def finalize(self) -> TableRegion:
        """
        Declare the region, the structured table and its autofilter, and size
        the columns. Must run after write_records().
        """
        if self.rows_written == 0:
            self.write_header()

        region = TableRegion(
            first_row=0,
            first_col=0,
            last_row=self.rows_written - 1,
            last_col=len(self.columns) - 1,
            row_count=self.rows_written,
            column_count=len(self.columns),
        )

        table = Table(
            id=self.table_id,
            displayName=self.display_name,
            name=self.table_name,
            ref=region.ref,
            totalsRowShown=False,
        )
        table.tableStyleInfo = TableStyleInfo(
            name=self.table_style,
            showFirstColumn=False,
            showLastColumn=False,
            showRowStripes=True,
            showColumnStripes=False,
        )
        table.tableColumns = [
            TableColumn(id=col.position + 1, name=col.name) for col in self.columns
        ]
        table.autoFilter = AutoFilter(ref=region.ref)
        self.ws.add_table(table)

        self.resize_columns()

        self.region = region
        self.table = table
        return region

    def resize_columns(self) -> None:
        for col in self.columns:
            units = column_width_units(col.width, self.width_factor)
            letter = get_column_letter(col.position + 1)
            self.ws.column_dimensions[letter].width = units / 256
