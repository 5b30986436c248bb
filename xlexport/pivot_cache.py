"""
xlexport/pivot_cache.py — Collapses a pivot field onto the values of its column.

Reads the data column with ws.iter_rows(values_only=True). Never ws.cell() in
a scan loop: reading an unwritten cell through ws.cell() registers it and
silently inflates ws.max_row.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from openpyxl.worksheet.worksheet import Worksheet

from .formats import cell_text
from .models import TableRegion
from .pivot_model import PivotDefinitionBuilder


logger = logging.getLogger(__name__)


def distinct_column_values(ws: Worksheet, region: TableRegion, column_offset: int) -> List[str]:
    """
    Text of every non-empty data cell (header excluded) of the region column
    at `column_offset`, deduplicated in first-seen order.
    """
    if region.record_count <= 0:
        return []

    col = region.first_col + column_offset + 1
    seen: Dict[str, None] = {}
    for (value,) in ws.iter_rows(
        min_row=region.first_row + 2,
        max_row=region.last_row + 1,
        min_col=col,
        max_col=col,
        values_only=True,
    ):
        if value is None:
            continue
        seen.setdefault(cell_text(value), None)
    return list(seen)


def synchronize_field(
    ws: Worksheet,
    region: TableRegion,
    builder: PivotDefinitionBuilder,
    field_index: int,
    show_detail: bool = False,
) -> List[str]:
    """
    Register the distinct values of the field's column as shared cache items
    (indices 0..n-1 in first-seen order) and tag the field's items to match.
    Item slots past the distinct values only get their show-detail flag set.

    Returns the registered values in index order.
    """
    values = distinct_column_values(ws, region, field_index)
    for value in values:
        builder.register_distinct_value(field_index, value, show_detail=show_detail)
    surplus = builder.suppress_surplus_details(field_index, show_detail=show_detail)

    builder.check_invariants()

    logger.debug(
        "field %d: %d shared items, %d surplus item slots",
        field_index, len(values), surplus,
    )
    return values
