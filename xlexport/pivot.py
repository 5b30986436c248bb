"""
xlexport/pivot.py — Adds a pivot table over the data table on its own sheet.

Flow:
  1. Validate settings (sheet name clash, strict label check).
  2. Build an owned PivotDefinitionBuilder over the table columns.
  3. Place labels (PivotAxisAssigner) and synchronize row field caches.
  4. Apply the layout style, render to openpyxl and attach to the new sheet.
  5. Freeze panes below/right of the headers, make the pivot sheet active.

Nothing is created on the workbook before step 2 succeeds, so a strict-mode
failure leaves the workbook with the data sheet only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.pivot.table import TableDefinition
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .errors import AppError, BAD_SETTINGS, UNRESOLVED_PIVOT_LABEL
from .models import FALLBACK_PIVOT_STYLE, Column, PivotSettings, TableRegion
from .pivot_axes import PivotAxisAssigner
from .pivot_model import PivotDefinitionBuilder


logger = logging.getLogger(__name__)

# header cell offsets inside the pivot location (rows/cols past the anchor)
FIRST_HEADER_ROW = 1
FIRST_DATA_ROW = 1
FIRST_DATA_COL = 1


@dataclass
class PivotInfo:
    sheet: Worksheet
    builder: PivotDefinitionBuilder
    definition: TableDefinition
    anchor: Tuple[int, int]                               # 0-based (row, col)
    freeze_cell: Optional[str] = None
    unresolved: List[Tuple[str, str]] = field(default_factory=list)


def find_unresolved_labels(settings: PivotSettings, column_names: Sequence[str]) -> List[Tuple[str, str]]:
    """(role, name) of every configured label that matches no column."""
    known = set(column_names)
    return [(role, name) for role, name in settings.label_names() if name not in known]


def pivot_anchor(settings: PivotSettings) -> Tuple[int, int]:
    """0-based top-left cell of the pivot body; report filters sit above it."""
    if settings.filter_labels:
        return len(settings.filter_labels) + 1, 0
    return 0, 0


def freeze_cell_for(anchor_row: int, anchor_col: int, col_field_count: int) -> Optional[str]:
    row = anchor_row + FIRST_DATA_ROW + col_field_count
    col = anchor_col + FIRST_DATA_COL
    if row == 0 and col == 0:
        return None
    return f"{get_column_letter(col + 1)}{row + 1}"


def _apply_layout(builder: PivotDefinitionBuilder) -> None:
    for pf in builder.pivot_fields:
        pf.show_all = False
        pf.top_auto_show = False
        pf.compact = True


def create_pivot_table(
    wb: Workbook,
    data_ws: Worksheet,
    region: TableRegion,
    columns: Sequence[Column],
    settings: PivotSettings,
) -> PivotInfo:
    """
    Create settings.sheet_name with a pivot table sourced from `region` on
    `data_ws`. Raises AppError(BAD_SETTINGS) on a sheet name clash and
    AppError(UNRESOLVED_PIVOT_LABEL) for unknown labels when strict_labels.
    """
    sheet_name = settings.sheet_name
    if not sheet_name:
        raise AppError(BAD_SETTINGS, "Pivot sheet name is blank")
    if sheet_name == data_ws.title or sheet_name in wb.sheetnames:
        raise AppError(
            BAD_SETTINGS,
            f"Pivot sheet name {sheet_name!r} is already used",
            {"sheet": sheet_name},
        )

    names = [c.name for c in sorted(columns, key=lambda c: c.position)]
    if settings.strict_labels:
        missing = find_unresolved_labels(settings, names)
        if missing:
            raise AppError(
                UNRESOLVED_PIVOT_LABEL,
                f"{len(missing)} pivot label(s) match no column",
                {"labels": [name for _, name in missing], "roles": [role for role, _ in missing]},
            )

    builder = PivotDefinitionBuilder(names, record_count=region.record_count)
    assigner = PivotAxisAssigner(builder, data_ws, region)
    assigner.assign_row_labels(settings.row_labels)
    assigner.assign_column_labels(settings.column_labels)
    assigner.assign_filter_labels(settings.filter_labels)
    _apply_layout(builder)
    builder.check_invariants()

    anchor_row, anchor_col = pivot_anchor(settings)
    definition = builder.render(
        name=settings.table_name,
        source_ref=region.ref,
        source_sheet=data_ws.title,
        style_name=settings.table_style or FALLBACK_PIVOT_STYLE,
        anchor_row=anchor_row,
        anchor_col=anchor_col,
    )

    pivot_ws = wb.create_sheet(sheet_name)
    pivot_ws._pivots.append(definition)

    freeze = freeze_cell_for(anchor_row, anchor_col, builder.col_field_count)
    if freeze:
        pivot_ws.freeze_panes = freeze

    wb.active = pivot_ws
    data_ws.sheet_view.tabSelected = False
    pivot_ws.sheet_view.tabSelected = True

    logger.debug(
        "pivot %r on %r: rows=%s cols=%s pages=%s data=%d",
        settings.table_name, sheet_name,
        builder.row_fields, builder.col_fields, builder.page_fields, len(builder.data_fields),
    )

    return PivotInfo(
        sheet=pivot_ws,
        builder=builder,
        definition=definition,
        anchor=(anchor_row, anchor_col),
        freeze_cell=freeze,
        unresolved=list(assigner.unresolved),
    )
