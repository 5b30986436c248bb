"""
xlexport/pivot_axes.py — Places configured labels on the pivot axes.

Labels are processed strictly in the order given. A label whose name matches
no column is skipped and recorded in `unresolved` (strict mode is enforced
earlier, in pivot.create_pivot_table, before anything is built). A label whose
field already sits on another axis is skipped too.

Row labels:    add to row axis -> sort / showAll -> optional move to column
               axis -> synchronize the field cache (always).
Column labels: add a data field with the requested aggregation.
Filter labels: add a report filter (page field).
"""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from openpyxl.worksheet.worksheet import Worksheet

from .errors import AppError, BAD_SETTINGS
from .models import (
    AGGREGATIONS, AXES, DEFAULT_AGGREGATION, SORT_ORDERS,
    ColumnLabel, RowLabel, TableRegion,
)
from .pivot_cache import synchronize_field
from .pivot_model import PivotDefinitionBuilder


logger = logging.getLogger(__name__)


AGGREGATION_TITLES = {
    "sum": "Sum",
    "average": "Average",
    "count": "Count",
    "countNums": "Count",
    "max": "Max",
    "min": "Min",
    "product": "Product",
    "stdDev": "StdDev",
    "stdDevp": "StdDevp",
    "var": "Var",
    "varp": "Varp",
}


def data_field_caption(label: ColumnLabel) -> str:
    if label.caption:
        return label.caption
    aggregation = label.aggregation or DEFAULT_AGGREGATION
    return f"{AGGREGATION_TITLES[aggregation]} of {label.name}"


class PivotAxisAssigner:

    def __init__(self, builder: PivotDefinitionBuilder, ws: Worksheet, region: TableRegion):
        self.builder = builder
        self.ws = ws
        self.region = region
        self.unresolved: List[Tuple[str, str]] = []     # (role, name)
        self.skipped: List[Tuple[str, str]] = []        # already placed

    def _resolve(self, role: str, name: str) -> int:
        index = self.builder.field_index(name)
        if index == -1:
            logger.warning("pivot %s label %r matches no column; skipped", role, name)
            self.unresolved.append((role, name))
        return index

    def _already_placed(self, role: str, name: str, index: int) -> bool:
        if not self.builder.is_placed(index):
            return False
        logger.warning(
            "pivot %s label %r is already on %s; skipped",
            role, name, self.builder.axis_of(index),
        )
        self.skipped.append((role, name))
        return True

    def assign_row_labels(self, labels: Sequence[RowLabel]) -> None:
        for label in labels:
            if label.axis not in AXES:
                raise AppError(BAD_SETTINGS, f"Bad row label axis: {label.axis!r}", {"label": label.name})
            if label.sort_order not in SORT_ORDERS:
                raise AppError(BAD_SETTINGS, f"Bad sort order: {label.sort_order!r}", {"label": label.name})

            index = self._resolve("row", label.name)
            if index == -1 or self._already_placed("row", label.name, index):
                continue

            self.builder.add_row_field(index)
            self.builder.set_sort(index, label.sort_order)

            if label.axis == "column":
                self.builder.move_field_to_column_axis(index)

            synchronize_field(
                self.ws, self.region, self.builder, index,
                show_detail=not label.collapsed,
            )

    def assign_column_labels(self, labels: Sequence[ColumnLabel]) -> None:
        for label in labels:
            aggregation = label.aggregation or DEFAULT_AGGREGATION
            if aggregation not in AGGREGATIONS:
                raise AppError(BAD_SETTINGS, f"Bad aggregation: {aggregation!r}", {"label": label.name})

            index = self._resolve("column", label.name)
            if index == -1:
                continue
            self.builder.add_data_field(index, aggregation, data_field_caption(label))

    def assign_filter_labels(self, names: Sequence[str]) -> None:
        for name in names:
            index = self._resolve("filter", name)
            if index == -1 or self._already_placed("filter", name, index):
                continue
            self.builder.add_page_field(index)
