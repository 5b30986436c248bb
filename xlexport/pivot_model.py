"""
xlexport/pivot_model.py — Owned pivot definition with cross-collection invariants.

openpyxl models a pivot table as parallel collections: cache fields with shared
items, pivot fields with item lists, and the row / column / page / data field
lists. Nothing in that object graph stops the collections from drifting apart,
and a drift only shows up when Excel refuses to open the file.

PivotDefinitionBuilder owns those collections and exposes only operations that
keep them consistent:

  add_row_field(i)              place field i on the row axis
  move_field_to_column_axis(i)  row axis -> column axis (counts move together)
  add_page_field(i)             place field i in the report filter area
  add_data_field(i, fn, name)   aggregate field i in the values area
  register_distinct_value(i, v) add a shared cache item and tag its field item

Invariants (checked by check_invariants() and on every mutation):
  - row_field_count == len(row_fields), col_field_count == len(col_fields)
  - a real field index is in at most one of row / column / page fields
  - per field: number of "data" items == number of shared items, and every
    data item x is unique and within [0, len(shared items))

render() converts the model into openpyxl TableDefinition + CacheDefinition.
The cache is marked refresh-on-load with an empty record part; Excel rebuilds
records and row/column items when the file is opened.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from openpyxl.pivot.cache import (
    CacheDefinition,
    CacheField,
    CacheSource,
    SharedItems,
    WorksheetSource,
)
from openpyxl.pivot.fields import Text
from openpyxl.pivot.record import RecordList
from openpyxl.pivot.table import (
    DataField,
    FieldItem as XlFieldItem,
    Location,
    PageField,
    PivotField as XlPivotField,
    PivotTableStyle,
    RowColField,
    TableDefinition,
)
from openpyxl.utils import get_column_letter

from .errors import AppError, PIVOT_INVARIANT_BROKEN
from .models import AGGREGATIONS


AXIS_ROW = "axisRow"
AXIS_COL = "axisCol"
AXIS_PAGE = "axisPage"

VALUES_FIELD = -2                 # pseudo field for the "Values" header
PIVOT_VERSION = 3                 # created / updated / min refreshable version


def _broken(message: str, **details) -> AppError:
    return AppError(PIVOT_INVARIANT_BROKEN, message, details or None)


@dataclass
class FieldItem:
    t: str = "default"
    x: Optional[int] = None
    sd: bool = True


@dataclass
class PivotFieldModel:
    index: int
    name: str
    axis: Optional[str] = None
    data_field: bool = False
    sort_type: str = "manual"
    show_all: bool = True
    top_auto_show: bool = True
    compact: bool = True
    items: List[FieldItem] = field(default_factory=list)

    @property
    def data_items(self) -> List[FieldItem]:
        return [it for it in self.items if it.t == "data"]


@dataclass
class CacheFieldModel:
    name: str
    shared_items: List[str] = field(default_factory=list)
    positions: Dict[str, int] = field(default_factory=dict, repr=False)

    def index_of(self, value: str) -> Optional[int]:
        return self.positions.get(value)


@dataclass
class DataFieldModel:
    index: int
    subtotal: str
    name: str


class PivotDefinitionBuilder:

    def __init__(self, field_names: Sequence[str], record_count: int):
        if record_count < 0:
            raise _broken("record_count must be >= 0", record_count=record_count)
        self.record_count = record_count
        self.cache_fields: List[CacheFieldModel] = [CacheFieldModel(n) for n in field_names]
        self.pivot_fields: List[PivotFieldModel] = [
            PivotFieldModel(index=i, name=n) for i, n in enumerate(field_names)
        ]
        self.row_fields: List[int] = []
        self.row_field_count = 0
        self.col_fields: List[int] = []
        self.col_field_count = 0
        self.page_fields: List[int] = []
        self.data_fields: List[DataFieldModel] = []

    # ── lookup ────────────────────────────────────────────────────────────────

    def field_index(self, name: str) -> int:
        """Index of the field called `name`, or -1."""
        for f in self.pivot_fields:
            if f.name == name:
                return f.index
        return -1

    def axis_of(self, index: int) -> Optional[str]:
        return self._field(index).axis

    def is_placed(self, index: int) -> bool:
        return index in self.row_fields or index in self.col_fields or index in self.page_fields

    def shared_items(self, index: int) -> Tuple[str, ...]:
        return tuple(self.cache_fields[self._checked(index)].shared_items)

    def _checked(self, index: int) -> int:
        if not 0 <= index < len(self.pivot_fields):
            raise _broken(f"Field index out of range: {index}", index=index)
        return index

    def _field(self, index: int) -> PivotFieldModel:
        return self.pivot_fields[self._checked(index)]

    def _allocate_items(self, pf: PivotFieldModel) -> None:
        if not pf.items:
            pf.items = [FieldItem() for _ in range(self.record_count + 1)]

    # ── axis operations ───────────────────────────────────────────────────────

    def add_row_field(self, index: int) -> None:
        pf = self._field(index)
        if self.is_placed(index):
            raise _broken(f"Field {pf.name!r} is already on an axis", index=index, axis=pf.axis)
        pf.axis = AXIS_ROW
        pf.show_all = False
        self._allocate_items(pf)
        self.row_fields.append(index)
        self.row_field_count += 1
        self._check_axis_counts()

    def move_field_to_column_axis(self, index: int) -> None:
        pf = self._field(index)
        if index not in self.row_fields:
            raise _broken(f"Field {pf.name!r} is not a row field", index=index, axis=pf.axis)

        row_fields = list(self.row_fields)
        row_fields.remove(index)                 # by field index, not position
        col_fields = self.col_fields + [index]

        self.row_fields = row_fields
        self.row_field_count -= 1
        self.col_fields = col_fields
        self.col_field_count += 1
        pf.axis = AXIS_COL
        self._check_axis_counts()

    def add_page_field(self, index: int) -> None:
        pf = self._field(index)
        if self.is_placed(index):
            raise _broken(f"Field {pf.name!r} is already on an axis", index=index, axis=pf.axis)
        pf.axis = AXIS_PAGE
        pf.show_all = False
        self._allocate_items(pf)
        self.page_fields.append(index)

    def add_data_field(self, index: int, subtotal: str, name: str) -> None:
        pf = self._field(index)
        if subtotal not in AGGREGATIONS:
            raise _broken(f"Unknown aggregation: {subtotal!r}", index=index)
        pf.data_field = True
        self.data_fields.append(DataFieldModel(index=index, subtotal=subtotal, name=name))
        # a second value column needs the "Values" header on the column axis
        if len(self.data_fields) == 2:
            self.col_fields.append(VALUES_FIELD)
            self.col_field_count += 1
        self._check_axis_counts()

    def set_sort(self, index: int, sort_type: str) -> None:
        if sort_type not in ("manual", "ascending", "descending"):
            raise _broken(f"Unknown sort type: {sort_type!r}", index=index)
        self._field(index).sort_type = sort_type

    # ── cache items ───────────────────────────────────────────────────────────

    def register_distinct_value(self, index: int, value: str, show_detail: bool = False) -> int:
        """
        Append `value` to the field's shared items and tag the matching field
        item as data. Returns the new item index.
        """
        pf = self._field(index)
        if pf.axis is None:
            raise _broken(f"Field {pf.name!r} has no axis", index=index)
        cache = self.cache_fields[index]
        if value in cache.positions:
            raise _broken(
                f"Duplicate cache item {value!r} for field {pf.name!r}",
                index=index, value=value,
            )

        x = len(cache.shared_items)
        if x >= len(pf.items):
            pf.items.append(FieldItem())
        item = pf.items[x]
        if item.t == "data":
            raise _broken(f"Item slot {x} of field {pf.name!r} is already data", index=index)

        item.t = "data"
        item.x = x
        item.sd = show_detail
        cache.shared_items.append(value)
        cache.positions[value] = x
        return x

    def suppress_surplus_details(self, index: int, show_detail: bool = False) -> int:
        """Set sd on item slots past the shared items. Returns how many."""
        pf = self._field(index)
        start = len(self.cache_fields[index].shared_items)
        for item in pf.items[start:]:
            item.sd = show_detail
        return max(len(pf.items) - start, 0)

    # ── invariants ────────────────────────────────────────────────────────────

    def _check_axis_counts(self) -> None:
        if self.row_field_count != len(self.row_fields):
            raise _broken(
                "Row field count out of sync",
                count=self.row_field_count, fields=list(self.row_fields),
            )
        if self.col_field_count != len(self.col_fields):
            raise _broken(
                "Column field count out of sync",
                count=self.col_field_count, fields=list(self.col_fields),
            )

    def check_invariants(self) -> None:
        self._check_axis_counts()

        seen: Dict[int, str] = {}
        for axis, indices in (("row", self.row_fields), ("column", self.col_fields), ("page", self.page_fields)):
            for idx in indices:
                if idx == VALUES_FIELD:
                    continue
                if idx in seen:
                    raise _broken(
                        f"Field {idx} is on both the {seen[idx]} and {axis} axes",
                        index=idx,
                    )
                seen[idx] = axis

        for pf in self.pivot_fields:
            shared = self.cache_fields[pf.index].shared_items
            xs = [it.x for it in pf.data_items]
            if len(xs) != len(shared):
                raise _broken(
                    f"Field {pf.name!r} has {len(xs)} data items for {len(shared)} shared items",
                    index=pf.index,
                )
            if len(set(xs)) != len(xs) or any(x is None or not 0 <= x < len(shared) for x in xs):
                raise _broken(f"Field {pf.name!r} has invalid item indices {xs}", index=pf.index)

    # ── openpyxl rendering ────────────────────────────────────────────────────

    def render_cache(self, source_ref: str, source_sheet: str) -> CacheDefinition:
        cache_fields = [
            CacheField(
                name=cf.name,
                numFmtId=0,
                sharedItems=SharedItems(_fields=[Text(v=v) for v in cf.shared_items]),
            )
            for cf in self.cache_fields
        ]
        cache = CacheDefinition(
            refreshOnLoad=True,
            createdVersion=PIVOT_VERSION,
            refreshedVersion=PIVOT_VERSION,
            minRefreshableVersion=PIVOT_VERSION,
            recordCount=self.record_count,
            cacheSource=CacheSource(
                type="worksheet",
                worksheetSource=WorksheetSource(ref=source_ref, sheet=source_sheet),
            ),
            cacheFields=cache_fields,
        )
        cache.records = RecordList()
        return cache

    def _render_field(self, pf: PivotFieldModel) -> XlPivotField:
        items = [XlFieldItem(t=it.t, x=it.x, sd=it.sd) for it in pf.items]
        return XlPivotField(
            items=items,
            axis=pf.axis,
            dataField=True if pf.data_field else None,
            showAll=pf.show_all,
            topAutoShow=pf.top_auto_show,
            compact=pf.compact,
            outline=True,
            sortType=pf.sort_type,
        )

    def render(
        self,
        name: str,
        source_ref: str,
        source_sheet: str,
        style_name: str,
        anchor_row: int = 0,
        anchor_col: int = 0,
        cache_id: int = 1,
    ) -> TableDefinition:
        """
        Build the openpyxl pivot table over `source_ref` on `source_sheet`,
        anchored at the 0-based (anchor_row, anchor_col) cell.
        """
        self.check_invariants()

        top_left = f"{get_column_letter(anchor_col + 1)}{anchor_row + 1}"
        bottom_right = f"{get_column_letter(anchor_col + 2)}{anchor_row + 2}"
        location = Location(
            ref=f"{top_left}:{bottom_right}",
            firstHeaderRow=1,
            firstDataRow=1,
            firstDataCol=1,
            rowPageCount=len(self.page_fields) or None,
            colPageCount=1 if self.page_fields else None,
        )

        definition = TableDefinition(
            name=name,
            cacheId=cache_id,
            dataCaption="Values",
            updatedVersion=PIVOT_VERSION,
            minRefreshableVersion=PIVOT_VERSION,
            createdVersion=PIVOT_VERSION,
            indent=0,
            itemPrintTitles=True,
            useAutoFormatting=True,
            applyWidthHeightFormats=True,
            multipleFieldFilters=False,
            compact=True,
            compactData=True,
            outline=True,
            outlineData=True,
            location=location,
            pivotFields=[self._render_field(pf) for pf in self.pivot_fields],
            rowFields=[RowColField(x=i) for i in self.row_fields],
            colFields=[RowColField(x=i) for i in self.col_fields],
            pageFields=[PageField(fld=i, hier=-1) for i in self.page_fields],
            dataFields=[
                DataField(name=df.name, fld=df.index, subtotal=df.subtotal)
                for df in self.data_fields
            ],
            pivotTableStyleInfo=PivotTableStyle(
                name=style_name,
                showRowHeaders=True,
                showColHeaders=True,
                showRowStripes=False,
                showColStripes=False,
                showLastColumn=True,
            ),
        )
        definition.cache = self.render_cache(source_ref, source_sheet)
        return definition
