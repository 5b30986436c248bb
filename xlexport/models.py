from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

from openpyxl.utils import get_column_letter

from .errors import AppError, BAD_SETTINGS


AxisName = Literal["row", "column"]
SortOrder = Literal["ascending", "descending"]
Aggregation = Literal[
    "sum", "average", "count", "countNums", "max", "min",
    "product", "stdDev", "stdDevp", "var", "varp",
]

AXES: Tuple[str, ...] = ("row", "column")
SORT_ORDERS: Tuple[str, ...] = ("ascending", "descending")
AGGREGATIONS: Tuple[str, ...] = (
    "sum", "average", "count", "countNums", "max", "min",
    "product", "stdDev", "stdDevp", "var", "varp",
)

DEFAULT_AGGREGATION = "count"
DEFAULT_PIVOT_STYLE = "PivotStyleDark2"
FALLBACK_PIVOT_STYLE = "PivotStyleLight16"   # used when table_style is None


# ---- Data table ----

@dataclass
class Column:
    """
    One output column of the data table.
    width only grows while rows are written (character count estimate).
    source_index is the field position in the record stream.
    """
    name: str
    position: int
    width: int
    source_index: int = 0


@dataclass(frozen=True)
class TableRegion:
    first_row: int          # 0-based
    first_col: int          # 0-based
    last_row: int
    last_col: int
    row_count: int          # header + records
    column_count: int

    @property
    def record_count(self) -> int:
        return self.row_count - 1

    @property
    def ref(self) -> str:
        """A1-style reference, e.g. 'A1:D11'."""
        start = f"{get_column_letter(self.first_col + 1)}{self.first_row + 1}"
        end = f"{get_column_letter(self.last_col + 1)}{self.last_row + 1}"
        return f"{start}:{end}"


# ---- Pivot configuration ----

@dataclass
class RowLabel:
    """
    A field placed on the row axis. axis="column" moves it to the column axis
    after it has been added as a row field.
    """
    name: str
    axis: AxisName = "row"
    sort_order: SortOrder = "ascending"
    collapsed: bool = True


@dataclass
class ColumnLabel:
    """
    A field aggregated in the values area.
    caption blank means "<Function> of <name>".
    """
    name: str
    aggregation: Aggregation = "count"
    caption: Optional[str] = None


@dataclass
class PivotSettings:
    row_labels: List[RowLabel] = field(default_factory=list)
    column_labels: List[ColumnLabel] = field(default_factory=list)
    filter_labels: List[str] = field(default_factory=list)
    table_style: Optional[str] = DEFAULT_PIVOT_STYLE
    sheet_name: str = "PIVOT"
    table_name: str = "PivotTable"
    strict_labels: bool = False       # raise on label names with no matching column

    def label_names(self) -> List[Tuple[str, str]]:
        """All configured label names as (role, name) pairs, in processing order."""
        out = [("row", lbl.name) for lbl in self.row_labels]
        out.extend(("column", lbl.name) for lbl in self.column_labels)
        out.extend(("filter", name) for name in self.filter_labels)
        return out

    # ---------- Serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PivotSettings":
        if not isinstance(data, dict):
            raise AppError(BAD_SETTINGS, "Pivot settings must be an object", {"type": type(data).__name__})

        try:
            row_labels = [RowLabel(**d) for d in data.get("row_labels", [])]
            column_labels = [ColumnLabel(**d) for d in data.get("column_labels", [])]
        except TypeError as e:
            raise AppError(BAD_SETTINGS, f"Malformed pivot label: {e}") from e

        for lbl in row_labels:
            if lbl.axis not in AXES:
                raise AppError(BAD_SETTINGS, f"Bad row label axis: {lbl.axis!r}", {"label": lbl.name})
            if lbl.sort_order not in SORT_ORDERS:
                raise AppError(BAD_SETTINGS, f"Bad sort order: {lbl.sort_order!r}", {"label": lbl.name})
        for lbl in column_labels:
            if lbl.aggregation not in AGGREGATIONS:
                raise AppError(BAD_SETTINGS, f"Bad aggregation: {lbl.aggregation!r}", {"label": lbl.name})

        return cls(
            row_labels=row_labels,
            column_labels=column_labels,
            filter_labels=[str(n) for n in data.get("filter_labels", [])],
            table_style=data.get("table_style", DEFAULT_PIVOT_STYLE),
            sheet_name=data.get("sheet_name", "PIVOT"),
            table_name=data.get("table_name", "PivotTable"),
            strict_labels=bool(data.get("strict_labels", False)),
        )

    # ---------- File IO ----------

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, path: str) -> "PivotSettings":
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise AppError(BAD_SETTINGS, f"Invalid JSON in {path}: {e.msg}", {"line": e.lineno}) from e
        return cls.from_dict(data)


# ---- Run reporting ----

@dataclass
class ExportResult:
    data_sheet: str
    columns: List[str]
    rows_written: int                 # header + records
    table_ref: str
    pivot_sheet: Optional[str] = None
    pivot_table: Optional[str] = None
    unresolved_labels: List[Tuple[str, str]] = field(default_factory=list)
    message: str = ""
    name: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None

    @property
    def records_written(self) -> int:
        return max(self.rows_written - 1, 0)


@dataclass
class ExportReport:
    """
    Returned by batch.run_exports. Callers render this; tests can assert it.
    """
    ok: bool
    results: List[ExportResult] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(r.error_code for r in self.results)
