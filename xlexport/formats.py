"""
xlexport/formats.py — Value classification, cell setters and per-build styles.

Every cell value maps to exactly one ValueKind. The setter branches over the
closed kind set; UNKNOWN is the failing arm and aborts the build.

Styles are openpyxl NamedStyle objects. StyleCache hands out ONE object per
kind per build: the workbook registers a named style the first time a cell
uses it and every later cell of the same kind reuses the same registration.
A StyleCache must never outlive the workbook it was used with.
"""
from __future__ import annotations

import datetime as dt
import numbers
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from openpyxl.cell.cell import Cell
from openpyxl.styles import NamedStyle
from openpyxl.utils.exceptions import IllegalCharacterError

from .errors import AppError, UNCLASSIFIABLE_VALUE


class ValueKind(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    IDENTIFIER = "identifier"
    UNKNOWN = "unknown"


NUMBER_FORMATS: Dict[ValueKind, str] = {
    ValueKind.INTEGER: "#,##0",
    ValueKind.FLOAT: "#,##0.00",
    ValueKind.DATETIME: "dd/mm/yyyy",
    ValueKind.TEXT: "@",
    ValueKind.IDENTIFIER: "@",
    ValueKind.BOOLEAN: "General",
}

MAX_TEXT_LENGTH = 32767          # characters a cell can hold


def _has_own_str(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def classify_value(value: Any) -> ValueKind:
    # bool is an Integral, test it first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, numbers.Integral):
        return ValueKind.INTEGER
    if isinstance(value, (float, Decimal, numbers.Real)):
        return ValueKind.FLOAT
    if isinstance(value, (dt.datetime, dt.date)):
        return ValueKind.DATETIME
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, uuid.UUID):
        return ValueKind.IDENTIFIER
    if _has_own_str(value):
        return ValueKind.TEXT
    return ValueKind.UNKNOWN


def _naive(value: dt.date) -> dt.date:
    """Excel has no timezones: aware datetimes become naive UTC."""
    if isinstance(value, dt.datetime) and value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def native_value(kind: ValueKind, value: Any) -> Any:
    """Convert a classified value into what openpyxl stores for that kind."""
    if kind is ValueKind.INTEGER:
        return int(value)
    if kind is ValueKind.FLOAT:
        return float(value)
    if kind is ValueKind.DATETIME:
        return _naive(value)
    if kind is ValueKind.BOOLEAN:
        return bool(value)
    if kind is ValueKind.TEXT:
        return value if isinstance(value, str) else str(value)
    if kind is ValueKind.IDENTIFIER:
        return str(value)
    raise AppError(
        UNCLASSIFIABLE_VALUE,
        f"No cell format for values of type {type(value).__name__}",
        {"type": type(value).__name__},
    )


def cell_text(value: Any) -> str:
    """Textual form of a cell value, as used for widths and pivot items."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


class StyleCache:
    """
    One NamedStyle per ValueKind, created lazily, owned by a single build.
    """

    def __init__(self, formats: Optional[Mapping[ValueKind, str]] = None, prefix: str = "xlexport"):
        self._formats: Dict[ValueKind, str] = dict(NUMBER_FORMATS)
        if formats:
            self._formats.update(formats)
        self._prefix = prefix
        self._styles: Dict[ValueKind, NamedStyle] = {}

    def number_format(self, kind: ValueKind) -> str:
        try:
            return self._formats[kind]
        except KeyError:
            raise AppError(UNCLASSIFIABLE_VALUE, f"No number format for kind {kind.value!r}")

    def get(self, kind: ValueKind) -> NamedStyle:
        style = self._styles.get(kind)
        if style is None:
            style = NamedStyle(
                name=f"{self._prefix} {kind.value}",
                number_format=self.number_format(kind),
            )
            self._styles[kind] = style
        return style

    def __contains__(self, kind: ValueKind) -> bool:
        return kind in self._styles

    def __len__(self) -> int:
        return len(self._styles)


def write_value(
    cell: Cell,
    value: Any,
    styles: Optional[StyleCache] = None,
    kind: Optional[ValueKind] = None,
) -> ValueKind:
    """
    Write value into cell with its native type. When styles is given the
    cached style of the value's kind is attached as well.

    Raises AppError(UNCLASSIFIABLE_VALUE) for UNKNOWN values, for text longer
    than MAX_TEXT_LENGTH and for text with characters the file format cannot
    hold. The cell is left untouched in those cases.
    """
    if kind is None:
        kind = classify_value(value)
    if kind is ValueKind.UNKNOWN:
        raise AppError(
            UNCLASSIFIABLE_VALUE,
            f"Cannot write value of type {type(value).__name__} at {cell.coordinate}",
            {"type": type(value).__name__, "cell": cell.coordinate},
        )
    native = native_value(kind, value)
    details = {"type": type(value).__name__, "cell": cell.coordinate}
    if isinstance(native, str) and len(native) > MAX_TEXT_LENGTH:
        raise AppError(
            UNCLASSIFIABLE_VALUE,
            f"Text of {len(native)} characters at {cell.coordinate} exceeds {MAX_TEXT_LENGTH}",
            dict(details, reason=f"text longer than {MAX_TEXT_LENGTH} characters"),
        )
    try:
        cell.value = native
    except IllegalCharacterError as e:
        raise AppError(
            UNCLASSIFIABLE_VALUE,
            f"Text at {cell.coordinate} contains control characters: {e}",
            dict(details, reason="text contains control characters"),
        ) from e
    if kind in (ValueKind.TEXT, ValueKind.IDENTIFIER) and cell.data_type == "f":
        cell.data_type = "s"      # record text is never a formula
    if styles is not None:
        cell.style = styles.get(kind)
    return kind
