"""
xlexport/records.py — Forward-only reader over an in-memory record stream.

The reader exposes the field list before the first row is read:
  - from an explicit `fields` sequence,
  - from `record_type` (a dataclass or named tuple class),
  - or by peeking at the first record (the peeked record is NOT lost).

Records may be mappings, dataclass instances, named tuples or plain objects
with public attributes. A record that lacks a field simply has no value for it
(has_value() is False); nothing is padded.
"""
from __future__ import annotations

import dataclasses
import itertools
from collections.abc import Mapping
from typing import Any, Iterable, Iterator, List, Optional, Sequence

from .errors import AppError, INVALID_ARGUMENT


_MISSING = object()


def field_names_of_type(record_type: type) -> List[str]:
    if dataclasses.is_dataclass(record_type):
        return [f.name for f in dataclasses.fields(record_type)]
    fields = getattr(record_type, "_fields", None)
    if fields is not None:
        return list(fields)
    raise AppError(
        INVALID_ARGUMENT,
        f"Cannot discover fields of type {record_type.__name__}",
        {"argument": "record_type"},
    )


def field_names_of(record: Any) -> List[str]:
    if isinstance(record, Mapping):
        return [str(k) for k in record.keys()]
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return [f.name for f in dataclasses.fields(record)]
    fields = getattr(record, "_fields", None)
    if fields is not None:
        return list(fields)
    try:
        attrs = vars(record)
    except TypeError:
        raise AppError(
            INVALID_ARGUMENT,
            f"Cannot discover fields of {type(record).__name__} records",
            {"argument": "records"},
        )
    return [k for k in attrs if not k.startswith("_")]


def _lookup(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, _MISSING)
    return getattr(record, name, _MISSING)


class RecordReader:
    """
    Forward-only cursor: read() advances and returns False at the end.
    Values of the current record are read by field position.
    """

    def __init__(
        self,
        records: Iterable[Any],
        fields: Optional[Sequence[str]] = None,
        record_type: Optional[type] = None,
    ):
        if records is None:
            raise AppError(INVALID_ARGUMENT, "records must not be None", {"argument": "records"})

        self._iter: Iterator[Any] = iter(records)

        if fields is not None:
            names = [str(f) for f in fields]
        elif record_type is not None:
            names = field_names_of_type(record_type)
        else:
            names = []
            for first in self._iter:
                names = field_names_of(first)
                self._iter = itertools.chain([first], self._iter)
                break

        self._names: List[str] = names
        self._current: Any = _MISSING
        self._done = False
        self.records_read = 0

    @property
    def field_count(self) -> int:
        return len(self._names)

    @property
    def field_names(self) -> List[str]:
        return list(self._names)

    def get_name(self, index: int) -> str:
        return self._names[index]

    def read(self) -> bool:
        if self._done:
            return False
        for record in self._iter:
            self._current = record
            self.records_read += 1
            return True
        self._current = _MISSING
        self._done = True
        return False

    def _require_record(self) -> Any:
        if self._current is _MISSING:
            raise AppError(INVALID_ARGUMENT, "No current record; call read() first")
        return self._current

    def has_value(self, index: int) -> bool:
        record = self._require_record()
        return _lookup(record, self._names[index]) is not _MISSING

    def get_value(self, index: int) -> Any:
        """Value of field `index` in the current record; None when absent."""
        record = self._require_record()
        value = _lookup(record, self._names[index])
        return None if value is _MISSING else value
