"""
xlexport/exporter.py — Record stream to XLSX entry point.

Responsible for:
  - Validating the sink and the record stream
  - Resolving the column schema and writing the data table
  - Adding the optional pivot table
  - Saving the finished workbook to a path or a binary stream
  - Returning an ExportResult

The whole workbook is built in memory first. Nothing touches the sink until
the build has succeeded; a path sink is not even created before that.
"""
from __future__ import annotations

import logging
import os
from typing import Any, BinaryIO, Iterable, Optional, Sequence, Tuple, Union

from openpyxl import Workbook

from .errors import AppError, FILE_LOCKED, INVALID_ARGUMENT, SAVE_FAILED
from .formats import StyleCache
from .models import ExportResult, PivotSettings
from .pivot import create_pivot_table
from .records import RecordReader
from .schema import resolve_columns
from .settings import ExportConfig, apply_env_overrides, resolve_export_config
from .table import TableBuilder


logger = logging.getLogger(__name__)

Sink = Union[str, "os.PathLike[str]", BinaryIO]


def _is_path(sink: Any) -> bool:
    return isinstance(sink, (str, os.PathLike))


def _sink_label(sink: Any) -> str:
    if _is_path(sink):
        return os.fspath(sink)
    return getattr(sink, "name", type(sink).__name__)


# ── Build ─────────────────────────────────────────────────────────────────────

def build_workbook(
    records: Iterable[Any],
    excluded_columns: Optional[Iterable[str]] = None,
    included_columns: Optional[Sequence[str]] = None,
    pivot_settings: Optional[PivotSettings] = None,
    config: Optional[ExportConfig] = None,
    fields: Optional[Sequence[str]] = None,
    record_type: Optional[type] = None,
    styles: Optional[StyleCache] = None,
) -> Tuple[Workbook, ExportResult]:
    """
    Build the workbook in memory. Raises AppError; never writes anywhere.
    """
    if records is None:
        raise AppError(INVALID_ARGUMENT, "records must not be None", {"argument": "records"})

    cfg = resolve_export_config(config)
    settings = apply_env_overrides(pivot_settings)
    if styles is None:
        styles = cfg.new_style_cache()

    reader = RecordReader(records, fields=fields, record_type=record_type)
    columns = resolve_columns(reader.field_names, excluded_columns, included_columns)

    wb = Workbook()
    ws = wb.active
    ws.title = cfg.data_sheet_name

    table = TableBuilder(
        ws, columns, styles,
        table_id=cfg.table_id,
        table_name=cfg.table_name,
        display_name=cfg.table_display_name,
        table_style=cfg.table_style,
        width_factor=cfg.width_factor,
    )
    table.write_header()
    table.write_records(reader)
    region = table.finalize()

    result = ExportResult(
        data_sheet=ws.title,
        columns=[c.name for c in table.columns],
        rows_written=table.rows_written,
        table_ref=region.ref,
    )

    if settings is not None:
        info = create_pivot_table(wb, ws, region, table.columns, settings)
        result.pivot_sheet = info.sheet.title
        result.pivot_table = settings.table_name
        result.unresolved_labels = info.unresolved

    result.message = f"Wrote {result.records_written} record(s) to {ws.title}!{region.ref}"
    return wb, result


# ── Save ──────────────────────────────────────────────────────────────────────

def _save(wb: Workbook, sink: Any) -> None:
    label = _sink_label(sink)
    try:
        wb.save(sink)
    except PermissionError:
        raise AppError(
            FILE_LOCKED,
            f"Output file is open in another program: {label}",
            {"path": label},
        )
    except Exception as e:
        raise AppError(SAVE_FAILED, str(e), {"path": label})


def write_to_excel_table(
    sink: Sink,
    records: Iterable[Any],
    excluded_columns: Optional[Iterable[str]] = None,
    included_columns: Optional[Sequence[str]] = None,
    pivot_settings: Optional[PivotSettings] = None,
    leave_open: bool = False,
    config: Optional[ExportConfig] = None,
    fields: Optional[Sequence[str]] = None,
    record_type: Optional[type] = None,
) -> ExportResult:
    """
    Write `records` as a structured table (plus an optional pivot table) into
    an XLSX document at `sink`, a path or a writable binary stream.

    A stream sink is closed on every exit path unless leave_open is True, in
    which case it is flushed after a successful save.
    """
    if sink is None:
        raise AppError(INVALID_ARGUMENT, "sink must not be None", {"argument": "sink"})
    if records is None:
        raise AppError(INVALID_ARGUMENT, "records must not be None", {"argument": "records"})

    stream = None if _is_path(sink) else sink
    try:
        wb, result = build_workbook(
            records,
            excluded_columns=excluded_columns,
            included_columns=included_columns,
            pivot_settings=pivot_settings,
            config=config,
            fields=fields,
            record_type=record_type,
        )
        _save(wb, sink)
        if stream is not None and leave_open:
            stream.flush()
    finally:
        if stream is not None and not leave_open:
            stream.close()

    logger.info("%s -> %s", result.message, _sink_label(sink))
    return result
