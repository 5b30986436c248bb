"""
xlexport/batch.py — Batch export coordinator.

Responsible for:
  - Running ExportJobs in the given order
  - A fresh StyleCache per job (builds never share styles)
  - Fail-fast on first error
  - Emitting optional progress callbacks

This module has NO knowledge of table or pivot logic. It delegates entirely
to exporter.write_to_excel_table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .errors import AppError
from .exporter import Sink, write_to_excel_table
from .models import ExportReport, ExportResult, PivotSettings
from .settings import ExportConfig


logger = logging.getLogger(__name__)


@dataclass
class ExportJob:
    name: str
    sink: Sink
    records: Iterable[Any]
    excluded_columns: List[str] = field(default_factory=list)
    included_columns: List[str] = field(default_factory=list)
    pivot_settings: Optional[PivotSettings] = None
    leave_open: bool = False
    config: Optional[ExportConfig] = None
    fields: Optional[Sequence[str]] = None


def run_exports(
    jobs: Iterable[ExportJob],
    on_progress: Optional[Callable[[str, Any], None]] = None,
) -> ExportReport:
    """
    Execute all jobs in order. Fail-fast on first error: remaining jobs are
    not executed and their sinks are left untouched.
    """
    results: List[ExportResult] = []
    ok = True

    def _emit(event: str, payload: Any) -> None:
        if on_progress is not None:
            try:
                on_progress(event, payload)
            except Exception:
                logger.debug("progress callback failed for %r", event, exc_info=True)

    for job in jobs:
        _emit("start", {"name": job.name})

        try:
            result = write_to_excel_table(
                job.sink,
                job.records,
                excluded_columns=job.excluded_columns,
                included_columns=job.included_columns,
                pivot_settings=job.pivot_settings,
                leave_open=job.leave_open,
                config=job.config,
                fields=job.fields,
            )
        except AppError as e:
            result = ExportResult(
                data_sheet="",
                columns=[],
                rows_written=0,
                table_ref="",
                name=job.name,
                message=str(e),
                error_code=e.code,
                error_message=e.message,
                error_details=e.details,
            )
            results.append(result)
            _emit("error", result)
            ok = False
            logger.warning("export %r failed: %s", job.name, e)
            break

        result.name = job.name
        results.append(result)
        _emit("result", result)

    report = ExportReport(ok=ok, results=results)
    _emit("done", report)
    return report
