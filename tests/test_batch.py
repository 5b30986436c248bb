"""
test_batch.py — Unit tests for xlexport.batch (run_exports).

Covers:
  - Jobs run in order, each result named after its job
  - Fail-fast on first error
  - Progress callback emission
  - A failing progress callback never breaks the run
  - Generator input, empty iterable
"""
from __future__ import annotations

import os
from io import BytesIO
from tempfile import TemporaryDirectory

from openpyxl import load_workbook

from xlexport.batch import ExportJob, run_exports
from xlexport.errors import UNCLASSIFIABLE_VALUE
from xlexport.models import ColumnLabel, PivotSettings, RowLabel


ROWS = [{"ID": 1, "NAME": "Alpha"}, {"ID": 2, "NAME": "Beta"}]


class _Opaque:
    pass


def test_run_exports_two_jobs():
    with TemporaryDirectory() as td:
        a = os.path.join(td, "a.xlsx")
        b = os.path.join(td, "b.xlsx")
        report = run_exports([
            ExportJob("first", a, ROWS),
            ExportJob(
                "second", b, ROWS,
                pivot_settings=PivotSettings(
                    row_labels=[RowLabel("NAME")],
                    column_labels=[ColumnLabel("ID", "sum")],
                ),
            ),
        ])
        assert report.ok
        assert not report.has_errors
        assert [r.name for r in report.results] == ["first", "second"]
        assert load_workbook(a).sheetnames == ["DATA"]
        assert load_workbook(b).sheetnames == ["DATA", "PIVOT"]


def test_run_exports_fail_fast():
    with TemporaryDirectory() as td:
        bad = os.path.join(td, "bad.xlsx")
        never = os.path.join(td, "never.xlsx")
        report = run_exports([
            ExportJob("bad", bad, [{"BLOB": _Opaque()}]),
            ExportJob("never", never, ROWS),
        ])
        assert not report.ok
        assert report.has_errors
        assert len(report.results) == 1
        assert report.results[0].name == "bad"
        assert report.results[0].error_code == UNCLASSIFIABLE_VALUE
        assert not os.path.exists(bad)
        assert not os.path.exists(never)


def test_run_exports_progress_events():
    events = []
    buf = BytesIO()
    report = run_exports(
        [ExportJob("mem", buf, ROWS, leave_open=True)],
        on_progress=lambda ev, payload: events.append((ev, payload)),
    )
    assert [e for e, _ in events] == ["start", "result", "done"]
    assert events[0][1] == {"name": "mem"}
    assert events[1][1].records_written == 2
    assert events[2][1] is report
    assert not buf.closed


def test_run_exports_error_event():
    events = []
    run_exports(
        [ExportJob("bad", BytesIO(), [{"BLOB": _Opaque()}])],
        on_progress=lambda ev, payload: events.append(ev),
    )
    assert events == ["start", "error", "done"]


def test_failing_progress_callback_is_ignored():
    def boom(event, payload):
        raise RuntimeError("callback broke")

    report = run_exports([ExportJob("mem", BytesIO(), ROWS)], on_progress=boom)
    assert report.ok
    assert len(report.results) == 1


def test_run_exports_generator_and_empty():
    jobs = (ExportJob(f"j{i}", BytesIO(), ROWS) for i in range(3))
    assert len(run_exports(jobs).results) == 3
    empty = run_exports([])
    assert empty.ok
    assert empty.results == []


def test_run_exports_reports_control_character_and_stops():
    never = BytesIO()
    report = run_exports([
        ExportJob("bell", BytesIO(), [{"A": "bell\x07"}]),
        ExportJob("never", never, ROWS, leave_open=True),
    ])
    assert not report.ok
    assert len(report.results) == 1
    assert report.results[0].error_code == UNCLASSIFIABLE_VALUE
    assert report.results[0].error_details["column"] == "A"
    assert never.getvalue() == b""


def test_run_exports_reports_overlong_text():
    report = run_exports([ExportJob("long", BytesIO(), [{"NOTE": "x" * 40000}])])
    assert not report.ok
    assert report.results[0].error_code == UNCLASSIFIABLE_VALUE
