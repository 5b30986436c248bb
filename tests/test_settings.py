"""
test_settings.py — Tests for xlexport.settings and PivotSettings serialization.
"""
from __future__ import annotations

import json
import os
from tempfile import TemporaryDirectory

import pytest

from xlexport.errors import AppError, BAD_SETTINGS
from xlexport.formats import ValueKind
from xlexport.models import ColumnLabel, PivotSettings, RowLabel
from xlexport.settings import (
    ENV_DATA_SHEET,
    ENV_DATE_FORMAT,
    ENV_STRICT_LABELS,
    ENV_WIDTH_FACTOR,
    ExportConfig,
    apply_env_overrides,
    load_pivot_settings_json,
    resolve_export_config,
    save_pivot_settings_json,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (ENV_DATA_SHEET, ENV_WIDTH_FACTOR, ENV_DATE_FORMAT, ENV_STRICT_LABELS):
        monkeypatch.delenv(name, raising=False)


def _settings():
    return PivotSettings(
        row_labels=[RowLabel("NAME"), RowLabel("REGION", axis="column", sort_order="descending", collapsed=False)],
        column_labels=[ColumnLabel("AMOUNT", "sum"), ColumnLabel("ID", caption="Orders")],
        filter_labels=["YEAR"],
        table_style=None,
        sheet_name="Summary",
        table_name="SalesPivot",
        strict_labels=True,
    )


# ══════════════════════════════════════════════════════════════════════════════
# EXPORT CONFIG
# ══════════════════════════════════════════════════════════════════════════════

def test_export_config_defaults():
    cfg = resolve_export_config()
    assert cfg == ExportConfig()
    assert cfg.data_sheet_name == "DATA"
    assert cfg.width_factor == 1.25
    assert cfg.table_display_name == "MYTABLE"


def test_resolve_does_not_mutate_input(monkeypatch):
    monkeypatch.setenv(ENV_DATA_SHEET, "Rows")
    base = ExportConfig()
    cfg = resolve_export_config(base)
    assert cfg.data_sheet_name == "Rows"
    assert base.data_sheet_name == "DATA"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv(ENV_WIDTH_FACTOR, "1.5")
    monkeypatch.setenv(ENV_DATE_FORMAT, "yyyy-mm-dd")
    cfg = resolve_export_config(ExportConfig(data_sheet_name="Mine"))
    assert cfg.width_factor == 1.5
    assert cfg.date_format == "yyyy-mm-dd"
    assert cfg.data_sheet_name == "Mine"


def test_blank_env_is_ignored(monkeypatch):
    monkeypatch.setenv(ENV_DATA_SHEET, "   ")
    assert resolve_export_config().data_sheet_name == "DATA"


def test_bad_width_factor_env(monkeypatch):
    monkeypatch.setenv(ENV_WIDTH_FACTOR, "wide")
    with pytest.raises(AppError) as ei:
        resolve_export_config()
    assert ei.value.code == BAD_SETTINGS


def test_non_positive_width_factor():
    with pytest.raises(AppError) as ei:
        resolve_export_config(ExportConfig(width_factor=0))
    assert ei.value.code == BAD_SETTINGS


def test_style_cache_from_config():
    styles = ExportConfig(date_format="dd/mm/yyyy hh:mm").new_style_cache()
    assert styles.number_format(ValueKind.DATETIME) == "dd/mm/yyyy hh:mm"
    assert ExportConfig(styled_cells=False).new_style_cache() is None


# ══════════════════════════════════════════════════════════════════════════════
# PIVOT SETTINGS
# ══════════════════════════════════════════════════════════════════════════════

def test_strict_labels_env(monkeypatch):
    monkeypatch.setenv(ENV_STRICT_LABELS, "yes")
    out = apply_env_overrides(PivotSettings())
    assert out.strict_labels is True
    monkeypatch.setenv(ENV_STRICT_LABELS, "0")
    assert apply_env_overrides(PivotSettings(strict_labels=True)).strict_labels is False


def test_strict_labels_env_invalid(monkeypatch):
    monkeypatch.setenv(ENV_STRICT_LABELS, "maybe")
    with pytest.raises(AppError) as ei:
        apply_env_overrides(PivotSettings())
    assert ei.value.code == BAD_SETTINGS


def test_apply_env_overrides_none():
    assert apply_env_overrides(None) is None


def test_pivot_settings_dict_round_trip():
    s = _settings()
    assert PivotSettings.from_dict(s.to_dict()) == s


def test_pivot_settings_from_dict_defaults():
    s = PivotSettings.from_dict({"row_labels": [{"name": "NAME"}]})
    assert s.row_labels == [RowLabel("NAME")]
    assert s.table_style == "PivotStyleDark2"
    assert s.sheet_name == "PIVOT"
    assert s.strict_labels is False


@pytest.mark.parametrize("data", [
    {"row_labels": [{"name": "A", "axis": "diagonal"}]},
    {"row_labels": [{"name": "A", "sort_order": "random"}]},
    {"column_labels": [{"name": "A", "aggregation": "median"}]},
    {"row_labels": [{"name": "A", "colour": "red"}]},
    ["not", "an", "object"],
])
def test_pivot_settings_from_dict_rejects_bad_values(data):
    with pytest.raises(AppError) as ei:
        PivotSettings.from_dict(data)
    assert ei.value.code == BAD_SETTINGS


def test_pivot_settings_json_round_trip():
    with TemporaryDirectory() as td:
        path = os.path.join(td, "pivot.json")
        save_pivot_settings_json(_settings(), path)
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        assert raw["sheet_name"] == "Summary"
        assert load_pivot_settings_json(path) == _settings()


def test_pivot_settings_json_invalid():
    with TemporaryDirectory() as td:
        path = os.path.join(td, "pivot.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write("{not json")
        with pytest.raises(AppError) as ei:
            load_pivot_settings_json(path)
        assert ei.value.code == BAD_SETTINGS
