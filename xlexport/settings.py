"""
xlexport/settings.py — Export configuration and environment overrides.

Priority for every setting:
  1) XLEXPORT_* environment variable (when set and non-blank)
  2) value passed in by the caller
  3) ExportConfig default
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Dict, Optional

from .errors import AppError, BAD_SETTINGS
from .formats import ValueKind, StyleCache
from .models import PivotSettings


ENV_DATA_SHEET = "XLEXPORT_DATA_SHEET"
ENV_WIDTH_FACTOR = "XLEXPORT_WIDTH_FACTOR"
ENV_DATE_FORMAT = "XLEXPORT_DATE_FORMAT"
ENV_STRICT_LABELS = "XLEXPORT_STRICT_LABELS"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


@dataclass
class ExportConfig:
    data_sheet_name: str = "DATA"
    table_id: int = 1
    table_name: str = "Data"
    table_display_name: str = "MYTABLE"
    table_style: str = "TableStyleMedium16"
    width_factor: float = 1.25
    date_format: str = "dd/mm/yyyy"
    styled_cells: bool = True

    def number_formats(self) -> Dict[ValueKind, str]:
        return {ValueKind.DATETIME: self.date_format}

    def new_style_cache(self) -> Optional[StyleCache]:
        """Fresh per-build style cache, or None when cells stay unstyled."""
        if not self.styled_cells:
            return None
        return StyleCache(self.number_formats())


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str) -> Optional[bool]:
    value = _env(name)
    if value is None:
        return None
    if value.lower() in _TRUE:
        return True
    if value.lower() in _FALSE:
        return False
    raise AppError(BAD_SETTINGS, f"{name} must be true or false, got {value!r}", {"env": name})


def resolve_export_config(config: Optional[ExportConfig] = None) -> ExportConfig:
    """Copy of `config` (or the defaults) with environment overrides applied."""
    cfg = replace(config) if config is not None else ExportConfig()

    sheet = _env(ENV_DATA_SHEET)
    if sheet is not None:
        cfg.data_sheet_name = sheet

    factor = _env(ENV_WIDTH_FACTOR)
    if factor is not None:
        try:
            cfg.width_factor = float(factor)
        except ValueError:
            raise AppError(BAD_SETTINGS, f"{ENV_WIDTH_FACTOR} must be a number, got {factor!r}", {"env": ENV_WIDTH_FACTOR})

    date_format = _env(ENV_DATE_FORMAT)
    if date_format is not None:
        cfg.date_format = date_format

    if cfg.width_factor <= 0:
        raise AppError(BAD_SETTINGS, f"Width factor must be positive, got {cfg.width_factor}")
    if not cfg.data_sheet_name:
        raise AppError(BAD_SETTINGS, "Data sheet name is blank")
    return cfg


def apply_env_overrides(settings: Optional[PivotSettings]) -> Optional[PivotSettings]:
    """Copy of `settings` with XLEXPORT_STRICT_LABELS applied. None stays None."""
    if settings is None:
        return None
    strict = _env_bool(ENV_STRICT_LABELS)
    if strict is None:
        return settings
    return replace(settings, strict_labels=strict)


def save_pivot_settings_json(settings: PivotSettings, path: str) -> None:
    settings.save_json(path)


def load_pivot_settings_json(path: str) -> PivotSettings:
    return PivotSettings.load_json(path)
