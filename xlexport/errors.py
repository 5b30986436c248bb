from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AppError(Exception):
    """
    Error with a short code and structured details.
    Raise AppError from xlexport modules; callers display .message and .details.
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} ({self.details})"
        return f"{self.code}: {self.message}"


# ── Error codes (keep stable for tests and callers) ───────────────────────────

INVALID_ARGUMENT       = "INVALID_ARGUMENT"
EMPTY_SCHEMA           = "EMPTY_SCHEMA"
UNCLASSIFIABLE_VALUE   = "UNCLASSIFIABLE_VALUE"
UNRESOLVED_PIVOT_LABEL = "UNRESOLVED_PIVOT_LABEL"
PIVOT_INVARIANT_BROKEN = "PIVOT_INVARIANT_BROKEN"
BAD_SETTINGS           = "BAD_SETTINGS"
FILE_LOCKED            = "FILE_LOCKED"
SAVE_FAILED            = "SAVE_FAILED"


# ── Friendly message lookup ───────────────────────────────────────────────────

def friendly_message(e: AppError) -> str:
    """
    Return a plain-English one-liner suitable for a log line or a dialog.
    Never exposes raw tracebacks.
    """
    code = e.code
    msg  = e.message or ""
    details = e.details or {}

    if code == INVALID_ARGUMENT:
        name = details.get("argument", "")
        if name:
            return f"Missing required input: {name}."
        return "A required input (records or output) was not provided."

    if code == EMPTY_SCHEMA:
        return "There are no writable columns. Check the included/excluded column names."

    if code == UNCLASSIFIABLE_VALUE:
        column = details.get("column", "")
        type_name = details.get("type", "")
        parts = ["A value could not be written to the spreadsheet."]
        if column:
            parts.append(f"Column: {column}.")
        if type_name:
            parts.append(f"Type: {type_name}.")
        reason = details.get("reason", "")
        if reason:
            parts.append(f"Reason: {reason}.")
        else:
            parts.append("Convert it to text, a number, a date or a boolean first.")
        return " ".join(parts)

    if code == UNRESOLVED_PIVOT_LABEL:
        names = details.get("labels", [])
        if names:
            return f"Pivot labels do not match any column: {', '.join(names)}."
        return f"A pivot label does not match any column.\n({msg})"

    if code == PIVOT_INVARIANT_BROKEN:
        return f"The pivot table could not be built consistently.\n({msg})"

    if code == BAD_SETTINGS:
        return f"Invalid setting. Please check your configuration.\n({msg})"

    if code == FILE_LOCKED:
        fname = ""
        if "path" in details:
            fname = f" ({os.path.basename(details['path'])})"
        return f"File is open in another program{fname}. Close it and try again."

    if code == SAVE_FAILED:
        fname = ""
        if "path" in details:
            fname = f" ({os.path.basename(details['path'])})"
        if "permission" in msg.lower() or "locked" in msg.lower() or "access" in msg.lower():
            return f"Could not save, the file is open in another program{fname}. Close it and try again."
        return f"Could not save the spreadsheet{fname}. Check that the path is valid and the folder exists."

    # Fallback: first line of the raw message only
    clean = msg.splitlines()[0] if msg else "An unexpected error occurred."
    return clean
