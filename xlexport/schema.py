from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .errors import AppError, EMPTY_SCHEMA
from .models import Column


HEADER_PADDING = 4


def resolve_columns(
    field_names: Sequence[str],
    excluded: Optional[Iterable[str]] = None,
    included: Optional[Sequence[str]] = None,
) -> List[Column]:
    """
    Build the ordered column schema from the record stream's field names.

    included given -> exactly those names that exist, in caller order
                      (unknown names and duplicates are dropped silently).
    otherwise      -> every field in declared order minus `excluded`.
                      An empty inclusion list counts as "not given".

    Positions are renumbered densely from 0. Raises AppError(EMPTY_SCHEMA)
    when nothing is left to write.
    """
    source_index = {}
    for i, name in enumerate(field_names):
        source_index.setdefault(name, i)

    if included:
        names: List[str] = []
        for name in included:
            if name in source_index and name not in names:
                names.append(name)
    else:
        skip = set(excluded or ())
        names = [n for n in source_index if n not in skip]

    if not names:
        raise AppError(
            EMPTY_SCHEMA,
            "There are no writable columns",
            {"fields": list(field_names)},
        )

    return [
        Column(
            name=name,
            position=pos,
            width=len(name) + HEADER_PADDING,
            source_index=source_index[name],
        )
        for pos, name in enumerate(names)
    ]
