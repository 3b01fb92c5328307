# src/ledgertable/core/table/index.py
"""Pure membership operations on a TableIndex.

Each function mutates the list in place and reports whether membership
changed, so callers can skip index writes that would be no-ops.
"""

from __future__ import annotations

from collections.abc import Iterable

from ledgertable.contracts.table import TableIndex


def append_ids(index: TableIndex, ids: Iterable[str]) -> bool:
    before = len(index)
    index.extend(ids)
    return len(index) != before


def replace_id(index: TableIndex, original_id: str, new_id: str) -> bool:
    """Replace the first occurrence of original_id in place, else append new_id."""
    try:
        position = index.index(original_id)
    except ValueError:
        index.append(new_id)
    else:
        index[position] = new_id
    return True


def remove_ids(index: TableIndex, ids: Iterable[str]) -> list[str]:
    """Splice out the first occurrence of each id.

    Returns:
        The ids that were found and removed, in request order
    """
    removed = []
    for record_id in ids:
        try:
            index.remove(record_id)
        except ValueError:
            continue
        removed.append(record_id)
    return removed


def validate_index(data: object) -> TableIndex:
    """Check a decoded payload is a list of record ids.

    Raises:
        ValueError: If data is not a list of strings
    """
    if not isinstance(data, list) or not all(isinstance(record_id, str) for record_id in data):
        raise ValueError("Table index must be a list of strings")
    return list(data)
