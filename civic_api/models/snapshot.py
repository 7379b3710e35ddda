"""JSON-safe row snapshots used as audit before/after state."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import inspect

# Maintained by the database, not by the action being recorded
UNTRACKED_COLUMNS = frozenset({"created_at", "updated_at"})


def _json_safe(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def row_snapshot(row, exclude=UNTRACKED_COLUMNS) -> dict:
    """Return a dict of column values for a mapped row."""
    snapshot = {}
    for attr in inspect(row).mapper.column_attrs:
        if attr.key in exclude:
            continue
        snapshot[attr.key] = _json_safe(getattr(row, attr.key))
    return snapshot
