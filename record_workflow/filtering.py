"""Record filtering: client-side search/status selection and server filter evaluation."""

import operator
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timezone
from typing import Any

from record_workflow.models import FieldFilter, OrderBy, Record

ALL_STATUSES = "all"

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
    "not-in": lambda value, options: value not in options,
}

SUPPORTED_OPS = frozenset(_COMPARISONS)


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def matches_search(record: Record, search_term: str, search_fields: Sequence[str]) -> bool:
    """Return True if the term is a case-insensitive substring of any search field."""
    if not search_term:
        return True
    needle = search_term.lower()
    for name in search_fields:
        text = _text(record.get(name))
        if text is not None and needle in text.lower():
            return True
    return False


def apply_client_filter(
    records: list[Record],
    search_term: str = "",
    status_filter: str = ALL_STATUSES,
    search_fields: Sequence[str] = (),
) -> list[Record]:
    """Select the records matching a search term and a status filter.

    The search term is matched case-insensitively as a substring against each of
    ``search_fields`` (OR'd). The status filter is an exact match; ``"all"``
    disables it. Input order is preserved and the input list is never mutated.

    Args:
        records: Current snapshot
        search_term: Free text typed by the user
        status_filter: Status tag or ``"all"``
        search_fields: Document field names to search

    Returns:
        The matching records, in input order
    """
    if status_filter == ALL_STATUSES and not search_term:
        return records
    return [
        record
        for record in records
        if (status_filter == ALL_STATUSES or record.status == status_filter)
        and matches_search(record, search_term, search_fields)
    ]


def matches_filter(record: Record, constraint: FieldFilter) -> bool:
    """Evaluate one server-side constraint against a record."""
    try:
        compare = _COMPARISONS[constraint.op]
    except KeyError:
        raise ValueError(f"Unsupported filter operator: '{constraint.op}'") from None
    value = record.get(constraint.field)
    try:
        return bool(compare(value, constraint.value))
    except TypeError:
        # Ordering comparisons against missing or mismatched values never match
        return False


def matches_filters(record: Record, filters: Iterable[FieldFilter] | None) -> bool:
    """Return True if the record satisfies every constraint."""
    return all(matches_filter(record, constraint) for constraint in filters or ())


def _sort_key(value: Any) -> tuple[int, Any]:
    """Order key that stays comparable across the value types a field may hold.

    Numbers sort before dates, dates before text, and anything else by its text.
    A ``date`` counts as midnight UTC and a naive ``datetime`` as UTC.
    """
    if isinstance(value, (int, float)):
        return (0, float(value))
    if isinstance(value, datetime):
        return (1, value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc))
    if isinstance(value, date):
        return (1, datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    if isinstance(value, str):
        return (2, value)
    return (3, str(value))


def sort_records(records: Iterable[Record], order_by: OrderBy | None) -> list[Record]:
    """Order records by a field; records missing the field go last."""
    records = list(records)
    if order_by is None:
        return records
    present = [r for r in records if r.get(order_by.field) is not None]
    missing = [r for r in records if r.get(order_by.field) is None]
    present.sort(key=lambda r: _sort_key(r.get(order_by.field)), reverse=order_by.descending)
    return present + missing
