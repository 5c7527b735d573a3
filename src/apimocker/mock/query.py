"""
apimocker Query Transformer

Filter, sort and paginate generated records from request query parameters.

Operations always run in this order:
1. filter=field:value   (case-insensitive substring match)
2. sort=field&order=asc|desc
3. offset=N
4. count=N (or its alias limit=N)
"""

import re
from typing import Any, Dict, List, Mapping, Optional

Record = Dict[str, Any]

_INTEGER = re.compile(r'[+-]?[0-9]+')


def render_value(value: Any) -> str:
    """
    Render a record value as the string used for filtering and sorting.

    Args:
        value: str, int, float, bool or None

    Returns:
        String form, with JSON spelling for booleans and null
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if not isinstance(raw, str) or not _INTEGER.fullmatch(raw):
        return None
    return int(raw)


def resolve_limit(params: Mapping[str, str]) -> Optional[int]:
    """
    Resolve the requested record count.

    ``count`` takes precedence over ``limit``; only positive integers apply.

    Returns:
        Requested count, or None if neither parameter holds a usable value
    """
    for name in ('count', 'limit'):
        value = _parse_int(params.get(name))
        if value is not None and value > 0:
            return value
    return None


def apply_filter(records: List[Record], expression: str) -> List[Record]:
    """Keep records whose field contains the value (``field:value``)."""
    if ':' not in expression:
        return list(records)

    field, value = expression.split(':', 1)
    needle = value.lower()
    return [
        record for record in records
        if field in record and needle in render_value(record[field]).lower()
    ]


def apply_sort(records: List[Record], field: str, order: str = "asc") -> List[Record]:
    """
    Sort records lexicographically by a field's rendered value.

    Records without the field keep their relative order and go last when
    ascending, first when descending.
    """
    present = [r for r in records if field in r]
    missing = [r for r in records if field not in r]

    if order == "desc":
        return missing + sorted(present, key=lambda r: render_value(r[field]), reverse=True)
    return sorted(present, key=lambda r: render_value(r[field])) + missing


def transform(records: List[Record], params: Mapping[str, str]) -> List[Record]:
    """
    Apply query parameters to a record set.

    Args:
        records: Generated records (not modified)
        params: Query parameters (dict or Starlette QueryParams)

    Returns:
        New list of filtered, sorted and paginated records
    """
    result = list(records)

    filter_expression = params.get('filter')
    if filter_expression:
        result = apply_filter(result, filter_expression)

    sort_field = params.get('sort')
    if sort_field:
        result = apply_sort(result, sort_field, params.get('order') or "asc")

    offset = _parse_int(params.get('offset'))
    if offset is not None and offset >= 0:
        if offset >= len(result):
            return []
        result = result[offset:]

    limit = resolve_limit(params)
    if limit is not None:
        result = result[:limit]

    return result
