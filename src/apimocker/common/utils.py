"""
apimocker Common Utilities

Shared helpers used by the config loader and the mock pipeline.
"""

import json
import re
from typing import Any

# Units accepted by the general duration syntax, in seconds
_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'μs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)')
_SHORT_DURATION = re.compile(r'^(\d+)(ms|s|m)$')


def safe_json_parse(json_string: str, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        schema = safe_json_parse(endpoint.data, default=None)
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def parse_duration(delay: str) -> float:
    """
    Parse a delay string into seconds.

    Accepts the short forms ``500ms``, ``2s`` and ``1m`` as well as the
    general duration syntax (``1h30m``, ``1.5s``, ``250us``). A bare number
    has no unit and is rejected.

    Args:
        delay: Duration string from the endpoint config

    Returns:
        Duration in seconds, or 0.0 if the string is empty or invalid
    """
    if not delay:
        return 0.0

    text = delay.strip()

    short = _SHORT_DURATION.match(text)
    if short:
        return int(short.group(1)) * _DURATION_UNITS[short.group(2)]

    sign = 1.0
    if text[:1] in ('+', '-'):
        sign = -1.0 if text[0] == '-' else 1.0
        text = text[1:]

    if text == '0':
        return 0.0

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            return 0.0
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        return 0.0

    return max(sign * total, 0.0)
