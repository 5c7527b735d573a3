"""
apimocker Common Utilities

Shared utilities and helpers used across apimocker modules.
"""

from .utils import safe_json_parse, parse_duration

__all__ = [
    'safe_json_parse',
    'parse_duration',
]
