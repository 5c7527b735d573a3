"""
apimocker Authentication

Static Basic and Bearer credential checks for protected endpoints.
"""

import base64
import binascii
from typing import Mapping, NamedTuple, Optional

from .config import AuthRule

AUTH_HEADER = 'authorization'
BASIC_PREFIX = 'Basic '
BEARER_PREFIX = 'Bearer '


class AuthResult(NamedTuple):
    """Outcome of an authentication check."""

    success: bool
    kind: str
    outcome: str


def authenticate(headers: Mapping[str, str], rule: Optional[AuthRule]) -> AuthResult:
    """
    Check a request's Authorization header against an endpoint auth rule.

    Args:
        headers: Request headers (Starlette headers are case-insensitive;
                 plain dicts are matched case-insensitively here)
        rule: Endpoint auth rule, or None for open endpoints

    Returns:
        AuthResult(success, kind, outcome)
    """
    if rule is None:
        return AuthResult(True, "", "no-auth")

    auth_header = _get_header(headers, AUTH_HEADER)
    if not auth_header:
        return AuthResult(False, rule.type, "missing-auth")

    auth_type = rule.type.lower()
    if auth_type == 'basic':
        return _authenticate_basic(auth_header, rule)
    elif auth_type == 'bearer':
        return _authenticate_bearer(auth_header, rule)

    return AuthResult(False, rule.type, "invalid-auth-type")


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    for key, header_value in headers.items():
        if key.lower() == name:
            return header_value
    return None


def _authenticate_basic(auth_header: str, rule: AuthRule) -> AuthResult:
    if not auth_header.startswith(BASIC_PREFIX):
        return AuthResult(False, "basic", "invalid-basic-format")

    encoded = auth_header[len(BASIC_PREFIX):]
    try:
        decoded = base64.b64decode(encoded, validate=True).decode('utf-8', errors='replace')
    except (binascii.Error, ValueError):
        return AuthResult(False, "basic", "invalid-base64")

    credentials = decoded.split(':', 1)
    if len(credentials) != 2:
        return AuthResult(False, "basic", "invalid-credentials-format")

    username, password = credentials
    if username == rule.username and password == rule.password:
        return AuthResult(True, "basic", "success")
    return AuthResult(False, "basic", "invalid-credentials")


def _authenticate_bearer(auth_header: str, rule: AuthRule) -> AuthResult:
    if not auth_header.startswith(BEARER_PREFIX):
        return AuthResult(False, "bearer", "invalid-bearer-format")

    token = auth_header[len(BEARER_PREFIX):]
    if token == rule.token:
        return AuthResult(True, "bearer", "success")
    return AuthResult(False, "bearer", "invalid-token")
