"""
apimocker Configuration

YAML/JSON mock definitions: endpoints, error rules, auth rules and request
logging settings, with load-time defaulting and validation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..common import parse_duration

DEFAULT_PORT = 8080
DEFAULT_STATUS = 200
DEFAULT_COUNT = 1
DEFAULT_ERROR_STATUS = 500
LOG_FORMATS = ('json', 'plain')


class ConfigError(Exception):
    """Raised when the mock config cannot be read, parsed or validated."""


def _require_int(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    return value


def _require_str(value: Any, name: str, default: str = "") -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"'{name}' must be a string, got {value!r}")
    return value


def _require_bool(value: Any, name: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be true or false, got {value!r}")
    return value


def _require_status(status: int, name: str) -> int:
    if not 100 <= status <= 599:
        raise ConfigError(f"{name} must be between 100 and 599, got {status}")
    return status


@dataclass(frozen=True)
class AuthRule:
    """Static credentials an endpoint requires."""

    type: str
    token: str = ""
    username: str = ""
    password: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['AuthRule']:
        """
        Create AuthRule from dictionary.

        A rule of type ``none`` means the endpoint is open, so it is
        normalized to no rule at all.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"'auth' must be a mapping, got {data!r}")

        auth_type = _require_str(data.get('type'), 'auth.type')
        if auth_type.lower() == 'none':
            return None

        return cls(
            type=auth_type,
            token=str(data.get('token') or ''),
            username=str(data.get('username') or ''),
            password=str(data.get('password') or '')
        )


@dataclass(frozen=True)
class ErrorRule:
    """Probabilistic failure injected into an endpoint's responses."""

    probability: float
    status: int = DEFAULT_ERROR_STATUS
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ErrorRule':
        """Create ErrorRule from dictionary."""
        if not isinstance(data, dict):
            raise ConfigError(f"error rule must be a mapping, got {data!r}")

        probability = data.get('probability', 0.0)
        if isinstance(probability, bool) or not isinstance(probability, (int, float)):
            raise ConfigError(f"'probability' must be a number, got {probability!r}")
        if not 0.0 <= probability <= 1.0:
            raise ConfigError(f"'probability' must be between 0 and 1, got {probability}")

        status = _require_int(data.get('status'), 'errors.status', 0) or DEFAULT_ERROR_STATUS
        _require_status(status, "'errors.status'")

        return cls(
            probability=float(probability),
            status=status,
            message=_require_str(data.get('message'), 'errors.message')
        )


@dataclass(frozen=True)
class Endpoint:
    """One configured route and the behaviour rules attached to it."""

    path: str
    method: str = "GET"
    status: int = DEFAULT_STATUS
    count: int = DEFAULT_COUNT
    data: str = ""
    file: str = ""
    delay: str = ""
    delay_seconds: float = 0.0
    headers: Dict[str, str] = field(default_factory=dict)
    errors: Tuple[ErrorRule, ...] = ()
    auth: Optional[AuthRule] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Endpoint':
        """
        Create Endpoint from dictionary, applying defaults.

        Args:
            data: Raw endpoint mapping from the config file

        Returns:
            Normalized Endpoint

        Raises:
            ConfigError: If a field has the wrong type or an invalid value
        """
        if not isinstance(data, dict):
            raise ConfigError(f"endpoint must be a mapping, got {data!r}")

        path = _require_str(data.get('path'), 'path')
        if not path:
            raise ConfigError("endpoint is missing 'path'")
        if not path.startswith('/'):
            path = '/' + path

        # Zero means "not set" for both status and count
        status = _require_int(data.get('status'), 'status', 0) or DEFAULT_STATUS
        _require_status(status, f"{path}: 'status'")

        count = _require_int(data.get('count'), 'count', 0) or DEFAULT_COUNT
        if count < 0:
            raise ConfigError(f"{path}: 'count' must not be negative, got {count}")

        schema = data.get('data')
        if isinstance(schema, dict):
            schema = json.dumps(schema)
        schema = _require_str(schema, 'data')

        delay = data.get('delay')
        if isinstance(delay, int) and not isinstance(delay, bool):
            delay = str(delay)
        delay = _require_str(delay, 'delay')

        headers = data.get('headers') or {}
        if not isinstance(headers, dict):
            raise ConfigError(f"{path}: 'headers' must be a mapping")

        errors = data.get('errors') or []
        if not isinstance(errors, list):
            raise ConfigError(f"{path}: 'errors' must be a list")

        auth = data.get('auth')

        return cls(
            path=path,
            method=_require_str(data.get('method'), 'method', 'GET').upper() or 'GET',
            status=status,
            count=count,
            data=schema,
            file=_require_str(data.get('file'), 'file'),
            delay=delay,
            delay_seconds=parse_duration(delay),
            headers={str(k): str(v) for k, v in headers.items()},
            errors=tuple(ErrorRule.from_dict(rule) for rule in errors),
            auth=AuthRule.from_dict(auth) if auth is not None else None
        )


@dataclass(frozen=True)
class LogConfig:
    """Request logging settings."""

    enabled: bool = False
    format: str = "plain"
    output: str = "stdout"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'LogConfig':
        """Create LogConfig from dictionary. Unknown formats fall back to plain."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"'logging' must be a mapping, got {data!r}")

        log_format = _require_str(data.get('format'), 'logging.format', 'plain').lower()
        if log_format not in LOG_FORMATS:
            log_format = 'plain'

        return cls(
            enabled=_require_bool(data.get('enabled'), 'logging.enabled'),
            format=log_format,
            output=_require_str(data.get('output'), 'logging.output') or 'stdout'
        )


@dataclass(frozen=True)
class MockConfig:
    """Complete mock server definition."""

    port: int = DEFAULT_PORT
    endpoints: Tuple[Endpoint, ...] = ()
    logging: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockConfig':
        """
        Create MockConfig from the parsed config document.

        Raises:
            ConfigError: If the document shape is invalid or paths repeat
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a mapping, got {type(data).__name__}")

        port = _require_int(data.get('port'), 'port', 0) or DEFAULT_PORT

        raw_endpoints = data.get('endpoints') or []
        if not isinstance(raw_endpoints, list):
            raise ConfigError("'endpoints' must be a list")

        endpoints: List[Endpoint] = []
        seen = set()
        for raw in raw_endpoints:
            endpoint = Endpoint.from_dict(raw)
            if endpoint.path in seen:
                raise ConfigError(f"duplicate endpoint path: {endpoint.path}")
            seen.add(endpoint.path)
            endpoints.append(endpoint)

        return cls(
            port=port,
            endpoints=tuple(endpoints),
            logging=LogConfig.from_dict(data.get('logging'))
        )

    @classmethod
    def from_file(cls, config_path: str) -> 'MockConfig':
        """Load config from a YAML or JSON file."""
        return load_config(config_path)


def load_config(config_path: str) -> MockConfig:
    """
    Load a mock config file.

    The parser is chosen by extension: ``.yaml``/``.yml`` use YAML, anything
    else is read as JSON.

    Args:
        config_path: Path to the config file

    Returns:
        Normalized MockConfig

    Raises:
        ConfigError: If the file is unreadable, unparsable or invalid
    """
    path = Path(config_path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e

    try:
        if path.suffix.lower() in ('.yaml', '.yml'):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot parse config file {path}: {e}") from e

    return MockConfig.from_dict(data)
