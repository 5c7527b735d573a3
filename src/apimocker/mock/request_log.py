"""
apimocker Request Log

One line per handled request, written to stdout or an append-only file in
either plain text or JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .config import ConfigError, LogConfig

REQUEST_LOGGER_NAME = "apimocker.requests"

# Left out of JSON lines when empty
OPTIONAL_FIELDS = ('query', 'user_agent', 'auth_type', 'auth_result')


@dataclass(frozen=True)
class RequestLogEntry:
    """Record of one completed request."""

    timestamp: str
    method: str
    path: str
    status_code: int
    response_time: str
    remote_addr: str
    content_length: int
    query: str = ""
    user_agent: str = ""
    auth_type: str = ""
    auth_result: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping empty optional fields."""
        data = asdict(self)
        for name in OPTIONAL_FIELDS:
            if not data[name]:
                del data[name]
        return data

    def to_plain(self) -> str:
        """Format as a single plain-text line."""
        query = f"?{self.query}" if self.query else ""
        auth_info = f" - Auth: {self.auth_type} ({self.auth_result})" if self.auth_type else ""
        return (
            f"[{self.timestamp}] {self.method} {self.path}{query} - {self.status_code} - "
            f"{self.response_time} - {self.remote_addr} - {self.content_length} bytes{auth_info}"
        )


class RequestLogger:
    """
    Write request log entries to the configured destination.

    The destination is opened once; the logging handler's lock keeps lines
    from concurrent requests intact. When logging is disabled, ``log`` does
    nothing.

    Example:
        request_logger = RequestLogger(LogConfig(enabled=True, format='json'))
        request_logger.log(entry)
    """

    def __init__(self, config: Optional[LogConfig] = None, logger_name: str = REQUEST_LOGGER_NAME):
        """
        Initialize request logger.

        Args:
            config: Logging settings (disabled if None)
            logger_name: Name of the underlying logging.Logger

        Raises:
            ConfigError: If the log file cannot be opened
        """
        self.config = config or LogConfig()
        self.format = self.config.format
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self.handler: Optional[logging.Handler] = None

        # One destination per process: drop handlers from an earlier instance
        for stale in list(self.logger.handlers):
            self.logger.removeHandler(stale)
            stale.close()

        if self.config.enabled:
            self.handler = self._create_handler()
            self.handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(self.handler)

    @property
    def enabled(self) -> bool:
        return self.handler is not None

    def _create_handler(self) -> logging.Handler:
        if self.config.output == 'stdout':
            return logging.StreamHandler(sys.stdout)

        try:
            return logging.FileHandler(self.config.output, mode='a', encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"failed to open log file {self.config.output}: {e}") from e

    def log(self, entry: RequestLogEntry):
        """Write one entry. Entries that fail to serialize are dropped."""
        if not self.enabled:
            return

        if self.format == 'json':
            try:
                line = json.dumps(entry.to_dict(), separators=(',', ':'))
            except (TypeError, ValueError):
                return
        else:
            line = entry.to_plain()

        self.logger.info(line)

    def close(self):
        """Detach and close the handler."""
        if self.handler is not None:
            self.logger.removeHandler(self.handler)
            self.handler.close()
            self.handler = None
