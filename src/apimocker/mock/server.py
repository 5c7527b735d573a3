"""
apimocker Mock Server

FastAPI-based HTTP mock server that serves synthetic data for configured
endpoints.

Features:
- One route per configured endpoint (exact path match)
- Static Basic/Bearer authentication
- Response delays and probabilistic error injection
- Faker-generated records with filter/sort/pagination query parameters
- Static file serving
- Per-request logging in plain or JSON format
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import FileResponse

from .auth import AuthResult, authenticate
from .chaos import ErrorInjector
from .config import Endpoint, MockConfig, load_config
from .generator import DataGenerator, GenerationError
from .query import resolve_limit, transform
from .request_log import RequestLogEntry, RequestLogger

logger = logging.getLogger("apimocker.mock")

CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.mp4': 'video/mp4',
}
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@dataclass
class HandlerContext:
    """Shared collaborators handed to every request handler."""

    generator: DataGenerator
    injector: ErrorInjector
    request_logger: RequestLogger


def content_type_for(file_path: str) -> str:
    """Content type for a static file, by extension."""
    return CONTENT_TYPES.get(Path(file_path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _json_body(payload: Any) -> bytes:
    return json.dumps(payload, separators=(',', ':')).encode('utf-8')


def _format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds:.3f}s"


class _RequestRecorder:
    """Collects the facts of one request and writes its single log entry."""

    def __init__(self, request: Request, request_logger: RequestLogger):
        self.request = request
        self.request_logger = request_logger
        self.started = time.perf_counter()
        self.timestamp = datetime.now(timezone.utc).astimezone().isoformat(timespec='seconds')
        self.auth = AuthResult(True, "", "")

    def finish(self, status_code: int, content_length: int):
        request = self.request
        client = request.client
        remote_addr = f"{client.host}:{client.port}" if client else ""

        self.request_logger.log(RequestLogEntry(
            timestamp=self.timestamp,
            method=request.method,
            path=request.url.path,
            query=request.url.query,
            status_code=status_code,
            response_time=_format_elapsed(time.perf_counter() - self.started),
            user_agent=request.headers.get('user-agent', ''),
            remote_addr=remote_addr,
            content_length=content_length,
            auth_type=self.auth.kind,
            auth_result=self.auth.outcome
        ))


async def dispatch(request: Request, endpoint: Endpoint, context: HandlerContext) -> Response:
    """
    Handle one request for an endpoint.

    Pipeline: method check → authentication → delay → error injection →
    headers → generation → query transform → response. Every exit path
    writes exactly one request log entry.

    Args:
        request: Incoming FastAPI request
        endpoint: Endpoint the request path resolved to
        context: Generator, error injector and request logger

    Returns:
        Response to send
    """
    recorder = _RequestRecorder(request, context.request_logger)

    if endpoint.file:
        return _serve_file(request, endpoint, recorder)

    if request.method != endpoint.method:
        body = b"Method Not Allowed\n"
        recorder.finish(405, 0)
        return Response(content=body, status_code=405, media_type="text/plain")

    recorder.auth = authenticate(request.headers, endpoint.auth)
    if not recorder.auth.success:
        return _unauthorized(recorder)

    if endpoint.delay_seconds > 0:
        await asyncio.sleep(endpoint.delay_seconds)

    triggered, rule = context.injector.maybe_inject(endpoint.errors)
    if triggered:
        logger.debug(f"Injected error {rule.status} for {request.method} {request.url.path}")
        if rule.message:
            body = _json_body({"error": rule.message})
            recorder.finish(rule.status, len(body))
            return Response(content=body, status_code=rule.status, media_type="application/json")
        recorder.finish(rule.status, 0)
        return Response(status_code=rule.status)

    params = request.query_params
    count = resolve_limit(params) or endpoint.count

    try:
        records = context.generator.generate(endpoint.data, count)
    except GenerationError as e:
        logger.warning(f"Data generation failed for {endpoint.path}: {e}")
        body = _json_body({"error": "Failed to generate data"})
        recorder.finish(500, len(body))
        return Response(
            content=body,
            status_code=500,
            headers=endpoint.headers,
            media_type="application/json"
        )

    result = transform(records, params)

    if params.get('meta') == 'true':
        payload: Any = {
            "data": result,
            "meta": {
                "count": len(result),
                "total": len(records),
                "offset": params.get('offset', ''),
                "limit": params.get('count') or params.get('limit', ''),
                "sort": params.get('sort', ''),
                "order": params.get('order', ''),
                "filter": params.get('filter', ''),
                "status": endpoint.status,
            }
        }
    else:
        payload = result

    body = _json_body(payload)
    recorder.finish(endpoint.status, len(body))
    return Response(
        content=body,
        status_code=endpoint.status,
        headers=endpoint.headers,
        media_type="application/json"
    )


def _unauthorized(recorder: _RequestRecorder) -> Response:
    body = _json_body({"error": "Authentication required"})
    recorder.finish(401, len(body))
    return Response(content=body, status_code=401, media_type="application/json")


def _serve_file(request: Request, endpoint: Endpoint, recorder: _RequestRecorder) -> Response:
    """Serve a static file endpoint (authentication still applies)."""
    recorder.auth = authenticate(request.headers, endpoint.auth)
    if not recorder.auth.success:
        return _unauthorized(recorder)

    file_path = Path(endpoint.file)
    if not file_path.is_file():
        logger.warning(f"Static file not found for {endpoint.path}: {file_path}")
        body = _json_body({"error": "File not found"})
        recorder.finish(404, len(body))
        return Response(content=body, status_code=404, media_type="application/json")

    recorder.finish(200, file_path.stat().st_size)
    return FileResponse(str(file_path), media_type=content_type_for(endpoint.file))


def status_messages(config: MockConfig, host: str = "localhost") -> List[str]:
    """
    Describe the running routes for the status view.

    Args:
        config: Loaded mock config
        host: Host name shown in route URLs

    Returns:
        One line per endpoint, plus the logging destination when enabled
    """
    messages = []
    for endpoint in config.endpoints:
        msg = f"[{endpoint.method}] http://{host}:{config.port}{endpoint.path}"

        if endpoint.status != 200:
            msg += f" (status: {endpoint.status})"
        if endpoint.delay:
            msg += f" (delay: {endpoint.delay})"
        if endpoint.errors:
            msg += " (with errors)"
        if endpoint.file:
            msg += f" (file: {endpoint.file})"
        if endpoint.auth:
            msg += f" (auth: {endpoint.auth.type})"

        messages.append(msg)

    if config.logging.enabled:
        log_msg = f"Logging: {config.logging.format} format"
        if config.logging.output == 'stdout':
            log_msg += " to stdout"
        else:
            log_msg += f" to {config.logging.output}"
        messages.append(log_msg)

    return messages


class MockServer:
    """
    FastAPI-based mock server for configured endpoints.

    Example:
        config = load_config('mock.yaml')
        server = MockServer(config)
        server.start(host='0.0.0.0')

        # Reproducible data and error injection
        server = MockServer(config, rng=random.Random(42))
    """

    def __init__(
        self,
        config: MockConfig,
        generator: Optional[DataGenerator] = None,
        injector: Optional[ErrorInjector] = None,
        request_logger: Optional[RequestLogger] = None,
        rng: Optional[random.Random] = None,
        locale: str = "en_US",
        log_level: str = "info"
    ):
        """
        Initialize mock server.

        Args:
            config: Loaded mock config
            generator: Optional DataGenerator (will create if None)
            injector: Optional ErrorInjector (will create if None)
            request_logger: Optional RequestLogger (built from config.logging if None)
            rng: Random source for generated data and error injection
            locale: Faker locale for generated data
            log_level: Server log level (debug, info, warning, error)
        """
        self.config = config
        self.log_level = log_level
        self.logger = logger
        self.logger.setLevel(getattr(logging, log_level.upper()))

        # Read-only after startup
        self.endpoints: Dict[str, Endpoint] = {ep.path: ep for ep in config.endpoints}

        self.rng = rng or random.Random()
        self.context = HandlerContext(
            generator=generator or DataGenerator(rng=self.rng, locale=locale),
            injector=injector or ErrorInjector(rng=self.rng),
            request_logger=request_logger or RequestLogger(config.logging)
        )

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="apimocker",
            description="Configuration-driven mock REST API server",
            version="1.0.0"
        )

        @app.api_route("/{path:path}", methods=HTTP_METHODS)
        async def mock_request(request: Request, path: str):
            """Route every request to its configured endpoint."""
            return await self._handle_request(request)

        return app

    async def _handle_request(self, request: Request) -> Response:
        endpoint = self.endpoints.get(request.url.path)
        if endpoint is None:
            self.logger.warning(f"No endpoint configured for {request.method} {request.url.path}")
            return Response(
                content=_json_body({"error": "Not Found"}),
                status_code=404,
                media_type="application/json"
            )

        return await dispatch(request, endpoint, self.context)

    def status_messages(self, host: str = "localhost") -> List[str]:
        """Describe routes and logging for the status view."""
        return status_messages(self.config, host=host)

    def build_server(self, host: str = "127.0.0.1", port: Optional[int] = None) -> uvicorn.Server:
        """
        Build a uvicorn server for this app without starting it.

        Args:
            host: Host to bind to
            port: Port to bind to (overrides config)
        """
        uvicorn_config = uvicorn.Config(
            self.app,
            host=host,
            port=port or self.config.port,
            log_level=self.log_level,
            access_log=False
        )
        return uvicorn.Server(uvicorn_config)

    def start(self, host: str = "127.0.0.1", port: Optional[int] = None):
        """
        Start the mock server (blocking).

        Args:
            host: Host to bind to
            port: Port to bind to (overrides config)
        """
        try:
            self.build_server(host, port).run()
        finally:
            self.context.request_logger.close()

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    config_path: str,
    seed: Optional[int] = None,
    locale: str = "en_US",
    log_level: str = "info"
) -> MockServer:
    """
    Convenience function to load a config file and create a mock server.

    Args:
        config_path: Path to YAML or JSON mock config
        seed: Seed for reproducible data and error injection
        locale: Faker locale
        log_level: Server log level

    Returns:
        Configured MockServer instance

    Raises:
        ConfigError: If the config or log file cannot be loaded
    """
    config = load_config(config_path)
    rng = random.Random(seed) if seed is not None else None
    return MockServer(config, rng=rng, locale=locale, log_level=log_level)
