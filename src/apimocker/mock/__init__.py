"""
apimocker Mock Server Module

Configuration-driven HTTP mock server serving synthetic data.

This module provides:
- FastAPI-based mock server and per-endpoint request pipeline
- Faker-backed data generation
- Query filtering, sorting and pagination
- Static Basic/Bearer authentication
- Probabilistic error injection
- Request logging
"""

from .server import MockServer, HandlerContext, dispatch, status_messages, create_mock_server
from .config import AuthRule, ErrorRule, Endpoint, LogConfig, MockConfig, ConfigError, load_config
from .generator import DataGenerator, FieldType, GenerationError
from .query import transform, render_value, resolve_limit
from .auth import AuthResult, authenticate
from .chaos import ErrorInjector
from .request_log import RequestLogEntry, RequestLogger

__all__ = [
    # Server
    'MockServer',
    'HandlerContext',
    'dispatch',
    'status_messages',
    'create_mock_server',

    # Config
    'AuthRule',
    'ErrorRule',
    'Endpoint',
    'LogConfig',
    'MockConfig',
    'ConfigError',
    'load_config',

    # Pipeline stages
    'DataGenerator',
    'FieldType',
    'GenerationError',
    'transform',
    'render_value',
    'resolve_limit',
    'AuthResult',
    'authenticate',
    'ErrorInjector',
    'RequestLogEntry',
    'RequestLogger',
]

__version__ = '1.0.0'
