"""
Tests for apimocker Mock Server

Tests the FastAPI-based mock server including:
- Endpoint dispatch and method enforcement
- Authentication, delays and error injection
- Query parameters and meta envelopes
- Static file serving
- Request logging on every exit path
- Status messages
"""

import asyncio
import base64
import random
import time
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from apimocker.mock.config import MockConfig
from apimocker.mock.generator import DataGenerator, GenerationError
from apimocker.mock.request_log import RequestLogger
from apimocker.mock.server import (
    MockServer,
    content_type_for,
    create_mock_server,
    status_messages
)


PEOPLE = [
    {'id': 1, 'name': 'Alice', 'age': 30},
    {'id': 2, 'name': 'Bob', 'age': 25},
    {'id': 3, 'name': 'Charlie', 'age': 35},
    {'id': 4, 'name': 'Alice', 'age': 28},
]


def make_server(endpoints, generator=None, port=5050, logging=None):
    """Build a server with a recording request logger."""
    config = MockConfig.from_dict({'port': port, 'endpoints': endpoints, 'logging': logging})
    request_logger = Mock(spec=RequestLogger)
    server = MockServer(
        config,
        generator=generator,
        request_logger=request_logger,
        rng=random.Random(0)
    )
    return server, TestClient(server.app), request_logger


def logged_entries(request_logger):
    return [c.args[0] for c in request_logger.log.call_args_list]


@pytest.fixture
def people_generator():
    """Generator stub returning fixed records."""
    generator = Mock(spec=DataGenerator)
    generator.generate.side_effect = lambda schema, count: [dict(p) for p in PEOPLE]
    return generator


class TestMockServer:
    """Test MockServer setup."""

    def test_server_initialization(self):
        """Test endpoint table and collaborators."""
        server, _, _ = make_server([{'path': '/users'}, {'path': '/orders', 'method': 'POST'}])

        assert set(server.endpoints) == {'/users', '/orders'}
        assert server.context.generator is not None
        assert server.context.injector is not None

    def test_get_app(self):
        """Test getting FastAPI app instance."""
        server, _, _ = make_server([])
        app = server.get_app()

        assert app is not None
        assert hasattr(app, 'routes')

    def test_create_mock_server_from_file(self, tmp_path):
        """Test convenience constructor loads config."""
        config_file = tmp_path / 'mock.yaml'
        config_file.write_text("port: 7070\nendpoints:\n  - path: /ping\n    data: '{\"ok\": \"bool\"}'\n")

        server = create_mock_server(str(config_file), seed=3)
        response = TestClient(server.app).get('/ping')

        assert server.config.port == 7070
        assert response.status_code == 200
        assert isinstance(response.json()[0]['ok'], bool)


class TestDispatch:
    """Test the per-endpoint pipeline."""

    def test_successful_request(self):
        """Test generated records are returned as JSON."""
        _, client, request_logger = make_server([
            {'path': '/users', 'count': 3, 'data': '{"id": "uuid", "name": "name"}'}
        ])

        response = client.get('/users')

        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/json'
        data = response.json()
        assert len(data) == 3
        assert set(data[0]) == {'id', 'name'}
        assert len(logged_entries(request_logger)) == 1

    def test_default_count_is_one(self):
        """Test endpoints default to a single record."""
        _, client, _ = make_server([{'path': '/one', 'data': '{"n": "int"}'}])

        assert len(client.get('/one').json()) == 1

    def test_custom_status(self):
        """Test configured status code."""
        _, client, _ = make_server([{'path': '/orders', 'method': 'POST', 'status': 201, 'data': '{"id": "uuid"}'}])

        assert client.post('/orders').status_code == 201

    def test_custom_headers(self):
        """Test configured headers on success."""
        _, client, _ = make_server([{
            'path': '/headers',
            'data': '{"test": "bool"}',
            'headers': {'X-Custom-Header': 'test-value', 'X-API-Version': 'v1'}
        }])

        response = client.get('/headers')

        assert response.headers['x-custom-header'] == 'test-value'
        assert response.headers['x-api-version'] == 'v1'

    def test_count_query_param(self):
        """Test count overrides the configured default."""
        _, client, _ = make_server([{'path': '/users', 'count': 2, 'data': '{"id": "int"}'}])

        assert len(client.get('/users?count=5').json()) == 5

    def test_limit_query_param(self):
        """Test limit is an alias for count."""
        _, client, _ = make_server([{'path': '/users', 'data': '{"id": "int"}'}])

        assert len(client.get('/users?limit=4').json()) == 4

    def test_effective_count_passed_to_generator(self, people_generator):
        """Test count resolution: count, then limit, then default."""
        _, client, _ = make_server([{'path': '/p', 'count': 9, 'data': 'schema'}], generator=people_generator)

        client.get('/p?limit=3')
        client.get('/p?count=2&limit=3')
        client.get('/p?count=0')

        counts = [c.args[1] for c in people_generator.generate.call_args_list]
        assert counts == [3, 2, 9]

    def test_query_transform_applied(self, people_generator):
        """Test filter/sort/offset reach the transformer."""
        _, client, _ = make_server([{'path': '/people', 'data': 'x'}], generator=people_generator)

        filtered = client.get('/people?filter=name:alice').json()
        ordered = client.get('/people?sort=age&order=desc').json()
        paged = client.get('/people?offset=10').json()

        assert [p['id'] for p in filtered] == [1, 4]
        assert [p['age'] for p in ordered] == [35, 30, 28, 25]
        assert paged == []

    def test_fallback_schema(self):
        """Test non-mapping schemas still return records."""
        _, client, _ = make_server([{'path': '/anything', 'count': 2}])

        data = client.get('/anything').json()

        assert len(data) == 2
        assert all(isinstance(item, dict) for item in data)

    def test_unknown_path(self):
        """Test unconfigured paths return 404 and are not request-logged."""
        _, client, request_logger = make_server([{'path': '/users'}])

        response = client.get('/nonexistent')

        assert response.status_code == 404
        assert response.json() == {'error': 'Not Found'}
        assert logged_entries(request_logger) == []

    def test_exact_path_match(self):
        """Test sub-paths do not match a configured path."""
        _, client, _ = make_server([{'path': '/users'}])

        assert client.get('/users/1').status_code == 404


class TestMethodEnforcement:
    """Test 405 responses."""

    @pytest.mark.parametrize('method', ['GET', 'PUT', 'DELETE', 'PATCH'])
    def test_method_not_allowed(self, method):
        """Test any other method yields 405."""
        _, client, request_logger = make_server([{
            'path': '/test',
            'method': 'POST',
            'auth': {'type': 'bearer', 'token': 'secret'},
            'errors': [{'probability': 1.0, 'status': 500}]
        }])

        response = client.request(method, '/test')

        assert response.status_code == 405
        assert response.headers['content-type'].startswith('text/plain')
        assert response.text.strip() == 'Method Not Allowed'
        entries = logged_entries(request_logger)
        assert len(entries) == 1
        assert entries[0].status_code == 405
        assert entries[0].auth_type == ''


class TestAuthentication:
    """Test endpoint authentication."""

    def test_unauthorized_request(self):
        """Test missing token yields 401."""
        _, client, request_logger = make_server([{
            'path': '/secure',
            'data': '{"message": "string"}',
            'auth': {'type': 'bearer', 'token': 'secret'}
        }])

        response = client.get('/secure')

        assert response.status_code == 401
        assert response.json() == {'error': 'Authentication required'}
        entry = logged_entries(request_logger)[0]
        assert (entry.auth_type, entry.auth_result) == ('bearer', 'missing-auth')

    def test_authorized_request(self):
        """Test valid bearer token."""
        _, client, request_logger = make_server([{
            'path': '/secure',
            'data': '{"message": "string"}',
            'auth': {'type': 'bearer', 'token': 'secret'}
        }])

        response = client.get('/secure', headers={'Authorization': 'Bearer secret'})

        assert response.status_code == 200
        entry = logged_entries(request_logger)[0]
        assert (entry.auth_type, entry.auth_result) == ('bearer', 'success')

    def test_basic_auth(self):
        """Test valid and invalid basic credentials."""
        _, client, _ = make_server([{
            'path': '/admin',
            'data': '{"id": "uuid"}',
            'auth': {'type': 'basic', 'username': 'admin', 'password': 'secret123'}
        }])
        good = base64.b64encode(b'admin:secret123').decode()
        bad = base64.b64encode(b'admin:nope').decode()

        assert client.get('/admin', headers={'Authorization': f'Basic {good}'}).status_code == 200
        assert client.get('/admin', headers={'Authorization': f'Basic {bad}'}).status_code == 401

    def test_auth_failure_skips_rest_of_pipeline(self, people_generator):
        """Test 401 happens before delay, error injection and generation."""
        _, client, _ = make_server([{
            'path': '/secure',
            'delay': '5s',
            'errors': [{'probability': 1.0, 'status': 503, 'message': 'down'}],
            'auth': {'type': 'bearer', 'token': 'secret'}
        }], generator=people_generator)

        with patch('apimocker.mock.server.asyncio') as mock_asyncio:
            mock_asyncio.sleep = AsyncMock()
            response = client.get('/secure')

        assert response.status_code == 401
        mock_asyncio.sleep.assert_not_awaited()
        people_generator.generate.assert_not_called()

    def test_no_auth_configured(self):
        """Test open endpoints succeed without credentials."""
        _, client, request_logger = make_server([{'path': '/open', 'data': '{"id": "int"}'}])

        assert client.get('/open').status_code == 200
        assert logged_entries(request_logger)[0].auth_result == 'no-auth'


class TestDelay:
    """Test response delays."""

    def test_delay_applied(self):
        """Test the parsed delay is awaited."""
        _, client, _ = make_server([{'path': '/slow', 'delay': '100ms', 'data': '{"slow": "bool"}'}])

        with patch('apimocker.mock.server.asyncio') as mock_asyncio:
            mock_asyncio.sleep = AsyncMock()
            response = client.get('/slow')

        assert response.status_code == 200
        mock_asyncio.sleep.assert_awaited_once_with(0.1)

    def test_no_delay_configured(self):
        """Test no sleep without a delay."""
        _, client, _ = make_server([{'path': '/fast', 'data': '{"n": "int"}'}])

        with patch('apimocker.mock.server.asyncio') as mock_asyncio:
            mock_asyncio.sleep = AsyncMock()
            client.get('/fast')

        mock_asyncio.sleep.assert_not_awaited()

    def test_delay_does_not_block_other_requests(self):
        """Test concurrent delayed requests overlap."""
        server, _, _ = make_server([{'path': '/slow', 'delay': '200ms', 'data': '{"n": "int"}'}])

        async def fire():
            transport = httpx.ASGITransport(app=server.app)
            async with httpx.AsyncClient(transport=transport, base_url='http://test') as client:
                return await asyncio.gather(*(client.get('/slow') for _ in range(5)))

        started = time.perf_counter()
        responses = asyncio.run(fire())
        elapsed = time.perf_counter() - started

        assert all(r.status_code == 200 for r in responses)
        assert elapsed < 0.8


class TestErrorInjection:
    """Test configured error rules."""

    def test_error_with_message(self):
        """Test probability 1.0 always fails with the configured body."""
        _, client, request_logger = make_server([{
            'path': '/flaky',
            'data': '{"id": "int"}',
            'headers': {'X-Custom': 'yes'},
            'errors': [{'probability': 1.0, 'status': 503, 'message': 'Service unavailable'}]
        }])

        for _ in range(5):
            response = client.get('/flaky')
            assert response.status_code == 503
            assert response.json() == {'error': 'Service unavailable'}
            assert 'x-custom' not in response.headers

        assert [e.status_code for e in logged_entries(request_logger)] == [503] * 5

    def test_error_without_message_has_empty_body(self):
        """Test empty messages send no body."""
        _, client, request_logger = make_server([{
            'path': '/flaky',
            'errors': [{'probability': 1.0, 'status': 502}]
        }])

        response = client.get('/flaky')

        assert response.status_code == 502
        assert response.content == b''
        assert logged_entries(request_logger)[0].content_length == 0

    def test_zero_probability_never_fails(self):
        """Test probability 0.0 never triggers."""
        _, client, _ = make_server([{
            'path': '/stable',
            'data': '{"id": "int"}',
            'errors': [{'probability': 0.0, 'status': 500, 'message': 'never'}]
        }])

        assert all(client.get('/stable').status_code == 200 for _ in range(10))


class TestGenerationFailure:
    """Test data generation errors."""

    def test_generation_error_returns_500(self):
        """Test generator failures become a 500 response."""
        generator = Mock(spec=DataGenerator)
        generator.generate.side_effect = GenerationError('boom')
        _, client, request_logger = make_server([{'path': '/broken'}], generator=generator)

        response = client.get('/broken')

        assert response.status_code == 500
        assert response.json() == {'error': 'Failed to generate data'}
        assert logged_entries(request_logger)[0].status_code == 500


class TestMetaEnvelope:
    """Test meta=true responses."""

    def test_meta_wrapping(self, people_generator):
        """Test data and meta fields."""
        _, client, _ = make_server([{'path': '/people', 'status': 202, 'data': 'x'}], generator=people_generator)

        body = client.get('/people?meta=true&offset=1&count=2&sort=name&order=desc&filter=name:a').json()

        assert set(body) == {'data', 'meta'}
        assert body['meta'] == {
            'count': len(body['data']),
            'total': 4,
            'offset': '1',
            'limit': '2',
            'sort': 'name',
            'order': 'desc',
            'filter': 'name:a',
            'status': 202,
        }

    def test_meta_missing_params_are_empty_strings(self, people_generator):
        """Test unset parameters echo as empty strings."""
        _, client, _ = make_server([{'path': '/people', 'data': 'x'}], generator=people_generator)

        meta = client.get('/people?meta=true').json()['meta']

        assert meta['offset'] == ''
        assert meta['limit'] == ''
        assert meta['sort'] == ''
        assert meta['count'] == 4

    def test_meta_limit_echoes_limit_alias(self, people_generator):
        """Test limit is echoed when count is absent."""
        _, client, _ = make_server([{'path': '/people', 'data': 'x'}], generator=people_generator)

        assert client.get('/people?meta=true&limit=3').json()['meta']['limit'] == '3'

    def test_meta_requires_literal_true(self, people_generator):
        """Test other meta values return the bare list."""
        _, client, _ = make_server([{'path': '/people', 'data': 'x'}], generator=people_generator)

        assert isinstance(client.get('/people?meta=1').json(), list)


class TestStaticFiles:
    """Test static file endpoints."""

    @pytest.mark.parametrize('name,content_type', [
        ('photo.jpg', 'image/jpeg'),
        ('photo.JPEG', 'image/jpeg'),
        ('image.png', 'image/png'),
        ('anim.gif', 'image/gif'),
        ('clip.mp4', 'video/mp4'),
        ('archive.zip', 'application/octet-stream'),
    ])
    def test_content_type_for(self, name, content_type):
        """Test content type by extension."""
        assert content_type_for(name) == content_type

    def test_serve_file(self, tmp_path):
        """Test file contents and content type."""
        image = tmp_path / 'logo.png'
        image.write_bytes(b'\x89PNG\r\n\x1a\nfake')
        _, client, request_logger = make_server([{'path': '/logo', 'file': str(image)}])

        response = client.get('/logo')

        assert response.status_code == 200
        assert response.headers['content-type'] == 'image/png'
        assert response.content == image.read_bytes()
        entry = logged_entries(request_logger)[0]
        assert entry.content_length == len(image.read_bytes())

    def test_file_endpoint_ignores_method(self, tmp_path):
        """Test static files skip method enforcement."""
        blob = tmp_path / 'data.bin'
        blob.write_bytes(b'abc')
        _, client, _ = make_server([{'path': '/blob', 'method': 'GET', 'file': str(blob)}])

        assert client.post('/blob').status_code == 200

    def test_file_endpoint_requires_auth(self, tmp_path):
        """Test static files still authenticate."""
        blob = tmp_path / 'data.bin'
        blob.write_bytes(b'abc')
        _, client, _ = make_server([{
            'path': '/blob',
            'file': str(blob),
            'auth': {'type': 'bearer', 'token': 'secret'}
        }])

        assert client.get('/blob').status_code == 401
        assert client.get('/blob', headers={'Authorization': 'Bearer secret'}).content == b'abc'

    def test_missing_file(self, tmp_path):
        """Test a missing file yields 404."""
        _, client, request_logger = make_server([{'path': '/gone', 'file': str(tmp_path / 'gone.png')}])

        response = client.get('/gone')

        assert response.status_code == 404
        assert logged_entries(request_logger)[0].status_code == 404


class TestRequestLogging:
    """Test request log entries written by the server."""

    def test_entry_fields(self):
        """Test the entry mirrors the request and response."""
        _, client, request_logger = make_server([{'path': '/users', 'data': '{"id": "int"}'}])

        response = client.get('/users?count=2', headers={'User-Agent': 'pytest-agent'})

        entry = logged_entries(request_logger)[0]
        assert entry.method == 'GET'
        assert entry.path == '/users'
        assert entry.query == 'count=2'
        assert entry.status_code == 200
        assert entry.user_agent == 'pytest-agent'
        assert entry.content_length == len(response.content)
        assert entry.remote_addr
        assert entry.response_time.endswith('ms') or entry.response_time.endswith('s')

    def test_real_logger_writes_one_line(self, capsys):
        """Test end-to-end plain logging to stdout."""
        config = MockConfig.from_dict({
            'endpoints': [{'path': '/ping', 'data': '{"ok": "bool"}'}],
            'logging': {'enabled': True, 'format': 'plain'}
        })
        server = MockServer(config, rng=random.Random(1))
        client = TestClient(server.app)

        client.get('/ping')
        server.context.request_logger.close()

        lines = [line for line in capsys.readouterr().out.splitlines() if '/ping' in line]
        assert len(lines) == 1
        assert ' GET /ping - 200 - ' in lines[0]


class TestStatusMessages:
    """Test status view lines."""

    def test_status_messages(self):
        """Test route annotations and logging line."""
        config = MockConfig.from_dict({
            'port': 5050,
            'logging': {'enabled': True, 'format': 'json', 'output': 'requests.log'},
            'endpoints': [
                {'path': '/users'},
                {
                    'path': '/orders',
                    'method': 'POST',
                    'status': 201,
                    'delay': '500ms',
                    'errors': [{'probability': 0.1, 'status': 500}]
                },
            ]
        })

        messages = status_messages(config)

        assert messages == [
            '[GET] http://localhost:5050/users',
            '[POST] http://localhost:5050/orders (status: 201) (delay: 500ms) (with errors)',
            'Logging: json format to requests.log',
        ]

    def test_logging_disabled_has_no_logging_line(self):
        """Test no logging line when disabled."""
        config = MockConfig.from_dict({'endpoints': [{'path': '/a'}]})

        assert len(status_messages(config)) == 1

    def test_stdout_logging_line(self):
        """Test stdout destination wording."""
        config = MockConfig.from_dict({'logging': {'enabled': True}})

        assert status_messages(config) == ['Logging: plain format to stdout']


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
