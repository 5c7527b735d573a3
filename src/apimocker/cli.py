"""
apimocker CLI

Command-line interface for the apimocker mock server.

Examples:
    # Serve the endpoints in mock.yaml
    apimocker

    # Use a JSON config, reproducible data
    apimocker --config api.json --seed 42
"""

import argparse
import random
import sys
import threading
from dataclasses import replace
from typing import List, Optional

from .mock import ConfigError, MockServer, load_config

QUERY_HELP = [
    "count: number of items to return",
    "limit: alias for count",
    "sort: field to sort by",
    "order: asc/desc (default: asc)",
    "filter: field:value to filter by",
    "offset: number of items to skip",
    "meta: include metadata in response (true)",
]

AUTH_HELP = [
    "Basic Auth: Authorization: Basic <base64(username:password)>",
    "Bearer Token: Authorization: Bearer <token>",
]

EPILOG = """
Example config (mock.yaml):
  port: 5050
  logging:
    enabled: true
    format: json        # or "plain"
    output: stdout      # or a file path like "requests.log"
  endpoints:
    - path: /users
      method: GET
      status: 200
      delay: 500ms
      headers:
        X-API-Version: "v1"
      auth:
        type: bearer
        token: mysecrettoken
      data: |
        {"id": "uuid", "name": "name", "email": "email"}
      errors:
        - probability: 0.1
          status: 500
          message: "Internal server error"

Examples:
  GET /users?count=10
  GET /users?sort=name&order=desc
  GET /users?filter=name:john&count=5
  GET /users?offset=10&limit=20&meta=true
"""


def render_status(messages: List[str]) -> str:
    """
    Build the status view text.

    Args:
        messages: Route and logging lines from the server

    Returns:
        Multi-line status text
    """
    lines = ["🎭 apimocker", "Running endpoints:"]
    lines.extend(f"- {msg}" for msg in messages)
    lines.append("")
    lines.append("Supported query parameters:")
    lines.extend(f"- {item}" for item in QUERY_HELP)
    lines.append("")
    lines.append("Authentication types supported:")
    lines.extend(f"- {item}" for item in AUTH_HELP)
    lines.append("")
    lines.append("Press q then Enter to quit.")
    return "\n".join(lines)


def wait_for_quit(stream=None):
    """Block until the user types q (or stdin closes)."""
    stream = stream or sys.stdin
    for line in stream:
        if line.strip().lower() in ('q', 'quit'):
            return


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apimocker",
        description="apimocker - lightweight mock REST API server with authentication and query parameter support",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG
    )
    parser.add_argument('-c', '--config', default='mock.yaml', help='Path to mock config file (default: mock.yaml)')
    parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    parser.add_argument('-p', '--port', type=int, help='Port to bind (overrides config port)')
    parser.add_argument('--seed', type=int, help='Seed for reproducible data and error injection')
    parser.add_argument('--locale', default='en_US', help='Faker locale (default: en_US)')
    parser.add_argument('--log-level', default='warning', choices=['debug', 'info', 'warning', 'error'],
                        help='Server log level (default: warning)')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ Failed to load config: {e}")
        sys.exit(1)

    if args.port:
        config = replace(config, port=args.port)

    rng = random.Random(args.seed) if args.seed is not None else None
    try:
        server = MockServer(config, rng=rng, locale=args.locale, log_level=args.log_level)
    except ConfigError as e:
        print(f"❌ Failed to start server: {e}")
        sys.exit(1)

    uvicorn_server = server.build_server(host=args.host)
    thread = threading.Thread(target=uvicorn_server.run, name="apimocker-server", daemon=True)
    thread.start()

    # uvicorn exits its own thread when it cannot bind
    while thread.is_alive() and not uvicorn_server.started:
        thread.join(timeout=0.05)
    if not uvicorn_server.started:
        server.context.request_logger.close()
        print(f"❌ Failed to start server on {args.host}:{config.port}")
        sys.exit(1)

    print(render_status(server.status_messages()))

    try:
        wait_for_quit()
    except KeyboardInterrupt:
        pass
    finally:
        uvicorn_server.should_exit = True
        thread.join(timeout=5)
        server.context.request_logger.close()
        print("\n👋 Mock server stopped")


if __name__ == '__main__':
    main()
