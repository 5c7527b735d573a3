#!/usr/bin/env python3
"""
apimocker - configuration-driven mock REST API server

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/apimocker/cli.py

Usage:
    python apimocker-server.py --config mock.yaml

For more information, see DESIGN.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from apimocker.cli import main

if __name__ == '__main__':
    main()
