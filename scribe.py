#!/usr/bin/env python3
"""
batchscribe - source checkout entrypoint.

Usage:
    python scribe.py preflight request.json [--json]
    python scribe.py run request.json
    python scribe.py serve [--host HOST] [--port PORT]

Equivalent to the installed `batchscribe` command.
"""

import sys
from pathlib import Path

# =============================================================================
# Path Setup
# =============================================================================

# Ensure we can import from backend
SCRIBE_ROOT = Path(__file__).parent.resolve()
BACKEND_DIR = SCRIBE_ROOT / "backend"

if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


if __name__ == "__main__":
    from batchscribe.cli import main

    main()
